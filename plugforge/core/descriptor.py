"""
扩展单元描述 - UnitDescriptor 与描述文件 Schema

每个扩展单元目录下都有一个描述文件（extension.toml 或 extension.json），
声明入口点、依赖、覆盖关系、模块类型和默认配置。
"""

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, Field, field_validator

# 扩展单元根目录对应的模块类型，用于 overrides.files 声明的文件覆盖
ROOT_MODULE_TYPE = "."

DEFAULT_ENTRY = "plugin.py:plugin_entrypoint"


class OverridesSchema(BaseModel):
    """描述文件中的 [overrides] 段"""

    unit: Optional[Union[str, Dict[str, str]]] = Field(
        default=None, description="被覆盖的扩展单元名，或 {目标名: 替代入口点}"
    )
    modules: Dict[str, Dict[str, Dict[str, str]]] = Field(
        default_factory=dict, description="{模块类型: {目标单元: {相对文件: 覆盖文件}}}"
    )
    files: Dict[str, Dict[str, str]] = Field(
        default_factory=dict, description="{目标单元: {相对文件: 覆盖文件}}，相对于单元根目录"
    )

    model_config = {"extra": "forbid"}

    @field_validator("unit")
    @classmethod
    def _single_unit_target(cls, value):
        if isinstance(value, dict) and len(value) != 1:
            raise ValueError("overrides.unit 只能声明一个覆盖目标")
        return value


class DescriptorFile(BaseModel):
    """扩展单元描述文件 Schema"""

    name: Optional[str] = Field(default=None, description="扩展单元名称（应与清单中的名称一致）")
    entry: str = Field(default=DEFAULT_ENTRY, description="入口点，如 'plugin.py:MyUnit' 或 'pkg.module:MyUnit'")
    dependencies: list[str] = Field(default_factory=list, description="依赖的扩展单元名称")
    overrides: OverridesSchema = Field(default_factory=OverridesSchema)
    module_types: Dict[str, str] = Field(default_factory=dict, description="{模块类型: 相对目录}")
    config: Dict[str, Any] = Field(default_factory=dict, description="扩展单元默认配置")

    model_config = {"extra": "ignore"}


class ManifestEntry(BaseModel):
    """清单中单个扩展单元的条目（布尔值会被规范化为 {enabled: bool}）"""

    enabled: bool = True
    path: Optional[str] = None
    local: bool = False

    model_config = {"extra": "ignore"}

    @classmethod
    def parse(cls, raw: Any) -> "ManifestEntry":
        if isinstance(raw, bool):
            return cls(enabled=raw)
        return cls.model_validate(raw)


@dataclass(frozen=True)
class OverrideDeclaration:
    """扩展单元自身声明的覆盖关系（不可变）"""

    unit_target: Optional[str] = None
    unit_entry: Optional[str] = None
    modules: Mapping[str, Mapping[str, Mapping[str, str]]] = field(default_factory=dict)
    files: Mapping[str, Mapping[str, str]] = field(default_factory=dict)

    @classmethod
    def from_schema(cls, schema: OverridesSchema) -> "OverrideDeclaration":
        unit_target = None
        unit_entry = None
        if isinstance(schema.unit, str):
            unit_target = schema.unit
        elif schema.unit:
            ((unit_target, unit_entry),) = schema.unit.items()
        return cls(
            unit_target=unit_target,
            unit_entry=unit_entry,
            modules=schema.modules,
            files=schema.files,
        )

    def file_entries(self):
        """展开所有文件级覆盖为 (模块类型, 目标单元, 相对文件, 覆盖文件)"""
        for module_type, targets in self.modules.items():
            for target, files in targets.items():
                for relative_path, override_path in files.items():
                    yield module_type, target, relative_path, override_path
        for target, files in self.files.items():
            for relative_path, override_path in files.items():
                yield ROOT_MODULE_TYPE, target, relative_path, override_path


@dataclass(frozen=True)
class UnitDescriptor:
    """
    扩展单元描述（每个清单条目创建一次，加载后不可变）

    Attributes:
        name: 扩展单元名称（一次加载周期内唯一）
        entry: 入口点定位符，由 Resolver 解释
        path: 扩展单元根目录
        dependencies: 声明的依赖名称（保持声明顺序，已去重）
        overrides: 覆盖声明
        config: 扩展单元配置
        enabled: 是否启用
        module_types: 扩展单元自定义的模块类型目录
    """

    name: str
    entry: str = DEFAULT_ENTRY
    path: Path = field(default_factory=Path)
    dependencies: Tuple[str, ...] = ()
    overrides: OverrideDeclaration = field(default_factory=OverrideDeclaration)
    config: Mapping[str, Any] = field(default_factory=dict)
    enabled: bool = True
    module_types: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        # 冻结可变字段，保证描述在加载后不可被修改
        object.__setattr__(self, "dependencies", tuple(dict.fromkeys(self.dependencies)))
        object.__setattr__(self, "config", MappingProxyType(dict(self.config)))
        object.__setattr__(self, "module_types", MappingProxyType(dict(self.module_types)))

    @classmethod
    def from_file(
        cls,
        name: str,
        path: Path,
        data: DescriptorFile,
        enabled: bool = True,
        config: Optional[Mapping[str, Any]] = None,
    ) -> "UnitDescriptor":
        return cls(
            name=name,
            entry=data.entry,
            path=Path(path),
            dependencies=tuple(data.dependencies),
            overrides=OverrideDeclaration.from_schema(data.overrides),
            config=data.config if config is None else config,
            enabled=enabled,
            module_types=data.module_types,
        )


__all__ = [
    "ROOT_MODULE_TYPE",
    "DEFAULT_ENTRY",
    "OverridesSchema",
    "DescriptorFile",
    "ManifestEntry",
    "OverrideDeclaration",
    "UnitDescriptor",
]
