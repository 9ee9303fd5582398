"""
模块类型与文件访问

模块类型是扩展单元内按用途划分的目录（例如 routes、templates）。
请求某个单元某个模块类型下的文件时，先查询覆盖表，存在覆盖则透明地
返回覆盖者的文件，否则返回单元自身目录下的文件。
"""

import asyncio
import importlib.util
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional, Sequence, Union

from plugforge.core.descriptor import ROOT_MODULE_TYPE
from plugforge.core.errors import ManifestError, UnknownUnitError
from plugforge.core.overrides import OverrideTable, normalize_relative
from plugforge.modules.logging import get_logger

if TYPE_CHECKING:
    from .descriptor import UnitDescriptor


@dataclass(frozen=True)
class ModuleFile:
    """
    扩展单元模块目录中的一个文件

    Attributes:
        unit: 所属扩展单元
        module_type: 模块类型
        relative_path: 相对于模块目录的路径
        path: 单元自身目录下的文件路径
        resolved_path: 实际读取的路径（存在覆盖时为覆盖文件）
    """

    unit: str
    module_type: str
    relative_path: str
    path: Path
    resolved_path: Path

    @property
    def overridden(self) -> bool:
        return self.path != self.resolved_path


@dataclass(frozen=True)
class ImportedModule:
    """从模块目录导入的 Python 模块"""

    file: ModuleFile
    module: ModuleType


class ModuleFiles:
    """
    模块类型注册与文件解析

    宿主在加载完成后调用 bind() 绑定已加载单元的描述和覆盖表。
    """

    def __init__(self, module_types: Optional[Mapping[str, str]] = None):
        self._module_types: Dict[str, str] = {}
        self._descriptors: Dict[str, "UnitDescriptor"] = {}
        self._order: List[str] = []
        self._table = OverrideTable()
        self.logger = get_logger("ModuleFiles")

        for key, default_path in (module_types or {}).items():
            self.add_module_type(key, default_path)

    @property
    def module_types(self) -> Mapping[str, str]:
        return dict(self._module_types)

    @property
    def override_table(self) -> OverrideTable:
        return self._table

    def bind(
        self,
        descriptors: Mapping[str, "UnitDescriptor"],
        order: Sequence[str],
        override_table: OverrideTable,
    ) -> None:
        """绑定一次成功加载的结果"""
        self._descriptors = dict(descriptors)
        self._order = list(order)
        self._table = override_table

    def add_module_type(self, key: str, default_path: str) -> None:
        """
        注册模块类型及其默认目录

        Args:
            key: 模块类型
            default_path: 相对于单元根目录的默认目录

        Raises:
            TypeError: 参数类型无效
        """
        if not isinstance(key, str):
            raise TypeError(f"模块类型必须是字符串, got {type(key)}")
        if not isinstance(default_path, str):
            raise TypeError(f"模块类型默认目录必须是字符串, got {type(default_path)}")

        self._module_types[key] = default_path.lstrip("/")
        self.logger.debug(f"注册模块类型: {key} -> {self._module_types[key]}")

    def _descriptor(self, unit_name: str) -> "UnitDescriptor":
        descriptor = self._descriptors.get(unit_name)
        if descriptor is None:
            raise UnknownUnitError(unit_name)
        return descriptor

    def get_dir_path(self, unit_name: str, module_type: str) -> Path:
        """
        获取单元某个模块类型目录的绝对路径

        单元自定义的目录优先于宿主注册的默认目录。

        Raises:
            UnknownUnitError: 单元未加载
            ValueError: 模块类型未注册且单元未自定义
        """
        descriptor = self._descriptor(unit_name)
        if module_type == ROOT_MODULE_TYPE:
            return Path(descriptor.path)

        relative_dir = descriptor.module_types.get(module_type, self._module_types.get(module_type))
        if relative_dir is None:
            raise ValueError(f"未知的模块类型: {module_type}")
        return Path(descriptor.path) / relative_dir

    def resolve_file(self, module_type: str, unit_name: str, relative_path: str) -> Path:
        """
        解析文件路径，覆盖优先

        Args:
            module_type: 模块类型（ROOT_MODULE_TYPE 表示单元根目录）
            unit_name: 文件所属单元
            relative_path: 相对于模块目录的路径

        Returns:
            Path: 覆盖文件路径或单元自身的文件路径
        """
        override = self._table.resolve_file(module_type, unit_name, relative_path)
        if override is not None:
            self.logger.debug(f"文件被覆盖: {module_type}:{unit_name}:{relative_path} -> {override}")
            return override
        return self.get_dir_path(unit_name, module_type) / normalize_relative(relative_path)

    async def read_file(
        self, module_type: str, unit_name: str, relative_path: str, encoding: str = "utf-8"
    ) -> str:
        """读取文件内容（覆盖优先）"""
        path = self.resolve_file(module_type, unit_name, relative_path)
        return await asyncio.to_thread(path.read_text, encoding=encoding)

    def list_files(
        self,
        module_type: str,
        pattern: Optional[Union[str, "re.Pattern[str]"]] = None,
        recursive: bool = True,
    ) -> List[ModuleFile]:
        """
        列出所有已加载单元某个模块类型目录下的文件

        覆盖单元（作为别名注册的单元）不会被重复扫描。

        Args:
            module_type: 模块类型
            pattern: 文件名正则过滤（re.search）
            recursive: 是否递归子目录

        Returns:
            List[ModuleFile]: 按加载顺序排列的文件
        """
        if module_type != ROOT_MODULE_TYPE and module_type not in self._module_types:
            if not any(module_type in d.module_types for d in self._descriptors.values()):
                raise ValueError(f"未知的模块类型: {module_type}")

        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        files: List[ModuleFile] = []

        for unit_name in self._order:
            if self._table.is_override_source(unit_name):
                continue
            try:
                dir_path = self.get_dir_path(unit_name, module_type)
            except ValueError:
                continue
            if not dir_path.is_dir():
                continue

            candidates = dir_path.rglob("*") if recursive else dir_path.glob("*")
            for file_path in sorted(candidates):
                if not file_path.is_file():
                    continue
                if regex is not None and not regex.search(file_path.name):
                    continue
                relative = file_path.relative_to(dir_path).as_posix()
                resolved = self._table.resolve_file(module_type, unit_name, relative, file_path)
                files.append(ModuleFile(unit_name, module_type, relative, file_path, resolved))

        return files

    def import_modules(
        self,
        module_type: str,
        pattern: Optional[Union[str, "re.Pattern[str]"]] = r"\.py$",
        recursive: bool = True,
    ) -> List[ImportedModule]:
        """
        导入所有已加载单元某个模块类型目录下的 Python 文件（覆盖优先）

        Raises:
            ManifestError: 文件导入失败
        """
        imported: List[ImportedModule] = []
        for module_file in self.list_files(module_type, pattern, recursive):
            module_name = "plugforge_modules." + re.sub(r"\W", "_", str(module_file.resolved_path.with_suffix("")))
            if module_name in sys.modules:
                imported.append(ImportedModule(module_file, sys.modules[module_name]))
                continue

            spec = importlib.util.spec_from_file_location(module_name, module_file.resolved_path)
            if spec is None or spec.loader is None:
                raise ManifestError(f"无法导入模块文件: {module_file.resolved_path}")
            module = importlib.util.module_from_spec(spec)
            sys.modules[module_name] = module
            try:
                spec.loader.exec_module(module)
            except Exception as e:
                del sys.modules[module_name]
                raise ManifestError(f"导入模块文件失败 {module_file.resolved_path}: {e}") from e

            self.logger.debug(f"导入模块文件: {module_file.unit}/{module_file.relative_path}")
            imported.append(ImportedModule(module_file, module))

        return imported


__all__ = ["ModuleFile", "ImportedModule", "ModuleFiles"]
