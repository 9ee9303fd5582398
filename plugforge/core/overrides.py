"""
覆盖解析 - OverrideTable 与 OverrideResolver

把扩展单元自身声明的覆盖关系转换为两张重定向表：
- unit_overrides: {被覆盖单元: 覆盖单元}
- file_overrides: {(模块类型, 目标单元, 相对文件): 覆盖文件绝对路径}

同一个键被多次声明时后注册者生效，并记录一条指明被取代者的警告。
覆盖是直接映射，不做传递解析。
"""

from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from types import MappingProxyType
from typing import TYPE_CHECKING, Dict, Iterable, List, Mapping, Optional, Tuple

from plugforge.core.errors import ManifestError, OverrideCollisionWarning, UnknownUnitError
from plugforge.modules.logging import get_logger

if TYPE_CHECKING:
    from .descriptor import UnitDescriptor

FileKey = Tuple[str, str, str]


def normalize_relative(relative_path: str) -> str:
    """规范化相对路径，使 './a/b' 与 'a//b' 等写法得到相同的键"""
    return PurePosixPath(str(relative_path).replace("\\", "/")).as_posix()


@dataclass(frozen=True)
class OverrideCollision:
    """一次覆盖冲突记录"""

    kind: str  # "unit" 或 "file"
    key: str
    winner: str
    loser: str

    def __str__(self) -> str:
        return f"{self.winner} 覆盖 {self.key}，取代了 {self.loser}"


class OverrideTable:
    """
    覆盖表

    由 OverrideResolver 在一次解析中填充，之后只被加载器和文件访问读取。
    """

    def __init__(self):
        self._unit_overrides: Dict[str, str] = {}
        self._entry_overrides: Dict[str, str] = {}
        self._file_overrides: Dict[FileKey, Path] = {}
        self._collisions: List[OverrideCollision] = []

    @property
    def unit_overrides(self) -> Mapping[str, str]:
        """{被覆盖单元: 覆盖单元}"""
        return MappingProxyType(self._unit_overrides)

    @property
    def entry_overrides(self) -> Mapping[str, str]:
        """{覆盖单元: 构造被覆盖单元时使用的替代入口点}"""
        return MappingProxyType(self._entry_overrides)

    @property
    def file_overrides(self) -> Mapping[FileKey, Path]:
        return MappingProxyType(self._file_overrides)

    @property
    def collisions(self) -> Tuple[OverrideCollision, ...]:
        return tuple(self._collisions)

    def overrider_of(self, name: str) -> Optional[str]:
        return self._unit_overrides.get(name)

    def target_of(self, name: str) -> Optional[str]:
        for target, source in self._unit_overrides.items():
            if source == name:
                return target
        return None

    def is_override_source(self, name: str) -> bool:
        return name in self._unit_overrides.values()

    def effective_unit(self, name: str) -> str:
        """返回实际提供该单元实现的单元名称"""
        return self._unit_overrides.get(name, name)

    def resolve_file(
        self, module_type: str, unit_name: str, relative_path: str, default: Optional[Path] = None
    ) -> Optional[Path]:
        """查询文件覆盖，未覆盖时返回 default"""
        return self._file_overrides.get((module_type, unit_name, normalize_relative(relative_path)), default)

    def _register_unit(self, target: str, source: str, logger) -> None:
        previous = self._unit_overrides.get(target)
        if previous is not None and previous != source:
            collision = OverrideCollision("unit", target, source, previous)
            self._collisions.append(collision)
            logger.warning(f"{OverrideCollisionWarning.__name__}: 扩展单元 {collision}")
        self._unit_overrides[target] = source

    def _register_file(self, key: FileKey, source: str, override_path: Path, logger) -> None:
        previous = self._file_overrides.get(key)
        if previous is not None and previous != override_path:
            collision = OverrideCollision("file", ":".join(key), f"{source} ({override_path})", str(previous))
            self._collisions.append(collision)
            logger.warning(f"{OverrideCollisionWarning.__name__}: 扩展单元 {collision}")
        self._file_overrides[key] = override_path


class OverrideResolver:
    """根据扩展单元的覆盖声明填充 OverrideTable"""

    def __init__(self, known_units: Optional[Iterable[str]] = None):
        """
        Args:
            known_units: 当前加载集合中的单元名称；为 None 时使用传入 resolve() 的已启用单元
        """
        self._known_units = set(known_units) if known_units is not None else None
        self.logger = get_logger("OverrideResolver")

    def resolve(self, descriptors: Iterable["UnitDescriptor"]) -> OverrideTable:
        """
        解析所有已启用单元的覆盖声明（按清单顺序，后注册者生效）

        Returns:
            OverrideTable: 覆盖表

        Raises:
            UnknownUnitError: 单元覆盖的目标不在加载集合中
            ManifestError: 单元覆盖自身，或形成覆盖链
        """
        enabled = [d for d in descriptors if d.enabled]
        known = self._known_units if self._known_units is not None else {d.name for d in enabled}
        table = OverrideTable()

        for descriptor in enabled:
            declaration = descriptor.overrides
            target = declaration.unit_target

            if target is not None:
                if target == descriptor.name:
                    raise ManifestError(f"扩展单元 {descriptor.name} 不能覆盖自身")
                if target not in known:
                    raise UnknownUnitError(target, f"扩展单元 {descriptor.name} 覆盖了未知的扩展单元 {target}")
                table._register_unit(target, descriptor.name, self.logger)
                if declaration.unit_entry:
                    table._entry_overrides[descriptor.name] = declaration.unit_entry
                self.logger.debug(f"注册单元覆盖: {descriptor.name} -> {target}")

            for module_type, file_target, relative_path, override_path in declaration.file_entries():
                if file_target not in known:
                    self.logger.debug(f"文件覆盖的目标单元不在加载集合中: {descriptor.name} -> {file_target}")
                key = (module_type, file_target, normalize_relative(relative_path))
                absolute = (Path(descriptor.path) / override_path).resolve()
                table._register_file(key, descriptor.name, absolute, self.logger)
                self.logger.debug(f"注册文件覆盖: {':'.join(key)} -> {absolute}")

        for target, source in table.unit_overrides.items():
            if source in table.unit_overrides:
                raise ManifestError(
                    f"不支持覆盖链: {table.unit_overrides[source]} 覆盖 {source}，而 {source} 又覆盖 {target}"
                )

        return table


__all__ = ["normalize_relative", "OverrideCollision", "OverrideTable", "OverrideResolver"]
