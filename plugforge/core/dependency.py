"""
依赖图与排序

根据扩展单元声明的依赖构建依赖图，并给出确定性的加载顺序：
- 每个已启用单元在结果中恰好出现一次
- 每个单元的（集合内）依赖都严格排在它之前
- 多个单元同时可加载时保持清单中的原始顺序（稳定排序）
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from plugforge.core.errors import CycleError, ManifestError, UnknownUnitError
from plugforge.modules.logging import get_logger

if TYPE_CHECKING:
    from .descriptor import UnitDescriptor
    from .overrides import OverrideTable

logger = get_logger("DependencyGraph")


@dataclass
class DependencyNode:
    """依赖树节点"""

    name: str
    children: List["DependencyNode"] = field(default_factory=list)


class DependencyGraph:
    """
    依赖图（每个加载周期构建一次，之后只读）

    图中只保存集合内的依赖；集合外的依赖在构建时按宽松/严格模式处理。
    """

    def __init__(self, units: Sequence[str], dependencies: Mapping[str, Sequence[str]]):
        """
        Args:
            units: 参与排序的单元名称，按清单顺序
            dependencies: {单元名称: 依赖名称列表}，只应包含集合内的名称
        """
        self._units: Tuple[str, ...] = tuple(units)
        known = set(self._units)
        self._dependencies: Dict[str, Tuple[str, ...]] = {
            name: tuple(dep for dep in dependencies.get(name, ()) if dep in known) for name in self._units
        }

    @classmethod
    def from_descriptors(
        cls,
        descriptors: Iterable["UnitDescriptor"],
        strict: bool = False,
        override_table: Optional["OverrideTable"] = None,
    ) -> "DependencyGraph":
        """
        从扩展单元描述构建依赖图

        只有已启用的单元参与构建。依赖了集合外名称时：
        宽松模式下忽略该依赖，严格模式下抛出 UnknownUnitError。

        若提供覆盖表，覆盖者排在被覆盖者之后，被覆盖者继承覆盖者的依赖
        （被覆盖者会以覆盖者的入口点构造）。

        Raises:
            ManifestError: 单元名称重复
            CycleError: 单元依赖自身
            UnknownUnitError: 严格模式下依赖了集合外的单元
        """
        enabled = [d for d in descriptors if d.enabled]
        names: List[str] = []
        for descriptor in enabled:
            if descriptor.name in names:
                raise ManifestError(f"扩展单元名称重复: {descriptor.name}")
            names.append(descriptor.name)
        known = set(names)

        graph: Dict[str, List[str]] = {}
        for descriptor in enabled:
            deps: List[str] = []
            for dep in descriptor.dependencies:
                if dep == descriptor.name:
                    raise CycleError([dep, dep], f"扩展单元 {dep} 依赖自身")
                if dep in known:
                    deps.append(dep)
                elif strict:
                    raise UnknownUnitError(dep, f"扩展单元 {descriptor.name} 依赖的 {dep} 不在已启用集合中")
                else:
                    logger.debug(f"忽略集合外的依赖: {descriptor.name} -> {dep}")
            graph[descriptor.name] = deps

        if override_table is not None:
            for target, source in override_table.unit_overrides.items():
                if target not in known or source not in known:
                    continue
                inherited = [d for d in graph[source] if d not in (target, source)]
                graph[target] = list(dict.fromkeys(graph[target] + inherited))
                if target not in graph[source]:
                    graph[source].append(target)
                logger.debug(f"覆盖关系调整依赖: {source} 排在 {target} 之后，{target} 继承依赖 {inherited}")

        return cls(names, graph)

    @property
    def units(self) -> Tuple[str, ...]:
        return self._units

    def __contains__(self, name: object) -> bool:
        return name in self._dependencies

    def __len__(self) -> int:
        return len(self._units)

    def as_dict(self) -> Mapping[str, Tuple[str, ...]]:
        """返回只读的 {单元: 依赖} 映射"""
        return MappingProxyType(self._dependencies)

    def dependencies_of(self, name: str) -> Tuple[str, ...]:
        if name not in self._dependencies:
            raise UnknownUnitError(name)
        return self._dependencies[name]

    def dependents(self, name: str) -> List[str]:
        """返回直接依赖指定单元的所有单元（按清单顺序）"""
        return [unit for unit in self._units if name in self._dependencies[unit]]

    def sort(self) -> List[str]:
        """
        按依赖排序

        反复线性扫描剩余列表：依赖已全部解析的单元立即加入结果并移出，
        同一轮中新解析的单元可以满足后续单元。若一整轮没有移出任何单元，
        说明剩余单元中存在环。

        Returns:
            List[str]: 加载顺序

        Raises:
            CycleError: 存在循环依赖，异常中包含参与循环的名称链
        """
        remaining = list(self._units)
        resolved: List[str] = []
        resolved_set = set()

        while remaining:
            progressed = False
            for name in list(remaining):
                if all(dep in resolved_set for dep in self._dependencies[name]):
                    resolved.append(name)
                    resolved_set.add(name)
                    remaining.remove(name)
                    progressed = True
            if not progressed:
                chain = self._find_cycle(remaining)
                logger.error(f"依赖排序失败，存在循环依赖: {' -> '.join(chain)}")
                raise CycleError(chain)

        return resolved

    def _find_cycle(self, remaining: Sequence[str]) -> List[str]:
        """在剩余单元中找出一条环（剩余单元的每一个都至少有一个未解析的依赖）"""
        pending = set(remaining)
        path: List[str] = []
        current = remaining[0]
        while current not in path:
            path.append(current)
            current = next(dep for dep in self._dependencies[current] if dep in pending)
        return path[path.index(current):] + [current]

    def tree(self) -> List[DependencyNode]:
        """
        构建依赖树

        没有依赖的单元作为根节点；有依赖的单元挂在加载顺序中最后一个依赖的下面。

        Returns:
            List[DependencyNode]: 依赖森林的根节点列表
        """
        order = self.sort()
        position = {name: index for index, name in enumerate(order)}
        nodes: Dict[str, DependencyNode] = {}
        roots: List[DependencyNode] = []

        for name in order:
            node = DependencyNode(name)
            nodes[name] = node
            deps = self._dependencies[name]
            if not deps:
                roots.append(node)
            else:
                parent = max(deps, key=position.__getitem__)
                nodes[parent].children.append(node)

        return roots


def sort_units(units: Iterable["UnitDescriptor"], strict: bool = False) -> List[str]:
    """
    对已启用的扩展单元按依赖排序

    Args:
        units: 扩展单元描述
        strict: 是否对集合外的依赖报错

    Returns:
        List[str]: 加载顺序
    """
    return DependencyGraph.from_descriptors(units, strict=strict).sort()


__all__ = ["DependencyNode", "DependencyGraph", "sort_units"]
