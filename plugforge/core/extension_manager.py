"""
ExtensionManager - 扩展管理器

一次加载周期的完整流程：
- 读取清单和单元描述
- 解析覆盖关系（在排序之前，覆盖者必须排在被覆盖者之后）
- 构建依赖图并排序
- 按顺序构造并初始化扩展单元（写入暂存注册表，模块文件访问同时可用）
- 全部成功后才发布注册表，并发出 extensions.loaded 事件
"""

from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional

from plugforge.core.dependency import DependencyGraph, DependencyNode
from plugforge.core.errors import UnknownUnitError
from plugforge.core.event_bus import EXTENSIONS_LOADED
from plugforge.core.loader import ExtensionLoader
from plugforge.core.manifest import ManifestLoader
from plugforge.core.overrides import OverrideResolver, OverrideTable
from plugforge.modules.logging import get_logger

if TYPE_CHECKING:
    from .descriptor import UnitDescriptor
    from .host import ExtensionHost
    from .resolver import Resolver


class ExtensionManager:
    """
    扩展管理器

    职责：
    1. 驱动清单 → 覆盖 → 排序 → 加载的流程
    2. 保存加载结果（注册表、加载顺序、覆盖表、依赖图）
    3. 加载期间提供暂存注册表，使 init() 可以获取已初始化的依赖单元
    """

    def __init__(self, host: "ExtensionHost", resolver: "Resolver", strict_dependencies: bool = False):
        """
        Args:
            host: 宿主实例
            resolver: 入口点解析器
            strict_dependencies: 依赖了集合外的单元时是否报错
        """
        self.host = host
        self.resolver = resolver
        self.strict_dependencies = strict_dependencies
        self._extensions: Dict[str, Any] = {}
        self._staging: Optional[Dict[str, Any]] = None
        self._descriptors: Dict[str, "UnitDescriptor"] = {}
        self._order: List[str] = []
        self._table = OverrideTable()
        self._graph: Optional[DependencyGraph] = None
        self._loaded = False
        self.logger = get_logger("ExtensionManager")

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def extensions(self) -> Mapping[str, Any]:
        """已发布的注册表 {名称: 实例}（只读）"""
        return MappingProxyType(self._extensions)

    @property
    def load_order(self) -> List[str]:
        return list(self._order)

    @property
    def descriptors(self) -> Mapping[str, "UnitDescriptor"]:
        return MappingProxyType(self._descriptors)

    @property
    def override_table(self) -> OverrideTable:
        return self._table

    def _registry(self) -> Mapping[str, Any]:
        return self._staging if self._staging is not None else self._extensions

    def has_extension(self, name: str) -> bool:
        return name in self._registry()

    def get_extension(self, name: str) -> Any:
        """
        获取扩展单元实例

        加载期间查询暂存注册表（只包含已完成 init() 的单元）。

        Raises:
            UnknownUnitError: 单元不存在或尚未加载
        """
        registry = self._registry()
        if name not in registry:
            raise UnknownUnitError(name)
        return registry[name]

    async def load_manifest(
        self,
        manifest_path: str | Path,
        local_path: Optional[str | Path] = None,
        settings: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """读取清单并加载其中所有启用的扩展单元"""
        descriptors = ManifestLoader(manifest_path, local_path, settings).load()
        return await self.load(descriptors)

    async def load(self, descriptors: Iterable["UnitDescriptor"]) -> Dict[str, Any]:
        """
        加载扩展单元

        Args:
            descriptors: 扩展单元描述（按清单顺序）

        Returns:
            Dict[str, Any]: {名称: 实例}，被覆盖单元同时以覆盖者名称注册

        Raises:
            ManifestError: 名称重复、覆盖声明无效或入口点无法解析
            UnknownUnitError: 覆盖或（严格模式下）依赖了未知单元
            CycleError: 存在循环依赖
            InitError: 单元构造或 init() 失败
        """
        if self._loaded:
            self.logger.warning("扩展单元已加载，不支持重复加载")
            return dict(self._extensions)

        descriptors = list(descriptors)
        enabled = {d.name: d for d in descriptors if d.enabled}
        self.logger.info(f"开始加载扩展单元 ({len(enabled)} 个已启用)")

        table = OverrideResolver().resolve(descriptors)
        graph = DependencyGraph.from_descriptors(descriptors, self.strict_dependencies, table)
        order = graph.sort()
        self.logger.info(f"扩展单元加载顺序: {' -> '.join(order) if order else '(空)'}")

        loader = ExtensionLoader(self.host, self.resolver)
        # init() 期间的文件访问使用本次加载的描述和覆盖表
        self.host.module_files.bind(enabled, order, table)
        self._staging = {}
        try:
            registry = await loader.load(order, enabled, table, self._staging)
        except BaseException:
            self.host.module_files.bind(self._descriptors, self._order, self._table)
            raise
        finally:
            self._staging = None

        self._extensions = registry
        self._descriptors = enabled
        self._order = order
        self._table = table
        self._graph = graph
        self._loaded = True

        self.logger.info(f"扩展单元加载完成: {len(order)} 个")
        await self.host.event_bus.emit(EXTENSIONS_LOADED, list(order), source="ExtensionManager")
        return dict(registry)

    def tree(self) -> List[DependencyNode]:
        """返回已加载单元的依赖树"""
        return self._graph.tree() if self._graph is not None else []

    def dependents(self, name: str) -> List[str]:
        """返回依赖指定单元的已加载单元"""
        return self._graph.dependents(name) if self._graph is not None else []


__all__ = ["ExtensionManager"]
