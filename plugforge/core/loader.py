"""
扩展加载器 - ExtensionLoader

按排序后的顺序逐个构造扩展单元并等待其 init() 完成。
加载严格串行：后面的单元可以假定前面的单元已完全初始化。
"""

import inspect
import time
from typing import TYPE_CHECKING, Any, Dict, Iterable, Mapping, Optional, Union

from plugforge.core.errors import InitError, UnknownUnitError
from plugforge.core.overrides import OverrideTable
from plugforge.modules.di.context import UnitContext
from plugforge.modules.logging import get_logger

if TYPE_CHECKING:
    from .descriptor import UnitDescriptor
    from .host import ExtensionHost
    from .resolver import Resolver


class ExtensionLoader:
    """
    扩展加载器

    职责：
    1. 跳过纯别名的覆盖单元（避免重复构造）
    2. 被覆盖的单元改用覆盖者的入口点和配置构造
    3. 构造实例并等待 init()，失败时以 InitError 中止整个加载
    4. 注册实例；被覆盖单元的实例同时以覆盖者的名称注册
    """

    def __init__(self, host: "ExtensionHost", resolver: "Resolver"):
        self.host = host
        self.resolver = resolver
        self.logger = get_logger("ExtensionLoader")

    async def load(
        self,
        order: Iterable[str],
        descriptors: Union[Mapping[str, "UnitDescriptor"], Iterable["UnitDescriptor"]],
        override_table: Optional[OverrideTable] = None,
        registry: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        按顺序加载扩展单元

        Args:
            order: 加载顺序（依赖排序的结果）
            descriptors: 扩展单元描述，{名称: 描述} 或描述列表
            override_table: 覆盖表，为 None 时视为没有覆盖
            registry: 用于填充的注册表；加载过程中 init() 可以通过宿主读取它

        Returns:
            Dict[str, Any]: {名称: 实例}

        Raises:
            UnknownUnitError: 顺序中的名称没有对应的描述
            ManifestError: 入口点无法解析
            InitError: 单元构造或 init() 失败
        """
        if not isinstance(descriptors, Mapping):
            descriptors = {d.name: d for d in descriptors}
        order = list(order)
        table = override_table if override_table is not None else OverrideTable()
        registry = registry if registry is not None else {}
        in_order = set(order)

        for name in order:
            descriptor = descriptors.get(name)
            if descriptor is None:
                raise UnknownUnitError(name)

            target = table.target_of(name)
            if target is not None and target in in_order:
                self.logger.debug(f"跳过覆盖单元 {name}（作为 {target} 的别名注册）")
                continue

            instance = await self._create_instance(name, descriptor, descriptors, table)

            registry[name] = instance
            overrider = table.overrider_of(name)
            if overrider is not None:
                registry[overrider] = instance
                self.logger.info(f"扩展单元加载成功: {name} (由 {overrider} 覆盖)")
            else:
                self.logger.info(f"扩展单元加载成功: {name}")

        return registry

    async def _create_instance(
        self,
        name: str,
        descriptor: "UnitDescriptor",
        descriptors: Mapping[str, "UnitDescriptor"],
        table: OverrideTable,
    ) -> Any:
        """解析入口点，构造实例并等待 init()"""
        entry = descriptor.entry
        config = descriptor.config
        entry_root = descriptor.path

        overrider = table.overrider_of(name)
        if overrider is not None:
            effective = descriptors.get(overrider)
            if effective is None:
                raise UnknownUnitError(overrider)
            entry = table.entry_overrides.get(overrider, effective.entry)
            config = effective.config
            entry_root = effective.path
            self.logger.debug(f"扩展单元 {name} 被 {overrider} 覆盖，使用入口点 {entry}")

        factory = self.resolver.resolve(entry, entry_root)
        context = UnitContext(
            name=name,
            path=descriptor.path,
            config=dict(config),
            module_types=dict(descriptor.module_types),
        )

        started = time.perf_counter()
        try:
            instance = factory(self.host, context)
            result = instance.init()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self.logger.error(f"扩展单元初始化失败 {name}: {e}")
            raise InitError(name, e) from e

        elapsed = (time.perf_counter() - started) * 1000
        self.logger.debug(f"扩展单元 {name} 初始化耗时 {elapsed:.3f} ms")
        return instance


__all__ = ["ExtensionLoader"]
