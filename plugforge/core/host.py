"""
ExtensionHost - 扩展宿主

对外的编程接口，组合以下组件：
- ExtensionManager: 扩展单元加载与查询
- Container: 依赖注入容器
- ModuleFiles: 模块类型与文件访问（覆盖优先）
- EventBus: 宿主生命周期事件
- ManifestEditor: 清单编辑
"""

from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from plugforge.core.dependency import DependencyNode
from plugforge.core.errors import ConfigError
from plugforge.core.event_bus import HOST_STOP, EventBus
from plugforge.core.extension_manager import ExtensionManager
from plugforge.core.manifest import ManifestEditor
from plugforge.core.module_files import ImportedModule, ModuleFiles
from plugforge.core.resolver import ImportResolver, Resolver
from plugforge.modules.config import ConfigService
from plugforge.modules.di import Container, ServiceDefinition
from plugforge.modules.logging import configure_from_config, get_logger

ServiceDefinitionLike = Union[ServiceDefinition, Mapping[str, Any]]


class ExtensionHost:
    """
    扩展宿主

    使用示例:
        host = ExtensionHost.from_config_dir("config")
        await host.load_extensions()
        blog = host.get_extension("blog")
        db = host.get_service("db")
        await host.stop()
    """

    def __init__(
        self,
        manifest_path: Optional[str | Path] = None,
        local_path: Optional[str | Path] = None,
        module_types: Optional[Mapping[str, str]] = None,
        settings: Optional[Mapping[str, Mapping[str, Any]]] = None,
        strict_dependencies: bool = False,
        resolver: Optional[Resolver] = None,
    ):
        """
        Args:
            manifest_path: 清单文件路径
            local_path: 本地扩展单元目录
            module_types: {模块类型: 默认目录}
            settings: {单元名称: 配置}，覆盖描述文件中的默认配置
            strict_dependencies: 依赖了集合外的单元时是否报错
            resolver: 入口点解析器，默认按文件/模块路径动态导入
        """
        self.manifest_path = Path(manifest_path) if manifest_path is not None else None
        self.local_path = Path(local_path) if local_path is not None else None
        self.settings: Dict[str, Dict[str, Any]] = {k: dict(v) for k, v in (settings or {}).items()}
        self.config_service: Optional[ConfigService] = None

        self.event_bus = EventBus()
        self.container = Container(self)
        self.module_files = ModuleFiles(module_types)
        self.extension_manager = ExtensionManager(self, resolver or ImportResolver(), strict_dependencies)
        self.logger = get_logger("ExtensionHost")

    @classmethod
    def from_config_dir(
        cls, config_dir: str | Path, mode: Optional[str] = None, resolver: Optional[Resolver] = None
    ) -> "ExtensionHost":
        """
        根据配置目录创建宿主

        读取 config.toml（及 config.<mode>.toml），按 [log] 配置日志，
        按 [extensions] 配置清单路径、本地单元目录、模块类型和单元配置。

        Raises:
            ConfigError: 配置缺失或无效
        """
        config_service = ConfigService(config_dir, mode)
        host_config = config_service.initialize()
        configure_from_config(host_config.log.model_dump())

        extensions_config = host_config.extensions
        host = cls(
            manifest_path=config_service.resolve_path(extensions_config.manifest),
            local_path=config_service.resolve_path(extensions_config.local_path),
            module_types=extensions_config.module_types,
            settings=extensions_config.settings,
            strict_dependencies=extensions_config.strict_dependencies,
            resolver=resolver,
        )
        host.config_service = config_service
        return host

    # 扩展单元

    async def load_extensions(self, manifest_path: Optional[str | Path] = None) -> Dict[str, Any]:
        """
        读取清单并加载所有启用的扩展单元

        任何错误都会中止加载，此时注册表保持为空。

        Returns:
            Dict[str, Any]: {名称: 实例}
        """
        path = Path(manifest_path) if manifest_path is not None else self.manifest_path
        if path is None:
            raise ConfigError("未指定清单文件")
        return await self.extension_manager.load_manifest(path, self.local_path, self.settings)

    def get_extension(self, name: str) -> Any:
        """获取扩展单元实例，不存在时抛出 UnknownUnitError"""
        return self.extension_manager.get_extension(name)

    def has_extension(self, name: str) -> bool:
        return self.extension_manager.has_extension(name)

    @property
    def extensions(self) -> Mapping[str, Any]:
        return self.extension_manager.extensions

    @property
    def load_order(self) -> List[str]:
        return self.extension_manager.load_order

    def get_tree(self) -> List[DependencyNode]:
        return self.extension_manager.tree()

    # 依赖注入

    def get_service(self, name: str) -> Any:
        return self.container.get_service(name)

    def get_module(self, service_type: str, name: str) -> Any:
        return self.container.get_module(service_type, name)

    def add_service(self, definition: ServiceDefinitionLike) -> None:
        self.container.add_service(definition)

    def add_services(self, definitions: Iterable[ServiceDefinitionLike]) -> None:
        self.container.add_services(definitions)

    def add_module(self, service_type: str, definition: ServiceDefinitionLike) -> None:
        self.container.add_module(service_type, definition)

    def add_service_dir(self, dir_path: str | Path, pattern: str = "*.py") -> List[str]:
        return self.container.add_service_dir(dir_path, pattern)

    # 模块类型与文件

    def add_module_type(self, key: str, default_path: str) -> None:
        self.module_files.add_module_type(key, default_path)

    def resolve_file(self, module_type: str, unit_name: str, relative_path: str) -> Path:
        return self.module_files.resolve_file(module_type, unit_name, relative_path)

    async def read_file(self, module_type: str, unit_name: str, relative_path: str) -> str:
        return await self.module_files.read_file(module_type, unit_name, relative_path)

    def import_modules(
        self, module_type: str, pattern: Optional[str] = r"\.py$", recursive: bool = True
    ) -> List[ImportedModule]:
        return self.module_files.import_modules(module_type, pattern, recursive)

    # 清单编辑

    def _manifest_editor(self) -> ManifestEditor:
        if self.manifest_path is None:
            raise ConfigError("未指定清单文件")
        return ManifestEditor(self.manifest_path)

    def add_extension(self, name: str, path: Optional[str] = None, local: bool = False) -> bool:
        return self._manifest_editor().add(name, path=path, local=local)

    def remove_extension(self, name: str) -> bool:
        return self._manifest_editor().remove(name)

    def enable_extension(self, name: str) -> bool:
        return self._manifest_editor().enable(name)

    def disable_extension(self, name: str) -> bool:
        return self._manifest_editor().disable(name)

    # 生命周期

    async def stop(self) -> None:
        """停止宿主，通知所有 host.stop 监听器后清除事件监听器"""
        self.logger.info("正在停止宿主...")
        await self.event_bus.emit(HOST_STOP, None, source="ExtensionHost")
        self.event_bus.clear()
        self.logger.info("宿主已停止")


__all__ = ["ExtensionHost"]
