"""
依赖注入容器 - Container

按 (类型, 名称) 缓存服务实例：
- 首次 get 时惰性构造，之后总是返回同一个实例（每个容器内单例）
- 定义声明依赖列表，构造前递归解析依赖
- 解析栈记录当前调用链，重复进入同一名称时抛出包含完整链的 CycleError

容器独立于扩展加载流程，扩展单元也可以在 init() 中使用它。
"""

import importlib.util
import inspect
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from plugforge.core.errors import CycleError, ServiceDefinitionError, UnknownServiceError
from plugforge.modules.logging import get_logger

if TYPE_CHECKING:
    from plugforge.core.host import ExtensionHost

# 普通服务所属的类型，解析链中只显示名称
DEFAULT_TYPE = "service"

ServiceKey = Tuple[str, str]


@dataclass(frozen=True)
class ServiceDependency:
    """服务依赖引用"""

    name: str
    type: str = DEFAULT_TYPE

    @property
    def token(self) -> str:
        return make_token(self.type, self.name)


@dataclass(frozen=True)
class ServiceDefinition:
    """
    服务定义

    Attributes:
        name: 服务名称
        factory: 类或工厂函数，以 (host, *依赖实例) 调用
        dependencies: 依赖列表，元素为名称字符串或 {name, type} 映射
        dependencies_type: 字符串依赖所属的类型，默认为普通服务
    """

    name: str
    factory: Callable[..., Any]
    dependencies: Tuple[Union[str, Mapping[str, str]], ...] = field(default_factory=tuple)
    dependencies_type: Optional[str] = None

    def dependency_refs(self) -> List[ServiceDependency]:
        default_type = self.dependencies_type or DEFAULT_TYPE
        refs = []
        for dependency in self.dependencies:
            if isinstance(dependency, str):
                refs.append(ServiceDependency(dependency, default_type))
            else:
                refs.append(ServiceDependency(dependency["name"], dependency.get("type") or default_type))
        return refs


def make_token(service_type: str, name: str) -> str:
    return name if service_type == DEFAULT_TYPE else f"{service_type}:{name}"


def check_service_definition(definition: Any) -> ServiceDefinition:
    """
    校验服务定义并规范化为 ServiceDefinition

    接受 ServiceDefinition 或包含 name / factory（或 service）/ dependencies /
    dependencies_type 键的映射。

    Raises:
        ServiceDefinitionError: 定义无效
    """
    try:
        return _check_service_definition(definition)
    except ServiceDefinitionError as e:
        raise ServiceDefinitionError(f"{e}\n{definition!r}") from None


def _check_service_definition(definition: Any) -> ServiceDefinition:
    if isinstance(definition, ServiceDefinition):
        raw: Dict[str, Any] = {
            "name": definition.name,
            "factory": definition.factory,
            "dependencies": list(definition.dependencies),
            "dependencies_type": definition.dependencies_type,
        }
    elif isinstance(definition, Mapping):
        raw = dict(definition)
        if "factory" not in raw and "service" in raw:
            raw["factory"] = raw.pop("service")
    else:
        raise ServiceDefinitionError(f"无效的服务定义类型: {type(definition).__name__}")

    if raw.get("name") is None:
        raise ServiceDefinitionError("服务定义缺少 name")
    if raw.get("factory") is None:
        raise ServiceDefinitionError("服务定义缺少 factory")
    if not isinstance(raw["name"], str):
        raise ServiceDefinitionError(f"无效的服务名称类型: {type(raw['name']).__name__}")
    if not callable(raw["factory"]):
        raise ServiceDefinitionError(f"服务 {raw['name']} 的 factory 不可调用")

    dependencies = raw.get("dependencies")
    if dependencies is None:
        dependencies = []
    if not isinstance(dependencies, (list, tuple)):
        raise ServiceDefinitionError(f"服务 {raw['name']} 的 dependencies 必须是列表")

    for dependency in dependencies:
        if isinstance(dependency, str):
            continue
        if (
            isinstance(dependency, Mapping)
            and isinstance(dependency.get("name"), str)
            and isinstance(dependency.get("type"), (str, type(None)))
            and set(dependency) <= {"name", "type"}
        ):
            continue
        raise ServiceDefinitionError(f"服务 {raw['name']} 的依赖无效: {dependency!r}")

    dependencies_type = raw.get("dependencies_type")
    if dependencies_type is not None and not isinstance(dependencies_type, str):
        raise ServiceDefinitionError(f"服务 {raw['name']} 的 dependencies_type 必须是字符串")

    return ServiceDefinition(
        name=raw["name"],
        factory=raw["factory"],
        dependencies=tuple(dependencies),
        dependencies_type=dependencies_type,
    )


class Container:
    """
    依赖注入容器

    使用方式：
        container = Container(host)
        container.add_service({"name": "db", "factory": Database})
        container.add_service({"name": "repo", "factory": make_repo, "dependencies": ["db"]})
        repo = container.get_service("repo")  # make_repo(host, db)

        container.add_module("model", {"name": "user", "factory": UserModel, "dependencies": ["db"]})
        user_model = container.get_module("model", "user")
    """

    def __init__(self, host: Optional["ExtensionHost"] = None):
        """
        Args:
            host: 宿主实例，作为第一个参数传给所有工厂
        """
        self.host = host
        self._definitions: Dict[ServiceKey, ServiceDefinition] = {}
        self._instances: Dict[ServiceKey, Any] = {}
        self.logger = get_logger("Container")

    def add_service(self, definition: Union[ServiceDefinition, Mapping[str, Any]]) -> None:
        """注册普通服务定义"""
        self.add_module(DEFAULT_TYPE, definition)

    def add_services(self, definitions: Iterable[Union[ServiceDefinition, Mapping[str, Any]]]) -> None:
        for definition in definitions:
            self.add_service(definition)

    def add_module(self, service_type: str, definition: Union[ServiceDefinition, Mapping[str, Any]]) -> None:
        """
        注册某个类型下的服务定义

        Args:
            service_type: 服务类型（服务族），例如 "model"、"controller"
            definition: 服务定义

        Raises:
            ServiceDefinitionError: 定义或类型无效
        """
        if not isinstance(service_type, str) or not service_type:
            raise ServiceDefinitionError(f"无效的服务类型: {service_type!r}")

        checked = check_service_definition(definition)
        key = (service_type, checked.name)

        if key in self._definitions:
            self.logger.warning(f"服务 '{make_token(*key)}' 已注册，覆盖原有定义")
            self._instances.pop(key, None)

        self._definitions[key] = checked
        self.logger.debug(f"注册服务: {make_token(*key)}")

    def add_service_dir(self, dir_path: Union[str, Path], pattern: str = "*.py") -> List[str]:
        """
        导入目录中的服务定义文件并注册

        每个匹配的文件需要在模块级提供 service_definition（单个定义）
        或 service_definitions（定义列表）。

        Args:
            dir_path: 目录路径
            pattern: glob 模式

        Returns:
            List[str]: 注册的服务名称

        Raises:
            ServiceDefinitionError: 文件缺少服务定义或导入失败
        """
        dir_path = Path(dir_path)
        registered: List[str] = []

        for file_path in sorted(dir_path.glob(pattern)):
            if not file_path.is_file():
                continue
            module = self._import_definition_file(file_path)
            definitions = getattr(module, "service_definitions", None)
            if definitions is None:
                definition = getattr(module, "service_definition", None)
                if definition is None:
                    raise ServiceDefinitionError(f"文件中没有服务定义: {file_path}")
                definitions = [definition]

            for definition in definitions:
                self.add_service(definition)
                registered.append(check_service_definition(definition).name)

        self.logger.info(f"从目录 {dir_path} 注册了 {len(registered)} 个服务")
        return registered

    def _import_definition_file(self, file_path: Path):
        module_name = "plugforge_services." + re.sub(r"\W", "_", str(file_path.resolve().with_suffix("")))
        if module_name in sys.modules:
            return sys.modules[module_name]

        spec = importlib.util.spec_from_file_location(module_name, file_path)
        if spec is None or spec.loader is None:
            raise ServiceDefinitionError(f"无法导入服务文件: {file_path}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            del sys.modules[module_name]
            raise ServiceDefinitionError(f"导入服务文件失败 {file_path}: {e}") from e
        return module

    def has_service(self, name: str) -> bool:
        return (DEFAULT_TYPE, name) in self._definitions

    def has_module(self, service_type: str, name: str) -> bool:
        return (service_type, name) in self._definitions

    def get_modules(self, service_type: str) -> List[str]:
        """返回某个类型下已注册的服务名称（按注册顺序）"""
        return [name for (key_type, name) in self._definitions if key_type == service_type]

    def get_service(self, name: str) -> Any:
        """
        获取普通服务实例（惰性构造并缓存）

        Raises:
            UnknownServiceError: 服务未注册
            CycleError: 存在循环依赖
        """
        return self._resolve(DEFAULT_TYPE, name, [])

    def get_module(self, service_type: str, name: str) -> Any:
        """获取某个类型下的服务实例（惰性构造并缓存）"""
        return self._resolve(service_type, name, [])

    def _resolve(self, service_type: str, name: str, stack: List[str]) -> Any:
        key = (service_type, name)
        if key in self._instances:
            return self._instances[key]

        definition = self._definitions.get(key)
        if definition is None:
            raise UnknownServiceError(name, None if service_type == DEFAULT_TYPE else service_type)

        stack = stack + [make_token(service_type, name)]
        dependencies = []
        for ref in definition.dependency_refs():
            if ref.token in stack:
                chain = stack + [ref.token]
                raise CycleError(
                    chain, f"服务 {definition.name} 存在循环依赖，{ref.name} 已依赖 {definition.name} ({'->'.join(chain)})"
                )
            dependencies.append(self._resolve(ref.type, ref.name, stack))

        instance = self._create_instance(definition, dependencies)
        self._instances[key] = instance
        return instance

    def _create_instance(self, definition: ServiceDefinition, dependencies: List[Any]) -> Any:
        factory = definition.factory
        if inspect.isclass(factory):
            self.logger.debug(f"实例化服务类: {definition.name} ({factory.__name__})")
        else:
            self.logger.debug(f"调用服务工厂: {definition.name}")
        return factory(self.host, *dependencies)


__all__ = [
    "DEFAULT_TYPE",
    "ServiceDependency",
    "ServiceDefinition",
    "check_service_definition",
    "make_token",
    "Container",
]
