"""依赖注入：服务容器与扩展单元构造上下文"""

from .container import DEFAULT_TYPE, Container, ServiceDefinition, check_service_definition
from .context import UnitContext

__all__ = [
    "DEFAULT_TYPE",
    "Container",
    "ServiceDefinition",
    "check_service_definition",
    "UnitContext",
]
