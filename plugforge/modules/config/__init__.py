"""宿主配置：配置服务、Schema 与 TOML 工具"""

from .schemas import ExtensionsConfig, HostConfig, LogConfig
from .service import ConfigService

__all__ = [
    "ConfigService",
    "HostConfig",
    "LogConfig",
    "ExtensionsConfig",
]
