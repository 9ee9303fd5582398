"""
plugforge 核心模块

包含核心组件:
- ExtensionHost: 扩展宿主（编程接口）
- ExtensionManager: 清单 → 覆盖 → 排序 → 加载流程
- EventBus: 宿主生命周期事件
- 错误类型
"""

from plugforge.core.errors import (
    ConfigError,
    CycleError,
    InitError,
    ManifestError,
    PlugforgeError,
    ServiceDefinitionError,
    UnknownServiceError,
    UnknownUnitError,
)
from plugforge.core.event_bus import EventBus
from plugforge.core.extension import BaseExtensionUnit, ExtensionUnit
from plugforge.core.extension_manager import ExtensionManager
from plugforge.core.host import ExtensionHost

__all__ = [
    "ExtensionHost",
    "ExtensionManager",
    "EventBus",
    "ExtensionUnit",
    "BaseExtensionUnit",
    "PlugforgeError",
    "ConfigError",
    "ManifestError",
    "UnknownUnitError",
    "CycleError",
    "InitError",
    "UnknownServiceError",
    "ServiceDefinitionError",
]
