"""
plugforge 异常定义

加载管线中的任何致命错误都会中止整个管线，宿主不会看到部分注册表。
警告（OverrideCollisionWarning）只记录日志，从不中止加载。
"""

from typing import List, Optional, Sequence


class PlugforgeError(Exception):
    """所有 plugforge 异常的基类"""

    pass


class ConfigError(PlugforgeError):
    """宿主配置文件缺失或格式无效"""

    pass


class ManifestError(PlugforgeError):
    """清单文件或扩展描述文件缺失、无法解析或内容无效"""

    pass


class UnknownUnitError(PlugforgeError):
    """覆盖声明、显式依赖或查询引用了不在加载集合中的扩展单元"""

    def __init__(self, name: str, message: Optional[str] = None):
        self.name = name
        super().__init__(message or f"未知的扩展单元: {name}")


class CycleError(PlugforgeError):
    """依赖排序或依赖注入解析时检测到循环依赖

    Attributes:
        chain: 参与循环的名称链，首尾相同（例如 ["a", "b", "a"]）
    """

    def __init__(self, chain: Sequence[str], message: Optional[str] = None):
        self.chain: List[str] = list(chain)
        super().__init__(message or f"检测到循环依赖: {self.format_chain()}")

    def format_chain(self) -> str:
        return " -> ".join(self.chain)


class InitError(PlugforgeError):
    """扩展单元构造或 init() 生命周期钩子失败，原始异常保存在 __cause__ 中"""

    def __init__(self, unit_name: str, cause: BaseException):
        self.unit_name = unit_name
        super().__init__(f"扩展单元初始化失败 (failed to init unit {unit_name}): {cause}")


class UnknownServiceError(PlugforgeError):
    """请求了容器中未注册的服务"""

    def __init__(self, name: str, service_type: Optional[str] = None):
        self.name = name
        self.service_type = service_type
        target = f"{service_type}:{name}" if service_type else name
        super().__init__(f"容器中未注册的服务: {target}")


class ServiceDefinitionError(PlugforgeError):
    """服务定义在注册时校验失败"""

    pass


class OverrideCollisionWarning(UserWarning):
    """同一个覆盖目标被多次声明，后注册者生效"""

    pass


__all__ = [
    "PlugforgeError",
    "ConfigError",
    "ManifestError",
    "UnknownUnitError",
    "CycleError",
    "InitError",
    "UnknownServiceError",
    "ServiceDefinitionError",
    "OverrideCollisionWarning",
]
