"""
扩展单元接口定义

扩展单元是可独立加载、声明依赖并带有初始化钩子的组件。
加载器只要求单元满足 ExtensionUnit 协议；BaseExtensionUnit 是可选的便捷基类。
"""

from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional, Protocol

from plugforge.modules.di.context import UnitContext
from plugforge.modules.logging import get_logger

if TYPE_CHECKING:
    from .host import ExtensionHost


class ExtensionUnit(Protocol):
    """
    扩展单元协议（接口）

    加载器的调用顺序：
    1. 以 (host, UnitContext) 构造
    2. 等待 init() 完成（此时所有依赖单元都已注册并初始化）
    3. 注册到 {名称: 实例} 注册表，存活到进程结束
    """

    name: str
    path: Path
    config: Dict[str, Any]

    async def init(self) -> None:
        """
        初始化扩展单元

        可以通过 host.get_extension() 获取已加载的依赖单元，
        通过 host.get_service() 获取容器中的服务。

        Raises:
            Exception: 任何异常都会以 InitError 中止整个加载流程
        """
        ...


class BaseExtensionUnit:
    """
    扩展单元基类（可选）

    提供：
    - 宿主、名称、路径、配置等属性
    - 绑定单元类名的 logger
    - 访问其他单元、服务和模块目录的便捷方法
    """

    def __init__(self, host: "ExtensionHost", context: UnitContext):
        """
        初始化扩展单元

        Args:
            host: 宿主实例，用于与其他单元和服务交互
            context: 构造上下文
        """
        if not context.name:
            raise ValueError("扩展单元没有名称")

        self.host = host
        self.name = context.name
        self.path = Path(context.path)
        self.config: Dict[str, Any] = dict(context.config)
        self.module_types: Dict[str, str] = dict(context.module_types)
        self.logger = get_logger(self.__class__.__name__)
        self.logger.debug(f"构造扩展单元: {self.name} ({self.__class__.__name__})")

    async def init(self) -> None:
        """默认实现（子类通常需要重写）"""
        self.logger.debug(f"扩展单元初始化: {self.name}")

    def get_module_dir(self, module_type: str) -> Optional[str]:
        """
        获取单元自定义的模块类型目录

        Args:
            module_type: 模块类型

        Returns:
            相对于单元根目录的路径，未自定义时返回 None
        """
        return self.module_types.get(module_type)

    def get_dir_path(self, module_type: str) -> Path:
        """获取该单元某个模块类型目录的绝对路径"""
        return self.host.module_files.get_dir_path(self.name, module_type)

    def get_extension(self, name: str) -> Any:
        """获取其他已加载的扩展单元"""
        return self.host.get_extension(name)

    def get_service(self, name: str) -> Any:
        """获取容器中的服务"""
        return self.host.get_service(name)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r} path={str(self.path)!r}>"


__all__ = ["ExtensionUnit", "BaseExtensionUnit", "UnitContext"]
