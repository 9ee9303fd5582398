"""
入口点解析 - Resolver

把扩展单元描述中的入口点定位符解析为可构造对象（类或工厂函数）。
加载器只依赖 Resolver 协议，具体解析方式由宿主注入：
- ImportResolver: 按文件路径或模块路径动态导入
- RegistryResolver: 宿主预先注册的 {名称: 构造函数} 映射
"""

import importlib
import importlib.util
import re
import sys
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol

from plugforge.core.errors import ManifestError
from plugforge.modules.logging import get_logger

DEFAULT_ATTRIBUTE = "plugin_entrypoint"


class Resolver(Protocol):
    """入口点解析器协议"""

    def resolve(self, entry: str, unit_path: Path) -> Callable[..., Any]:
        """
        解析入口点

        Args:
            entry: 入口点定位符
            unit_path: 提供该入口点的扩展单元根目录

        Returns:
            可构造对象，将以 (host, UnitContext) 调用

        Raises:
            ManifestError: 入口点无法解析
        """
        ...


class ImportResolver:
    """
    动态导入解析器

    支持两种定位符：
    - "plugin.py:MyUnit": 相对于单元根目录的 Python 文件
    - "package.module:MyUnit": 可导入的模块路径
    省略 ":属性" 时使用模块的 plugin_entrypoint 属性。
    """

    def __init__(self, default_attribute: str = DEFAULT_ATTRIBUTE):
        self.default_attribute = default_attribute
        self.logger = get_logger("ImportResolver")

    def resolve(self, entry: str, unit_path: Path) -> Callable[..., Any]:
        target, _, attribute = entry.partition(":")
        attribute = attribute or self.default_attribute

        if target.endswith(".py"):
            module = self._import_file(Path(unit_path) / target)
        else:
            try:
                module = importlib.import_module(target)
            except ImportError as e:
                raise ManifestError(f"无法导入入口模块 '{target}': {e}") from e

        factory = getattr(module, attribute, None)
        if factory is None:
            raise ManifestError(f"入口模块 '{target}' 中未找到入口点 '{attribute}'")
        if not callable(factory):
            raise ManifestError(f"入口点 '{entry}' 不是可构造对象: {factory!r}")

        self.logger.debug(f"解析入口点成功: {entry} -> {factory}")
        return factory

    def _import_file(self, file_path: Path):
        file_path = file_path.resolve()
        if not file_path.is_file():
            raise ManifestError(f"入口文件不存在: {file_path}")

        module_name = "plugforge_units." + re.sub(r"\W", "_", str(file_path.with_suffix("")))
        if module_name in sys.modules:
            return sys.modules[module_name]

        spec = importlib.util.spec_from_file_location(module_name, file_path)
        if spec is None or spec.loader is None:
            raise ManifestError(f"无法为入口文件创建模块: {file_path}")

        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            del sys.modules[module_name]
            raise ManifestError(f"导入入口文件失败 {file_path}: {e}") from e
        return module


class RegistryResolver:
    """
    注册表解析器

    宿主预先把入口点名称映射到构造函数；未注册的名称交给 fallback 解析器
    （未设置 fallback 时抛出 ManifestError）。
    """

    def __init__(
        self,
        entries: Optional[Dict[str, Callable[..., Any]]] = None,
        fallback: Optional[Resolver] = None,
    ):
        self._entries: Dict[str, Callable[..., Any]] = dict(entries or {})
        self._fallback = fallback

    def register(self, entry: str, factory: Callable[..., Any]) -> None:
        if not callable(factory):
            raise TypeError(f"{entry} 的入口点必须可调用, got {type(factory)}")
        self._entries[entry] = factory

    def resolve(self, entry: str, unit_path: Path) -> Callable[..., Any]:
        if entry in self._entries:
            return self._entries[entry]
        if self._fallback is not None:
            return self._fallback.resolve(entry, unit_path)
        raise ManifestError(f"入口点未注册: {entry}")


__all__ = ["DEFAULT_ATTRIBUTE", "Resolver", "ImportResolver", "RegistryResolver"]
