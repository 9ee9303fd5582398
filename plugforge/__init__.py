"""plugforge - 扩展单元组合运行时"""

from plugforge.core import BaseExtensionUnit, ExtensionHost, PlugforgeError
from plugforge.modules.di import UnitContext

__version__ = "0.1.0"

__all__ = ["ExtensionHost", "BaseExtensionUnit", "UnitContext", "PlugforgeError", "__version__"]
