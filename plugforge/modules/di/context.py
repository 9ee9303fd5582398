"""扩展单元构造上下文 - 通过构造函数注入的依赖"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping


@dataclass(frozen=True)
class UnitContext:
    """扩展单元的构造上下文（不可变）

    加载器以 (host, UnitContext) 构造每个扩展单元。
    被覆盖的单元以覆盖者的 config 构造，但 name 和 path 仍是被覆盖单元自身的。
    """

    name: str
    path: Path
    config: Mapping[str, Any] = field(default_factory=dict)
    module_types: Mapping[str, str] = field(default_factory=dict)
