"""
Pytest 全局共享 fixtures

这个文件定义了跨多个测试模块共享的 fixtures：
- 捕获 loguru 日志
- 在临时目录中写入扩展单元和清单
"""

from pathlib import Path
from typing import Any, Callable, Dict, Generator, List, Optional

import pytest
import tomlkit
from loguru import logger

# 记录 init 顺序的扩展单元源码，宿主上需要预先设置 init_log 列表
RECORDING_UNIT_SOURCE = """
from plugforge import BaseExtensionUnit


class RecordingUnit(BaseExtensionUnit):
    async def init(self):
        self.host.init_log.append(self.name)


plugin_entrypoint = RecordingUnit
"""


@pytest.fixture
def log_messages() -> Generator[List[str], None, None]:
    """
    捕获测试期间的所有日志消息（DEBUG 及以上）

    Yields:
        List[str]: 日志消息列表
    """
    messages: List[str] = []
    handler_id = logger.add(lambda message: messages.append(str(message)), level="DEBUG", format="{message}")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def units_dir(tmp_path: Path) -> Path:
    path = tmp_path / "units"
    path.mkdir()
    return path


@pytest.fixture
def write_unit(units_dir: Path) -> Callable[..., Path]:
    """
    在 units_dir 下写入一个扩展单元目录

    用法:
        write_unit("blog", {"dependencies": ["db"]}, files={"routes/index.py": "..."})
    """

    def _write(
        name: str,
        descriptor: Optional[Dict[str, Any]] = None,
        source: Optional[str] = RECORDING_UNIT_SOURCE,
        files: Optional[Dict[str, str]] = None,
    ) -> Path:
        unit_dir = units_dir / name
        unit_dir.mkdir(parents=True, exist_ok=True)
        (unit_dir / "extension.toml").write_text(tomlkit.dumps(descriptor or {}), encoding="utf-8")
        if source is not None:
            (unit_dir / "plugin.py").write_text(source, encoding="utf-8")
        for relative_path, content in (files or {}).items():
            file_path = unit_dir / relative_path
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(content, encoding="utf-8")
        return unit_dir

    return _write


@pytest.fixture
def write_manifest(tmp_path: Path) -> Callable[[Dict[str, Any]], Path]:
    """在临时目录下写入 extensions.toml 清单"""

    def _write(entries: Dict[str, Any], name: str = "extensions.toml") -> Path:
        manifest_path = tmp_path / name
        manifest_path.write_text(tomlkit.dumps(entries), encoding="utf-8")
        return manifest_path

    return _write
