"""日志系统单元测试。

测试 plugforge.modules.logging 模块的功能，包括：
- JSONL 和文本格式输出
- 控制台专用模式
- 模块过滤器
- 默认行为和延迟初始化
- 处理器清理
- 与宿主应用已有处理器共存
"""

import json
from pathlib import Path

import pytest
from loguru import logger


@pytest.fixture
def temp_log_dir(tmp_path):
    """测试期间的临时日志目录。"""
    log_dir = tmp_path / "logs"
    log_dir.mkdir(exist_ok=True)
    return str(log_dir)


@pytest.fixture(autouse=True)
def reset_logger_state():
    """测试间重置 logger 状态。"""
    from plugforge.modules.logging import logger as logger_module

    old_configured = logger_module._CONFIGURED
    old_handler_ids = logger_module._HANDLER_IDS.copy()
    old_default_handler_id = logger_module._DEFAULT_HANDLER_ID

    yield

    logger_module._CONFIGURED = old_configured
    logger_module._HANDLER_IDS.clear()
    logger_module._HANDLER_IDS.extend(old_handler_ids)
    logger_module._DEFAULT_HANDLER_ID = old_default_handler_id

    for handler_id in list(logger._core.handlers.keys()):
        logger.remove(handler_id)


class TestJSONLFormat:
    """测试 JSONL 格式输出。"""

    def test_jsonl_format(self, temp_log_dir):
        """验证 JSONL 输出为清晰 JSON 格式。"""
        from plugforge.modules.logging import configure_from_config, get_logger

        configure_from_config({"enabled": True, "format": "jsonl", "directory": temp_log_dir, "level": "INFO"})

        get_logger("test_module").info("Test message")

        log_files = list(Path(temp_log_dir).glob("plugforge_*.jsonl"))
        assert len(log_files) == 1, "应创建一个 JSONL 日志文件"

        with open(log_files[0], "r", encoding="utf-8") as f:
            log_obj = json.loads(f.readline().strip())

        assert log_obj["level"] == "INFO"
        assert log_obj["module"] == "test_module"
        assert log_obj["message"] == "Test message"
        assert "timestamp" in log_obj

    def test_level_filtering(self, temp_log_dir):
        """验证低于文件级别的日志不写入。"""
        from plugforge.modules.logging import configure_from_config, get_logger

        configure_from_config({"enabled": True, "format": "jsonl", "directory": temp_log_dir, "level": "WARNING"})
        test_logger = get_logger("level_test")
        test_logger.info("Info message")
        test_logger.warning("Warning message")

        log_files = list(Path(temp_log_dir).glob("*.jsonl"))
        with open(log_files[0], "r", encoding="utf-8") as f:
            lines = f.readlines()

        assert len(lines) == 1
        assert json.loads(lines[0])["message"] == "Warning message"


class TestTextFormat:
    """测试文本格式输出。"""

    def test_text_format(self, temp_log_dir):
        from plugforge.modules.logging import configure_from_config, get_logger

        configure_from_config({"enabled": True, "format": "text", "directory": temp_log_dir})
        get_logger("text_test").info("Text format message")

        log_files = list(Path(temp_log_dir).glob("plugforge_*.log"))
        assert len(log_files) == 1, "应创建一个文本日志文件"

        content = log_files[0].read_text(encoding="utf-8")
        assert "text_test" in content, "应包含模块名"
        assert "Text format message" in content, "应包含消息内容"
        assert "INFO" in content, "应包含日志级别"


class TestConsoleOnly:
    """测试控制台专用模式。"""

    def test_console_only(self, temp_log_dir):
        """验证 enabled=False 时不创建文件。"""
        from plugforge.modules.logging import configure_from_config, get_logger

        configure_from_config({"enabled": False, "directory": temp_log_dir})
        get_logger("console_test").info("Console only message")

        assert list(Path(temp_log_dir).glob("*")) == [], "enabled=False 时不应创建日志文件"

    def test_directory_creation(self, tmp_path):
        """验证缺失时创建目录。"""
        from plugforge.modules.logging import configure_from_config

        log_dir = tmp_path / "new_logs_dir"

        configure_from_config({"enabled": True, "format": "text", "directory": str(log_dir)})

        assert log_dir.is_dir(), "应自动创建日志目录"


class TestModuleFilter:
    """测试模块过滤器。"""

    def test_filter_keeps_warnings(self, capsys):
        from plugforge.modules.logging import configure_from_config, get_logger

        configure_from_config({"console_level": "DEBUG", "filter": ["wanted"]})
        get_logger("wanted").info("from wanted")
        get_logger("other").info("from other")
        get_logger("other").warning("warning from other")

        output = capsys.readouterr().err
        assert "from wanted" in output
        assert "from other" not in output.replace("warning from other", "")
        assert "warning from other" in output


class TestDefaultBehavior:
    """测试默认行为。"""

    def test_default_handler_created_lazily(self):
        """验证未配置时 get_logger 创建默认处理器。"""
        from plugforge.modules.logging import get_logger
        from plugforge.modules.logging import logger as logger_module

        logger_module._DEFAULT_HANDLER_ID = None
        logger_module._CONFIGURED = False

        get_logger("default_test").info("Default handler test")

        assert logger_module._DEFAULT_HANDLER_ID is not None, "应创建默认处理器"

    def test_configure_with_none(self):
        from plugforge.modules.logging import configure_from_config
        from plugforge.modules.logging import logger as logger_module

        configure_from_config(None)

        assert logger_module._CONFIGURED, "应标记为已配置"
        assert logger_module._DEFAULT_HANDLER_ID is None, "配置后应移除默认处理器"

    def test_reconfigure_replaces_handlers(self, temp_log_dir):
        """验证重新配置前正确移除处理器。"""
        from plugforge.modules.logging import configure_from_config
        from plugforge.modules.logging import logger as logger_module

        configure_from_config({"enabled": True, "format": "text", "directory": temp_log_dir})
        configure_from_config({"enabled": True, "format": "jsonl", "directory": temp_log_dir})

        assert len(logger_module._HANDLER_IDS) == 2, "重新配置后应有 2 个处理器（stderr + 文件）"
        assert len(logger._core.handlers) == 2, "loguru 应只有 2 个活动处理器"


class TestHostApplicationHandlers:
    """测试与宿主应用自有 loguru 处理器的共存。"""

    def test_existing_handler_kept(self, capsys):
        """验证 get_logger 之前添加的处理器仍能收到消息。"""
        from plugforge.modules.logging import get_logger
        from plugforge.modules.logging import logger as logger_module

        logger_module._DEFAULT_HANDLER_ID = None
        logger_module._CONFIGURED = False
        received = []
        logger.add(lambda message: received.append(message.record["message"]), format="{message}")

        get_logger("plugforge_module").info("bound message")
        logger.info("host message")

        assert received == ["bound message", "host message"]
        assert "Logging error" not in capsys.readouterr().err

    def test_unbound_record_gets_default_module(self, capsys):
        """验证未绑定模块名的记录以 unknown 输出。"""
        from plugforge.modules.logging import configure_from_config

        configure_from_config({"filter": ["wanted"]})
        logger.warning("plain host warning")

        output = capsys.readouterr().err
        assert "unknown" in output
        assert "plain host warning" in output
        assert "Logging error" not in output
