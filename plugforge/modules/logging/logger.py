"""日志配置模块。

此模块提供延迟初始化的日志配置，避免在导入时添加处理器。
应在宿主启动时调用 configure_from_config() 进行配置。
"""

import json
import os
import sys
import time
from contextlib import suppress
from pathlib import Path

from loguru import logger as loguru_logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[module]}</cyan> - <level>{message}</level>"
)

# 模块级状态变量
_CONFIGURED = False  # 追踪 configure_from_config() 是否已被调用
_HANDLER_IDS: list[int] = []  # 追踪处理器 ID 以便清理
_DEFAULT_HANDLER_ID: int | None = None  # 追踪默认处理器
_LOGURU_DEFAULT_HANDLER_ID = 0  # loguru 导入时自带的处理器


def _ensure_default_handler():
    """确保默认 stderr 处理器存在（延迟初始化）。

    若 configure_from_config() 尚未被调用，则创建一个默认的 stderr 处理器。
    这确保了在配置前调用 get_logger() 仍然能正常工作。
    """
    global _DEFAULT_HANDLER_ID
    if _DEFAULT_HANDLER_ID is None and not _CONFIGURED:
        # 只替换 loguru 自带的处理器，宿主应用自己添加的处理器保持不变
        with suppress(ValueError):
            loguru_logger.remove(_LOGURU_DEFAULT_HANDLER_ID)
        _DEFAULT_HANDLER_ID = loguru_logger.add(
            sys.stderr,
            level="INFO",
            colorize=True,
            format=CONSOLE_FORMAT,
            filter=_build_module_filter(None),
        )
    return _DEFAULT_HANDLER_ID


def _build_module_filter(filter_config):
    """根据配置构造模块过滤器，WARNING 及以上级别总是显示

    未绑定模块名的记录（例如宿主应用直接使用 loguru）补上 module="unknown"。
    """
    if callable(filter_config):
        custom_filter = filter_config
    elif filter_config:
        filter_modules = set(filter_config)

        def custom_filter(record):
            if record["extra"]["module"] in filter_modules:
                return True
            return record["level"].no >= loguru_logger.level("WARNING").no

    else:
        custom_filter = None

    def module_filter(record):
        record["extra"].setdefault("module", "unknown")
        return custom_filter is None or custom_filter(record)

    return module_filter


def configure_from_config(config_dict: dict | None = None) -> None:
    """从配置字典配置日志。

    此函数应在宿主启动时调用一次。
    调用此函数后，get_logger() 将使用配置的处理器。

    Args:
        config_dict: 日志配置字典，包含以下键：
            - enabled: bool - 启用文件日志（默认：False）
            - format: Literal["jsonl", "text"] - 文件日志格式（默认："jsonl"）
            - directory: str - 日志目录路径（默认："logs"）
            - level: str - 文件日志级别（默认："INFO"）
            - rotation: str - 文件轮转触发条件（默认："10 MB"）
            - retention: str - 日志保留时间（默认："7 days"）
            - compression: str - 压缩格式（默认："zip"）
            - split_by_session: bool - 是否按会话分割日志文件（默认：False）
            - console_level: str - 控制台日志级别（默认："INFO"）
            - filter: list[str] - 模块过滤器列表（仅显示这些模块的日志）
    """
    global _CONFIGURED, _DEFAULT_HANDLER_ID

    _CONFIGURED = True
    config_dict = config_dict or {}

    enabled = config_dict.get("enabled", False)
    log_format = config_dict.get("format", "jsonl")
    directory = config_dict.get("directory", "logs")
    level = config_dict.get("level", "INFO")
    rotation = config_dict.get("rotation", "10 MB")
    retention = config_dict.get("retention", "7 days")
    compression = config_dict.get("compression", "zip")
    split_by_session = config_dict.get("split_by_session", False)
    console_level = config_dict.get("console_level", "INFO")

    # 完全移除已有处理器以避免日志重复
    loguru_logger.remove()
    _DEFAULT_HANDLER_ID = None
    _HANDLER_IDS.clear()

    stderr_handler_id = loguru_logger.add(
        sys.stderr,
        level=console_level,
        colorize=True,
        format=CONSOLE_FORMAT,
        filter=_build_module_filter(config_dict.get("filter")),
    )
    _HANDLER_IDS.append(stderr_handler_id)

    if not enabled:
        return

    if not os.path.exists(directory):
        try:
            os.makedirs(directory, exist_ok=True)
        except OSError as e:
            loguru_logger.bind(module="Logging").warning(f"无法创建日志目录 {directory}，将仅使用控制台输出: {e}")
            return

    if split_by_session:
        timestamp_str = time.strftime("%Y%m%d_%H%M%S")
    else:
        timestamp_str = time.strftime("%Y-%m-%d")

    if log_format == "jsonl":
        file_path_for_json = str(Path(directory) / f"plugforge_{timestamp_str}.jsonl")

        def json_sink(message):
            """自定义 JSONL sink，每行写入一个 JSON 对象。"""
            record = json.loads(message)["record"]
            log_obj = {
                "timestamp": record["time"]["repr"],
                "level": record["level"]["name"],
                "module": record["extra"].get("module", "unknown"),
                "message": record["message"],
            }
            with open(file_path_for_json, "a", encoding="utf-8") as f:
                f.write(json.dumps(log_obj, ensure_ascii=False) + "\n")

        _HANDLER_IDS.append(loguru_logger.add(json_sink, level=level, serialize=True))
    else:
        file_path = os.path.join(directory, f"plugforge_{timestamp_str}.log")
        _HANDLER_IDS.append(
            loguru_logger.add(
                file_path,
                level=level,
                format=CONSOLE_FORMAT,
                filter=_build_module_filter(None),
                rotation=rotation,
                retention=retention,
                compression=compression,
                encoding="utf-8",
            )
        )


def get_logger(module_name: str):
    """获取绑定了模块名的 logger 实例。

    若尚未调用 configure_from_config()，则会自动创建一个默认的 stderr 处理器。

    Args:
        module_name: 模块名称，用于标识日志来源

    Returns:
        绑定了模块名的 loguru logger 实例
    """
    _ensure_default_handler()
    return loguru_logger.bind(module=module_name)


__all__ = ["get_logger", "configure_from_config"]
