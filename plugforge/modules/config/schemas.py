"""宿主配置 Schema 定义"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class LogConfig(BaseModel):
    """日志配置（传给 configure_from_config）"""

    enabled: bool = Field(default=False, description="启用文件日志")
    format: str = Field(default="jsonl", description="文件日志格式: jsonl 或 text")
    directory: str = Field(default="logs", description="日志目录")
    level: str = Field(default="INFO", description="文件日志级别")
    console_level: str = Field(default="INFO", description="控制台日志级别")
    rotation: str = Field(default="10 MB", description="文件轮转触发条件")
    retention: str = Field(default="7 days", description="日志保留时间")
    compression: str = Field(default="zip", description="压缩格式")
    split_by_session: bool = Field(default=False, description="按会话分割日志文件")
    filter: Optional[List[str]] = Field(default=None, description="仅显示这些模块的 INFO/DEBUG 日志")

    model_config = {"extra": "ignore"}


class ExtensionsConfig(BaseModel):
    """扩展系统配置"""

    manifest: str = Field(default="extensions.toml", description="清单文件，相对于配置目录")
    local_path: str = Field(default="extensions", description="本地扩展单元目录，相对于配置目录")
    strict_dependencies: bool = Field(
        default=False, description="依赖了未启用或不存在的单元时报错（默认忽略该依赖）"
    )
    module_types: Dict[str, str] = Field(default_factory=dict, description="{模块类型: 默认目录}")
    settings: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict, description="{单元名称: 配置}，覆盖单元描述文件中的默认配置"
    )

    model_config = {"extra": "ignore"}


class HostConfig(BaseModel):
    """宿主主配置（config.toml）"""

    log: LogConfig = Field(default_factory=LogConfig)
    extensions: ExtensionsConfig = Field(default_factory=ExtensionsConfig)

    model_config = {"extra": "allow"}


__all__ = ["LogConfig", "ExtensionsConfig", "HostConfig"]
