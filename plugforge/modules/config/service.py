"""
ConfigService - 宿主配置管理服务

职责:
- 加载配置目录下的 config.toml（必需）与 config.<mode>.toml（可选）
- 按模式合并配置：模式配置覆盖主配置
- 校验为 HostConfig，并提供配置节查询
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError

from plugforge.core.errors import ConfigError
from plugforge.modules.config.schemas import HostConfig
from plugforge.modules.config.toml_utils import deep_merge, load_data_file
from plugforge.modules.logging import get_logger

MAIN_CONFIG_NAME = "config.toml"
MODE_ENV_VAR = "PLUGFORGE_ENV"


def normalize_mode(mode: Optional[str]) -> str:
    """把运行模式规范化为 dev 或 prod"""
    if mode and mode.lower() in ("dev", "development"):
        return "dev"
    return "prod"


class ConfigService:
    """
    宿主配置服务

    使用示例:
        config_service = ConfigService("/path/to/config")
        config_service.initialize()
        extensions_config = config_service.host_config.extensions
        log_section = config_service.get_section("log")
    """

    def __init__(self, config_dir: str | Path, mode: Optional[str] = None):
        """
        Args:
            config_dir: 配置目录
            mode: 运行模式，默认读取环境变量 PLUGFORGE_ENV
        """
        self.config_dir = Path(config_dir)
        self.mode = normalize_mode(mode if mode is not None else os.environ.get(MODE_ENV_VAR))
        self._main_config: Dict[str, Any] = {}
        self._host_config: Optional[HostConfig] = None
        self._initialized = False
        self.logger = get_logger("ConfigService")

    @property
    def main_config(self) -> Dict[str, Any]:
        """合并后的原始配置字典"""
        if not self._initialized:
            self.logger.warning("ConfigService 未初始化，返回空配置")
            return {}
        return self._main_config

    @property
    def host_config(self) -> HostConfig:
        if self._host_config is None:
            raise ConfigError("ConfigService 未初始化")
        return self._host_config

    def initialize(self) -> HostConfig:
        """
        加载并校验配置

        Returns:
            HostConfig: 校验后的宿主配置

        Raises:
            ConfigError: 主配置缺失、无法解析或校验失败
        """
        if self._initialized:
            self.logger.warning("ConfigService 已经初始化，跳过重复初始化")
            return self.host_config

        main_path = self.config_dir / MAIN_CONFIG_NAME
        if not main_path.is_file():
            raise ConfigError(f"配置文件 '{main_path}' 不存在")

        config = self._load(main_path)
        mode_path = self.config_dir / f"config.{self.mode}.toml"
        if mode_path.is_file():
            config = deep_merge(config, self._load(mode_path))
            self.logger.debug(f"已合并模式配置: {mode_path}")

        try:
            self._host_config = HostConfig.model_validate(config)
        except ValidationError as e:
            raise ConfigError(f"配置文件 '{main_path}' 校验失败: {e}") from e

        self._main_config = config
        self._initialized = True
        self.logger.info(f"配置加载完成: {main_path} (模式: {self.mode})")
        return self._host_config

    def _load(self, path: Path) -> Dict[str, Any]:
        try:
            return load_data_file(path)
        except (OSError, ValueError) as e:
            self.logger.error(f"配置文件 '{path}' 加载失败: {e}")
            raise ConfigError(f"配置文件 '{path}' 加载失败: {e}") from e

    def get_section(self, section: str, default: Any = None) -> Dict[str, Any]:
        """
        获取配置节

        Args:
            section: 配置节名称（如 "log", "extensions"）
            default: 配置节不存在时返回的默认值
        """
        if not self._initialized:
            self.logger.warning("ConfigService 未初始化，返回空配置")
            return {} if default is None else default
        return self._main_config.get(section, {} if default is None else default)

    def get(self, key: str, default: Any = None, section: Optional[str] = None) -> Any:
        """获取配置项，指定 section 时在该配置节中查找"""
        source = self.get_section(section) if section else self.main_config
        return source.get(key, default)

    def resolve_path(self, relative_path: str | Path) -> Path:
        """把相对于配置目录的路径转为绝对路径"""
        return (self.config_dir / relative_path).resolve()


__all__ = ["MAIN_CONFIG_NAME", "MODE_ENV_VAR", "normalize_mode", "ConfigService"]
