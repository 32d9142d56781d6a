"""Configuration management with lazy validation and environment overrides.

Environment variables:
- TWEETRATER_API_KEY: Override api.api_key
- TWEETRATER_MODEL: Override model.model
- TWEETRATER_STREAMING: Override pipeline.streaming ("1", "true", "yes" enable it)
"""

import os
from pathlib import Path
from functools import cached_property
from typing import Any, Dict

from tweetrater.models.config import APIConfig, Config, ModelConfig, PipelineConfig, StorageConfig
from tweetrater.utils.logging import get_logger


logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "tweetrater" / "config.yaml"


def apply_env_overrides(config: Config) -> Config:
    """Return a copy of config with TWEETRATER_* environment overrides applied."""
    data: Dict[str, Any] = config.model_dump()

    api_key = os.environ.get("TWEETRATER_API_KEY")
    if api_key:
        data["api"]["api_key"] = api_key

    model = os.environ.get("TWEETRATER_MODEL")
    if model:
        data["model"]["model"] = model

    streaming = os.environ.get("TWEETRATER_STREAMING")
    if streaming is not None:
        data["pipeline"]["streaming"] = streaming.strip().lower() in ("1", "true", "yes")

    return Config(**data)


class ConfigManager:
    """
    Configuration manager with lazy validation.

    Loads config file and validates sections only when first accessed.

    Example:
        >>> config_mgr = ConfigManager.load_default()
        >>> api_config = config_mgr.api  # Validates API config on first access
    """

    def __init__(self, config: Config):
        """
        Initialize config manager with loaded config.

        Args:
            config: Loaded and validated Config instance
        """
        self._config = config

    @classmethod
    def load_default(cls) -> "ConfigManager":
        """
        Load configuration from the default path (~/.config/tweetrater/config.yaml).

        A missing file is not an error: defaults plus environment overrides are used.

        Raises:
            PermissionError: If config file has wrong permissions
            ValueError: If config is invalid
        """
        if not DEFAULT_CONFIG_PATH.exists():
            logger.info("config_defaults_used", path=str(DEFAULT_CONFIG_PATH))
            return cls(apply_env_overrides(Config()))
        return cls.load_from_path(DEFAULT_CONFIG_PATH)

    @classmethod
    def load_from_path(cls, path: Path) -> "ConfigManager":
        """
        Load configuration from specific path.

        Args:
            path: Path to config.yaml file

        Returns:
            ConfigManager instance with loaded config

        Raises:
            FileNotFoundError: If config file doesn't exist
            PermissionError: If config file has wrong permissions
            ValueError: If config is invalid
        """
        logger.info("config_loading", path=str(path))

        try:
            config = apply_env_overrides(Config.load(path))
            logger.info("config_loaded", path=str(path))
            return cls(config)

        except FileNotFoundError as e:
            logger.error("config_not_found", path=str(path), error=str(e))
            raise

        except PermissionError as e:
            logger.error("config_permission_error", path=str(path), error=str(e))
            raise

        except Exception as e:
            logger.error("config_validation_error", path=str(path), error=str(e))
            raise ValueError(f"Configuration validation failed: {e}") from e

    @property
    def config(self) -> Config:
        return self._config

    @cached_property
    def api(self) -> APIConfig:
        return self._config.api

    @cached_property
    def model(self) -> ModelConfig:
        return self._config.model

    @cached_property
    def pipeline(self) -> PipelineConfig:
        return self._config.pipeline

    @cached_property
    def storage(self) -> StorageConfig:
        return self._config.storage
