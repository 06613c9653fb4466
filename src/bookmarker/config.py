"""Configuration management."""

import os
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv

from .models.config import AppConfig, EnvSettings


class ConfigError(Exception):
    """Configuration-related error."""

    pass


class ConfigManager:
    """Manages application configuration from config.yaml and an optional .env."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config_dir: Configuration directory path. Defaults to ~/.bookmark-manager
        """
        if config_dir is None:
            env_config_dir = os.environ.get("BOOKMARKER_CONFIG_DIR")
            if env_config_dir:
                config_dir = Path(env_config_dir)
            else:
                config_dir = Path.home() / '.bookmark-manager'

        self.config_dir = Path(config_dir)
        self.config_file = self.config_dir / 'config.yaml'
        self.env_file = self.config_dir / '.env'

    def load_env_settings(self) -> EnvSettings:
        """Load environment overrides, reading .env first when it exists.

        Returns:
            EnvSettings instance

        Raises:
            ConfigError: If a value is invalid
        """
        if self.env_file.exists():
            load_dotenv(self.env_file)

        try:
            return EnvSettings()
        except Exception as e:
            raise ConfigError(f"Invalid environment settings: {e}") from e

    def load_app_config(self) -> AppConfig:
        """Load application configuration from config.yaml.

        Returns:
            AppConfig instance

        Raises:
            ConfigError: If config file is missing or invalid
        """
        if not self.config_file.exists():
            raise ConfigError(
                f"Config file not found at {self.config_file}. "
                f"Run 'bookmarker init' to create configuration."
            )

        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)

            if data is None:
                data = {}

            if not isinstance(data, dict):
                raise ConfigError("config.yaml must contain a mapping")

            return AppConfig(**data)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in config file: {e}") from e
        except ConfigError:
            raise
        except Exception as e:
            raise ConfigError(f"Failed to load config: {e}") from e

    def save_app_config(self, config: AppConfig) -> None:
        """Save application configuration to config.yaml.

        Args:
            config: AppConfig instance to save

        Raises:
            ConfigError: If save fails
        """
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)

            data = config.model_dump(mode='json')

            with open(self.config_file, 'w', encoding='utf-8') as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)

        except Exception as e:
            raise ConfigError(f"Failed to save config: {e}") from e

    def load(self) -> AppConfig:
        """Load config.yaml and apply environment overrides."""
        config = self.load_app_config()
        env_settings = self.load_env_settings()

        overrides = {}
        if env_settings.data_dir:
            overrides["data_dir"] = env_settings.data_dir
        if env_settings.log_level:
            overrides["log_level"] = env_settings.log_level

        if overrides:
            config = config.model_copy(update=overrides)

        return config

    def get_data_dir(self, config: AppConfig) -> Path:
        """Directory holding the database and the search index."""
        if config.data_dir:
            return Path(config.data_dir).expanduser()

        return self.config_dir

    def get_database_path(self, config: AppConfig) -> Path:
        return self.get_data_dir(config) / config.database_filename

    def get_index_path(self, config: AppConfig) -> Path:
        return self.get_data_dir(config) / config.index_dirname

    def ensure_data_dir(self, config: AppConfig) -> Path:
        """Create the data directory if needed and check it is writable.

        Raises:
            ConfigError: If the directory cannot be created or written
        """
        path = self.get_data_dir(config)

        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigError(f"Failed to create data directory {path}: {e}") from e

        if not path.is_dir():
            raise ConfigError(f"Data path is not a directory: {path}")

        if not os.access(path, os.W_OK):
            raise ConfigError(f"Data directory is not writable: {path}")

        return path
