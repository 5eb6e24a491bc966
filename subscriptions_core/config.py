"""Configuration management - loads subscriptions.yaml and environment variables."""

import os
from pathlib import Path
from typing import Dict, Optional

import yaml
from pydantic import ValidationError

from subscriptions_core.models import EmulatorConfig, SubscriptionLevel, SubscriptionsConfig


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


class Config:
    """Application configuration loader and manager.

    Loads subscriptions.yaml and provides validated access to:
    - Subscription level definitions
    - Receipt credential expiration settings
    - Emulated processor settings
    """

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to subscriptions.yaml. If not provided, uses CONFIG_PATH env var
                        or defaults to ./config/subscriptions.yaml
        """
        self._config_path = self._resolve_config_path(config_path)
        self._subscriptions_config: Optional[SubscriptionsConfig] = None
        self._load_config()

    def _resolve_config_path(self, config_path: Optional[str]) -> Path:
        """Resolve configuration file path from argument, env var, or default."""
        if config_path:
            return Path(config_path)

        env_path = os.getenv("CONFIG_PATH")
        if env_path:
            return Path(env_path)

        return Path("config/subscriptions.yaml")

    def _load_config(self) -> None:
        """Load and validate subscriptions.yaml configuration."""
        if not self._config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {self._config_path}\n"
                f"Please create config/subscriptions.yaml or set CONFIG_PATH environment variable"
            )

        try:
            with open(self._config_path, encoding="utf-8") as f:
                raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML configuration: {e}") from e

        if not raw_config:
            raise ConfigurationError(f"Configuration file is empty: {self._config_path}")

        try:
            self._subscriptions_config = SubscriptionsConfig(**raw_config)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    @property
    def subscriptions(self) -> SubscriptionsConfig:
        """Get validated subscriptions configuration."""
        if self._subscriptions_config is None:
            raise ConfigurationError("Configuration not loaded")
        return self._subscriptions_config

    @property
    def config_path(self) -> Path:
        """Get path to configuration file."""
        return self._config_path

    @property
    def levels(self) -> Dict[int, SubscriptionLevel]:
        """Get configured subscription levels keyed by level number."""
        return self.subscriptions.levels

    @property
    def badge_expiration(self) -> str:
        """ISO 8601 duration a receipt credential stays valid after payment."""
        return self.subscriptions.badge_expiration

    @property
    def badge_grace_period(self) -> str:
        """ISO 8601 grace duration added on top of the badge expiration."""
        return self.subscriptions.badge_grace_period

    @property
    def emulator_settings(self) -> EmulatorConfig:
        """Get emulated processor settings."""
        return self.subscriptions.emulator

    def reload(self) -> None:
        """Reload configuration from disk."""
        self._load_config()


# Global configuration instance
_config_instance: Optional[Config] = None


def get_config(config_path: Optional[str] = None) -> Config:
    """Get global configuration instance (singleton).

    Args:
        config_path: Optional path to configuration file (only used on first call)

    Returns:
        Config instance
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = Config(config_path)
    return _config_instance
