"""Tests for configuration loading and management."""

import pytest

from subscriptions_core import config as config_module
from subscriptions_core.config import Config, ConfigurationError
from subscriptions_core.models import LevelType


class TestConfigurationLoading:
    """Test loading the shipped configuration."""

    def test_config_loads_successfully(self, config):
        assert config.config_path.exists()
        assert str(config.config_path).endswith("subscriptions.yaml")

    def test_levels_loaded(self, config):
        assert 500 in config.levels
        assert config.levels[500].type == LevelType.DONATION
        assert config.levels[201].type == LevelType.BACKUP

    def test_currency_codes_lowercased(self, config):
        assert "usd" in config.levels[500].currencies
        assert config.levels[500].currencies["usd"].template_id == "price_donation_500_usd"

    def test_badge_settings(self, config):
        assert config.badge_expiration == "P30D"
        assert config.badge_grace_period == "P15D"

    def test_emulator_settings(self, config):
        assert config.emulator_settings.id_prefix == "emulator"
        assert config.emulator_settings.billing_period == "P1M"


class TestConfigurationErrors:
    """Test invalid configuration handling."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            Config(str(tmp_path / "missing.yaml"))

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        with pytest.raises(ConfigurationError, match="empty"):
            Config(str(path))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("levels: [unclosed\n")
        with pytest.raises(ConfigurationError, match="parse YAML"):
            Config(str(path))

    def test_invalid_duration(self, tmp_path):
        path = tmp_path / "bad_duration.yaml"
        path.write_text("badge_expiration: thirty days\n")
        with pytest.raises(ConfigurationError, match="validation failed"):
            Config(str(path))

    def test_negative_level(self, tmp_path):
        path = tmp_path / "negative.yaml"
        path.write_text("levels:\n  -1:\n    badge: X\n")
        with pytest.raises(ConfigurationError, match="validation failed"):
            Config(str(path))


class TestConfigurationPath:
    """Test configuration path resolution."""

    def test_env_var_used(self, tmp_path, monkeypatch):
        path = tmp_path / "env.yaml"
        path.write_text("badge_expiration: P7D\n")
        monkeypatch.setenv("CONFIG_PATH", str(path))

        config = Config()

        assert config.config_path == path
        assert config.badge_expiration == "P7D"

    def test_reload_picks_up_changes(self, tmp_path):
        path = tmp_path / "reload.yaml"
        path.write_text("badge_expiration: P7D\n")
        config = Config(str(path))

        path.write_text("badge_expiration: P14D\n")
        config.reload()

        assert config.badge_expiration == "P14D"


class TestGlobalConfig:
    def test_get_config_returns_one_instance(self, config, monkeypatch):
        monkeypatch.setattr(config_module, "_config_instance", None)
        monkeypatch.setenv("CONFIG_PATH", str(config.config_path))

        first = config_module.get_config()

        assert config_module.get_config() is first
        assert first.config_path == config.config_path
