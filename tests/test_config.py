"""Tests for configuration module."""

import logging
from pathlib import Path

import pytest

from hazardwatch.config import (
    CONFIG_FILE_PATH,
    Settings,
    _load_config_file,
    configure_logging,
    get_settings,
    reset_settings,
)


class TestSettingsFromEnvironment:
    """Tests for loading settings from environment variables."""

    def test_watttime_credentials_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """WattTime credentials should be loaded from environment variables."""
        monkeypatch.setenv("HAZARDWATCH_WATTTIME_USERNAME", "test_user")
        monkeypatch.setenv("HAZARDWATCH_WATTTIME_PASSWORD", "test_pass")

        settings = Settings(_env_file=None)

        assert settings.watttime_username is not None
        assert settings.watttime_username.get_secret_value() == "test_user"
        assert settings.watttime_password is not None
        assert settings.watttime_password.get_secret_value() == "test_pass"

    def test_default_values_when_no_env(self) -> None:
        """Credentials default to None and TTLs to their documented values."""
        settings = Settings(_env_file=None)

        assert settings.watttime_username is None
        assert settings.watttime_password is None
        assert settings.ttl_ioda == 300
        assert settings.ttl_ooni == 900
        assert settings.ttl_views == 900
        assert settings.ttl_watttime_token == 1500
        assert settings.token_refresh_margin == 300
        assert settings.max_concurrency == 8

    def test_numeric_override_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Numeric settings are coerced from environment strings."""
        monkeypatch.setenv("HAZARDWATCH_ADAPTER_TIMEOUT", "7.5")
        monkeypatch.setenv("HAZARDWATCH_MAX_CONCURRENCY", "3")

        settings = Settings(_env_file=None)

        assert settings.adapter_timeout == 7.5
        assert settings.max_concurrency == 3


class TestSettingsFromConfigFile:
    """Tests for loading settings from TOML config file."""

    def test_load_from_config_file(self, tmp_path: Path) -> None:
        """Values are read from a TOML file."""
        config_file = tmp_path / "config.toml"
        config_file.write_text('watttime_username = "file_user"\nttl_pulse = 60\n')

        config_data = _load_config_file(config_file)

        assert config_data["watttime_username"] == "file_user"
        assert config_data["ttl_pulse"] == 60

    def test_missing_config_file_returns_empty(self, tmp_path: Path) -> None:
        """A missing config file is not an error."""
        assert _load_config_file(tmp_path / "missing.toml") == {}

    def test_invalid_toml_returns_empty(self, tmp_path: Path) -> None:
        """Malformed TOML is logged and ignored."""
        config_file = tmp_path / "config.toml"
        config_file.write_text("this is = = not toml")

        assert _load_config_file(config_file) == {}

    def test_env_overrides_config_file(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Environment variables take priority over the config file."""
        monkeypatch.setattr(
            "hazardwatch.config._load_config_file",
            lambda *a, **k: {"watttime_username": "file_user", "ttl_ooni": 42},
        )
        monkeypatch.setenv("HAZARDWATCH_WATTTIME_USERNAME", "env_user")

        settings = Settings(_env_file=None)

        assert settings.watttime_username is not None
        assert settings.watttime_username.get_secret_value() == "env_user"
        assert settings.ttl_ooni == 42

    def test_default_config_path(self) -> None:
        """Config file lives under ~/.config/hazardwatch."""
        assert CONFIG_FILE_PATH.parts[-3:] == (".config", "hazardwatch", "config.toml")


class TestCredentialHelpers:
    def test_has_watttime_credentials_requires_both(self) -> None:
        """Both username and password must be set."""
        assert not Settings(_env_file=None, watttime_username="u").has_watttime_credentials()
        assert Settings(
            _env_file=None, watttime_username="u", watttime_password="p"
        ).has_watttime_credentials()

    def test_repr_masks_credentials(self) -> None:
        """Credential values never appear in repr or str."""
        settings = Settings(_env_file=None, watttime_username="alice", watttime_password="hunter2")

        assert "hunter2" not in repr(settings)
        assert "alice" not in str(settings)
        assert "**********" in repr(settings)

    def test_credential_error_message(self) -> None:
        """Error message names the environment variables to set."""
        message = Settings.get_credential_error_message("WattTime")
        assert "HAZARDWATCH_WATTTIME_USERNAME" in message

    def test_unknown_source_error_message(self) -> None:
        assert "Unknown data source" in Settings.get_credential_error_message("acme")


class TestTTLLookup:
    def test_ttl_for_known_source(self) -> None:
        settings = Settings(_env_file=None)
        assert settings.ttl_for("pulse") == 900
        assert settings.ttl_for("ioda_signals") == 300

    def test_ttl_for_unknown_source_defaults(self) -> None:
        """Unknown adapters fall back to five minutes."""
        assert Settings(_env_file=None).ttl_for("acme") == 300


class TestSettingsSingleton:
    def test_get_settings_returns_same_instance(self) -> None:
        assert get_settings() is get_settings()

    def test_reset_settings_creates_new_instance(self) -> None:
        first = get_settings()
        reset_settings()
        assert get_settings() is not first


class TestConfigureLogging:
    def test_httpx_logger_quieted(self) -> None:
        """httpx request logging is raised to WARNING."""
        configure_logging("DEBUG")
        assert logging.getLogger("httpx").level == logging.WARNING
