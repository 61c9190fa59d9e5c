"""Configuration and logging setup for hazardwatch."""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

from pydantic import Field, SecretStr
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

# Default config file location
CONFIG_FILE_PATH = Path.home() / ".config" / "hazardwatch" / "config.toml"

_DEFAULT_TTL = 300


def _load_config_file(config_path: Path | None = None) -> dict[str, Any]:
    """Read the TOML config file.

    Returns:
        Parsed values, or an empty dict if the file is missing or unreadable.
    """
    path = config_path or CONFIG_FILE_PATH
    if not path.is_file():
        return {}
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as e:
        # Config file is optional
        logging.getLogger(__name__).warning(
            "Ignoring config file %s: %s", path, type(e).__name__
        )
        return {}


class _ConfigFileSource(PydanticBaseSettingsSource):
    """Settings source backed by ~/.config/hazardwatch/config.toml."""

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        # Values are produced all at once in __call__
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        fields = self.settings_cls.model_fields
        return {k: v for k, v in _load_config_file().items() if k in fields}


class Settings(BaseSettings):
    """hazardwatch settings.

    Sources, highest priority first: constructor arguments, HAZARDWATCH_*
    environment variables, the .env file, then the TOML config file.

    WattTime credentials are SecretStr, so they are masked in repr and
    never reach logs.
    """

    model_config = SettingsConfigDict(
        env_prefix="HAZARDWATCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    watttime_username: SecretStr | None = None
    watttime_password: SecretStr | None = None

    # Record TTLs per adapter (seconds), looked up through ttl_for()
    ttl_ioda: int = Field(default=300, ge=0)
    ttl_ioda_signals: int = Field(default=300, ge=0)
    ttl_ooni: int = Field(default=900, ge=0)
    ttl_pulse: int = Field(default=900, ge=0)
    ttl_watttime: int = Field(default=300, ge=0)
    ttl_views: int = Field(default=900, ge=0)  # monthly forecasts, runs get republished

    # WattTime tokens live 30 minutes upstream
    ttl_watttime_token: int = Field(default=1500, gt=0)
    token_refresh_margin: int = Field(default=300, ge=0)

    adapter_timeout: float = Field(default=15.0, gt=0)
    aggregate_timeout: float = Field(default=45.0, gt=0)
    max_concurrency: int = Field(default=8, ge=1)

    cache_db_path: str = "~/.cache/hazardwatch/cache.db"
    log_level: str = "INFO"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            _ConfigFileSource(settings_cls),
            file_secret_settings,
        )

    def has_watttime_credentials(self) -> bool:
        """True if both WattTime username and password are non-empty."""
        return bool(self.watttime_username) and bool(self.watttime_password)

    def ttl_for(self, source: str) -> int:
        """Record TTL for an adapter, five minutes if it has no setting."""
        return int(getattr(self, f"ttl_{source}", _DEFAULT_TTL))

    @staticmethod
    def get_credential_error_message(source: str) -> str:
        """Explain how to configure credentials for a source."""
        if source.lower() != "watttime":
            return f"Unknown data source: {source}. No credential configuration available."
        return (
            "WattTime requires authentication. "
            "Set HAZARDWATCH_WATTTIME_USERNAME and HAZARDWATCH_WATTTIME_PASSWORD "
            f"environment variables, or configure them in {CONFIG_FILE_PATH}"
        )


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the process-wide Settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached Settings so the next get_settings() reloads."""
    global _settings
    _settings = None


def configure_logging(level: str = "INFO") -> None:
    """Configure stdlib logging for hazardwatch."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


__all__ = [
    "Settings",
    "get_settings",
    "reset_settings",
    "configure_logging",
    "CONFIG_FILE_PATH",
]
