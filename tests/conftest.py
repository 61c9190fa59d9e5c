"""Shared pytest fixtures for hazardwatch tests."""

from pathlib import Path

import pytest

from hazardwatch.cache import CacheManager, MemoryCache, SQLiteCache
from hazardwatch.config import Settings, reset_settings


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch: pytest.MonkeyPatch):
    """Isolate tests from the user's config file and cached settings."""
    monkeypatch.setattr("hazardwatch.config._load_config_file", lambda *a, **k: {})
    for name in ("HAZARDWATCH_WATTTIME_USERNAME", "HAZARDWATCH_WATTTIME_PASSWORD"):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings() -> Settings:
    """Settings without credentials and with short timeouts."""
    return Settings(_env_file=None, adapter_timeout=2.0, aggregate_timeout=5.0)


@pytest.fixture
def watttime_settings() -> Settings:
    """Settings with WattTime credentials configured."""
    return Settings(
        _env_file=None,
        watttime_username="grid_user",
        watttime_password="grid_pass",
    )


@pytest.fixture
async def cache_manager(tmp_path: Path):
    """Provide a CacheManager backed by a temporary SQLite file."""
    manager = CacheManager(l1=MemoryCache(), l2=SQLiteCache(tmp_path / "cache.db"))
    yield manager
    await manager.close()
