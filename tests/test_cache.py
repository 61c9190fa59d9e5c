"""Tests for cache module."""

import asyncio
from datetime import datetime, timedelta, timezone

from hazardwatch.cache import (
    CacheEntry,
    CacheManager,
    MemoryCache,
    SQLiteCache,
    cache_key,
)


def _entry(key: str, age_seconds: float, ttl_seconds: int = 3600, source: str = "ioda") -> CacheEntry:
    return CacheEntry(
        key=key,
        data={"value": key},
        created_at=datetime.now(timezone.utc) - timedelta(seconds=age_seconds),
        ttl_seconds=ttl_seconds,
        source=source,
    )


class TestCacheKey:
    """Tests for cache_key function."""

    def test_cache_key_deterministic(self) -> None:
        """Cache keys should be deterministic for same inputs."""
        assert cache_key("views", "records", run="a") == cache_key("views", "records", run="a")

    def test_cache_key_param_order_independent(self) -> None:
        """Cache keys should be independent of parameter order."""
        assert cache_key("ioda", "records", a=1, b=2) == cache_key("ioda", "records", b=2, a=1)

    def test_cache_key_format(self) -> None:
        """Cache keys should follow {adapter}:{query}:{hash} format."""
        key = cache_key("watttime", "token")
        assert key.startswith("watttime:token:")
        assert len(key.split(":")) == 3


class TestCacheEntry:
    """Tests for CacheEntry model."""

    def test_is_expired_false_when_within_ttl(self) -> None:
        assert not _entry("k", age_seconds=10).is_expired

    def test_is_expired_true_when_past_ttl(self) -> None:
        assert _entry("k", age_seconds=7200).is_expired

    def test_expires_within_margin(self) -> None:
        """An entry 24 minutes into a 25 minute TTL expires within 5 minutes."""
        entry = _entry("token", age_seconds=24 * 60, ttl_seconds=25 * 60)
        assert entry.expires_within(300)
        assert not _entry("token", age_seconds=60, ttl_seconds=25 * 60).expires_within(300)


class TestMemoryCache:
    """Tests for MemoryCache (L1)."""

    async def test_get_miss_returns_none(self) -> None:
        assert await MemoryCache().get("nonexistent") is None

    async def test_invalidate(self) -> None:
        cache = MemoryCache()
        await cache.set("a", _entry("a", 0))

        assert await cache.invalidate("a") is True
        assert await cache.invalidate("a") is False
        assert await cache.get("a") is None


class TestSQLiteCache:
    """Tests for SQLiteCache (L2)."""

    async def test_entries_survive_reconnect(self, tmp_path) -> None:
        """A new connection to the same file reads what the old one wrote."""
        db_path = tmp_path / "cache.db"
        first = SQLiteCache(db_path)
        await first.set("k", _entry("k", 0))
        await first.close()

        second = SQLiteCache(db_path)
        entry = await second.get("k")
        await second.close()

        assert entry is not None
        assert entry.data == {"value": "k"}
        assert entry.source == "ioda"
        assert not entry.is_expired


class TestCacheManager:
    """Tests for CacheManager coordinating L1 and L2."""

    async def test_l2_hit_promotes_to_l1(self, cache_manager: CacheManager) -> None:
        """A value found on disk is served and copied into memory."""
        await cache_manager._l2.set("k", _entry("k", 0))

        async def loader():
            raise AssertionError("loader must not run for a fresh L2 value")

        result = await cache_manager.get_or_refresh("k", loader, ttl_seconds=60, source="ioda")

        assert result == {"value": "k"}
        assert await cache_manager._l1.get("k") is not None

    async def test_set_without_persist_skips_sqlite(self, cache_manager: CacheManager) -> None:
        """Secrets stored with persist=False never reach disk."""
        await cache_manager.set("token", {"token": "abc"}, 60, "watttime", persist=False)

        assert await cache_manager._l1.get("token") is not None
        assert await cache_manager._l2.get("token") is None


class TestGetOrRefresh:
    """Tests for single-flight refresh."""

    async def test_fresh_value_skips_loader(self, cache_manager: CacheManager) -> None:
        """A fresh cached value is returned without calling the loader."""
        await cache_manager.set("k", {"v": 1}, 3600, "ioda")
        calls = 0

        async def loader():
            nonlocal calls
            calls += 1
            return {"v": 2}

        result = await cache_manager.get_or_refresh("k", loader, ttl_seconds=3600, source="ioda")

        assert result == {"v": 1}
        assert calls == 0

    async def test_miss_calls_loader_and_stores(self, cache_manager: CacheManager) -> None:
        async def loader():
            return {"v": 2}

        result = await cache_manager.get_or_refresh("k", loader, ttl_seconds=60, source="ioda")

        assert result == {"v": 2}
        cached = await cache_manager._l2.get("k")
        assert cached is not None
        assert cached.data == {"v": 2}

    async def test_concurrent_callers_share_one_refresh(self, cache_manager: CacheManager) -> None:
        """N concurrent callers for an expired key trigger one upstream call."""
        calls = 0

        async def loader():
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.05)
            return {"token": "fresh"}

        results = await asyncio.gather(
            *(
                cache_manager.get_or_refresh("token", loader, ttl_seconds=60, source="watttime")
                for _ in range(10)
            )
        )

        assert calls == 1
        assert all(r == {"token": "fresh"} for r in results)

    async def test_loader_failure_serves_last_good_value(self, cache_manager: CacheManager) -> None:
        """A failed refresh falls back to the expired value."""
        await cache_manager._l1.set(
            "k",
            CacheEntry(
                key="k",
                data={"v": "old"},
                created_at=datetime.now(timezone.utc) - timedelta(hours=2),
                ttl_seconds=60,
                source="ioda",
            ),
        )

        async def loader():
            raise RuntimeError("upstream down")

        result = await cache_manager.get_or_refresh("k", loader, ttl_seconds=60, source="ioda")

        assert result == {"v": "old"}

    async def test_loader_failure_without_value_returns_none(
        self, cache_manager: CacheManager
    ) -> None:
        async def loader():
            return None

        result = await cache_manager.get_or_refresh("k", loader, ttl_seconds=60, source="ioda")

        assert result is None

    async def test_refresh_margin_refreshes_early(self, cache_manager: CacheManager) -> None:
        """A value expiring inside the margin is refreshed before hard expiry."""
        await cache_manager._l1.set(
            "token",
            CacheEntry(
                key="token",
                data={"token": "old"},
                created_at=datetime.now(timezone.utc) - timedelta(minutes=24),
                ttl_seconds=25 * 60,
                source="watttime",
            ),
        )

        async def loader():
            return {"token": "new"}

        result = await cache_manager.get_or_refresh(
            "token",
            loader,
            ttl_seconds=25 * 60,
            source="watttime",
            refresh_margin=300,
            persist=False,
        )

        assert result == {"token": "new"}
        assert await cache_manager._l2.get("token") is None

    async def test_invalidate_removes_from_both_tiers(self, cache_manager: CacheManager) -> None:
        await cache_manager.set("k", {"v": 1}, 60, "ioda")

        assert await cache_manager.invalidate("k") is True
        assert await cache_manager._l1.get("k") is None
        assert await cache_manager._l2.get("k") is None
