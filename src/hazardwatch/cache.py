"""Two-tier TTL cache with single-flight refresh for hazardwatch.

L1 is an in-process dict, L2 is SQLite (WAL mode) so the last good value
for an expensive upstream pull survives restarts. Auth tokens are kept in
L1 only. ``CacheManager.get_or_refresh`` is the accessor adapters use:
concurrent callers for the same expired key share one upstream call.
"""

import asyncio
import hashlib
import json
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import aiosqlite
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

Loader = Callable[[], Awaitable[dict[str, Any] | None]]

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS entries (
        key TEXT PRIMARY KEY,
        source TEXT NOT NULL,
        expires_at TEXT NOT NULL,
        entry TEXT NOT NULL
    )
"""


def cache_key(source: str, kind: str, **params: Any) -> str:
    """Build a deterministic key: ``{source}:{kind}:{hash}``.

    The hash is the first 12 hex chars of SHA256 over the params as
    sorted JSON, so keyword order never matters.
    """
    blob = json.dumps(params, sort_keys=True, default=str)
    digest = hashlib.sha256(blob.encode()).hexdigest()[:12]
    return f"{source}:{kind}:{digest}"


class CacheEntry(BaseModel):
    """A cached payload plus the metadata needed to age it."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
    )

    key: str
    data: dict[str, Any]
    created_at: datetime
    ttl_seconds: int
    source: str

    @property
    def expires_at(self) -> datetime:
        return self.created_at + timedelta(seconds=self.ttl_seconds)

    def expires_within(self, seconds: float = 0) -> bool:
        """True if the entry is expired ``seconds`` from now."""
        return datetime.now(timezone.utc) + timedelta(seconds=seconds) > self.expires_at

    @property
    def is_expired(self) -> bool:
        return self.expires_within(0)


class MemoryCache:
    """L1 tier: entries in a dict, lost on restart."""

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}

    async def get(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    async def set(self, key: str, entry: CacheEntry) -> None:
        self._entries[key] = entry

    async def invalidate(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None


class SQLiteCache:
    """L2 tier: entries serialized as JSON rows in a WAL-mode SQLite file.

    The connection is opened lazily on first use.
    """

    def __init__(self, db_path: str | Path = "~/.cache/hazardwatch/cache.db") -> None:
        self._db_path = Path(db_path).expanduser()
        self._conn: aiosqlite.Connection | None = None

    async def _connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = await aiosqlite.connect(str(self._db_path), timeout=30.0)
            await conn.execute("PRAGMA journal_mode=WAL")
            await conn.execute("PRAGMA synchronous=NORMAL")
            await conn.execute(_SCHEMA)
            await conn.commit()
            self._conn = conn
            logger.info(f"SQLite cache opened at {self._db_path}")
        return self._conn

    async def get(self, key: str) -> CacheEntry | None:
        conn = await self._connection()
        async with conn.execute("SELECT entry FROM entries WHERE key = ?", (key,)) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return CacheEntry.model_validate_json(row[0])

    async def set(self, key: str, entry: CacheEntry) -> None:
        conn = await self._connection()
        await conn.execute(
            "INSERT OR REPLACE INTO entries (key, source, expires_at, entry) VALUES (?, ?, ?, ?)",
            (key, entry.source, entry.expires_at.isoformat(), entry.model_dump_json()),
        )
        await conn.commit()

    async def invalidate(self, key: str) -> bool:
        conn = await self._connection()
        cursor = await conn.execute("DELETE FROM entries WHERE key = ?", (key,))
        await conn.commit()
        return cursor.rowcount > 0

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None


class CacheManager:
    """Coordinates the L1 and L2 tiers.

    Shared across aggregation runs and across the adapters inside one run.
    Refreshes go through ``get_or_refresh``, which holds one lock per key
    so a burst of callers for the same expired key triggers one upstream
    call.
    """

    def __init__(self, l1: MemoryCache | None = None, l2: SQLiteCache | None = None) -> None:
        self._l1 = l1 or MemoryCache()
        self._l2 = l2 or SQLiteCache()
        self._locks: dict[str, asyncio.Lock] = {}

    async def _lookup(self, key: str) -> CacheEntry | None:
        entry = await self._l1.get(key)
        if entry is not None:
            logger.debug(f"L1 hit: {key}")
            return entry
        entry = await self._l2.get(key)
        if entry is not None:
            logger.debug(f"L2 hit: {key}")
            await self._l1.set(key, entry)
        return entry

    async def set(
        self,
        key: str,
        data: dict[str, Any],
        ttl_seconds: int,
        source: str,
        persist: bool = True,
    ) -> None:
        """Store in L1 and, unless ``persist`` is False, in L2.

        Args:
            key: Cache key
            data: JSON-serializable payload
            ttl_seconds: Time-to-live in seconds
            source: Adapter name that owns the entry
            persist: Write through to SQLite. Use False for secrets.
        """
        entry = CacheEntry(
            key=key,
            data=data,
            created_at=datetime.now(timezone.utc),
            ttl_seconds=ttl_seconds,
            source=source,
        )
        await self._l1.set(key, entry)
        if persist:
            await self._l2.set(key, entry)

    async def get_or_refresh(
        self,
        key: str,
        loader: Loader,
        ttl_seconds: int,
        source: str,
        refresh_margin: float = 0,
        persist: bool = True,
    ) -> dict[str, Any] | None:
        """Return a fresh cached value, refreshing it at most once per burst.

        A value is fresh when it does not expire within ``refresh_margin``
        seconds. Otherwise the first caller runs ``loader`` while the rest
        wait on the same per-key lock and then read what it stored.

        If the loader raises or returns None, the last good value is
        served (even if expired). With no previous value, returns None.

        Args:
            key: Cache key
            loader: Zero-argument coroutine function producing the new value
            ttl_seconds: TTL for the refreshed value
            source: Adapter name
            refresh_margin: Seconds before expiry at which to refresh early
            persist: Write the refreshed value to SQLite
        """
        entry = await self._lookup(key)
        if entry is not None and not entry.expires_within(refresh_margin):
            return entry.data

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            # Another caller may have refreshed while we waited
            entry = await self._lookup(key)
            if entry is not None and not entry.expires_within(refresh_margin):
                return entry.data

            try:
                data = await loader()
            except Exception as e:
                logger.warning(f"Cache refresh failed for {key}: {e}")
                data = None

            if data is None:
                if entry is not None:
                    logger.warning(f"Serving last good value for {key}")
                    return entry.data
                return None

            await self.set(key, data, ttl_seconds, source, persist=persist)
            return data

    async def invalidate(self, key: str) -> bool:
        """Drop a key from both tiers. True if either tier held it."""
        in_l1 = await self._l1.invalidate(key)
        in_l2 = await self._l2.invalidate(key)
        return in_l1 or in_l2

    async def close(self) -> None:
        await self._l2.close()


__all__ = [
    "cache_key",
    "CacheEntry",
    "MemoryCache",
    "SQLiteCache",
    "CacheManager",
]
