"""Collapse near-identical records reported by overlapping providers."""

import logging
from collections.abc import Callable, Hashable, Iterable
from typing import Any, Generic, TypeVar

from hazardwatch.models import ConflictHotspot, Outage

logger = logging.getLogger(__name__)

T = TypeVar("T")


def dedup_key(outage: Outage) -> str:
    """Dedup key for an outage: country, type and ~11 km location cell.

    Two providers reporting the same country-level event land on the
    same centroid, so their keys collide.
    """
    return (
        f"{outage.country_code}|{outage.type.value}|"
        f"{round(outage.lat, 1)}|{round(outage.lon, 1)}"
    )


def hotspot_key(hotspot: ConflictHotspot) -> str:
    """Dedup key for a conflict hotspot: one per country."""
    return hotspot.iso_code


def record_key(record: Outage | ConflictHotspot) -> str:
    """Dedup key for any canonical record, dispatched on its type."""
    if isinstance(record, ConflictHotspot):
        return hotspot_key(record)
    return dedup_key(record)


class Deduplicator(Generic[T]):
    """First-wins deduplication for one aggregation run.

    The first record inserted for a key is kept; later records with the
    same key are dropped and counted. Feed records in adapter priority
    order so the preferred provider wins.

    Example:
        >>> dedup = Deduplicator(record_key)
        >>> dedup.extend(ioda_outages)
        >>> dedup.extend(ooni_outages)
        >>> dedup.records
    """

    def __init__(self, key_func: Callable[[T], Hashable] = record_key) -> None:  # type: ignore[assignment]
        self._key_func = key_func
        self._seen: set[Hashable] = set()
        self._records: list[T] = []
        self.dropped = 0

    def add(self, record: T) -> bool:
        """Insert a record unless its key was already seen.

        Returns:
            True if the record was kept, False if it was a duplicate.
        """
        key = self._key_func(record)
        if key in self._seen:
            self.dropped += 1
            logger.debug(f"Dropping duplicate record {key}")
            return False
        self._seen.add(key)
        self._records.append(record)
        return True

    def extend(self, records: Iterable[T]) -> int:
        """Insert records in order; returns how many were kept."""
        return sum(1 for record in records if self.add(record))

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record: Any) -> bool:
        return self._key_func(record) in self._seen

    @property
    def records(self) -> list[T]:
        """Kept records in insertion order."""
        return list(self._records)


__all__ = ["Deduplicator", "dedup_key", "hotspot_key", "record_key"]
