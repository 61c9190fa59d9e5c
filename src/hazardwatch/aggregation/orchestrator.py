"""Fan-out aggregation across unreliable hazard providers.

Calls every adapter concurrently under a concurrency bound and a
per-adapter timeout, collects one SourceResult per adapter, and merges
records in adapter list order through a fresh Deduplicator. A failing,
slow or misbehaving provider only ever removes its own records.
"""

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, Field

from hazardwatch.adapters.base import SourceAdapter
from hazardwatch.aggregation.arcs import build_arcs
from hazardwatch.aggregation.dedup import Deduplicator, hotspot_key, record_key
from hazardwatch.cache import CacheManager, cache_key
from hazardwatch.config import Settings, get_settings
from hazardwatch.models import (
    ConflictData,
    ConflictHotspot,
    FetchWindow,
    Outage,
    ResultStatus,
    SourceCategory,
    SourceResult,
)
from hazardwatch.radius import apply_radius

logger = logging.getLogger(__name__)


class RunReport(BaseModel):
    """Summary of one aggregation run."""

    sources_succeeded: list[str] = Field(default_factory=list)
    sources_failed: list[str] = Field(default_factory=list)
    statuses: dict[str, ResultStatus] = Field(default_factory=dict)
    record_counts: dict[str, int] = Field(default_factory=dict)
    skipped_counts: dict[str, int] = Field(default_factory=dict)
    duplicates_dropped: int = 0
    total_records: int = 0


class AggregationOrchestrator:
    """Runs adapters concurrently and merges their records.

    Each call to ``aggregate`` is an independent run with its own dedup
    state. The optional cache is shared across runs; when present, each
    adapter's records are memoized for the adapter's TTL and the last
    good records are served if a refresh fails.
    """

    def __init__(
        self,
        cache: CacheManager | None = None,
        settings: Settings | None = None,
        max_concurrency: int | None = None,
        adapter_timeout: float | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            cache: Optional shared cache for record memoization.
            settings: Optional Settings instance.
            max_concurrency: Max adapters in flight at once.
            adapter_timeout: Per-adapter timeout in seconds.
        """
        self._cache = cache
        self._settings = settings or get_settings()
        self._max_concurrency = max_concurrency or self._settings.max_concurrency
        self._adapter_timeout = adapter_timeout or self._settings.adapter_timeout
        self.last_run: RunReport | None = None

    async def aggregate(
        self,
        adapters: Sequence[SourceAdapter],
        timeout: float | None = None,
        window: FetchWindow | None = None,
    ) -> list[Any]:
        """Run all adapters and merge their records.

        Args:
            adapters: Adapters in priority order; earlier ones win dedup ties.
            timeout: Overall deadline in seconds. Adapters still running at
                the deadline are cancelled; completed results are kept.
            window: Optional time/geo bounds passed to every adapter.

        Returns:
            Deduplicated records. Empty if every adapter failed.
        """
        results = await self._query_sources_concurrently(adapters, timeout, window)

        dedup: Deduplicator[Any] = Deduplicator(record_key)
        for result in results:
            dedup.extend(result.records)

        records = dedup.records
        apply_radius(r for r in records if isinstance(r, Outage))

        report = self._build_report(results, dedup.dropped, len(records))
        self.last_run = report
        logger.info(
            f"Aggregation complete: {report.total_records} records, "
            f"{report.duplicates_dropped} duplicates dropped, "
            f"{len(report.sources_succeeded)}/{len(results)} sources succeeded"
        )
        return records

    async def aggregate_outages(
        self,
        adapters: Sequence[SourceAdapter],
        timeout: float | None = None,
        window: FetchWindow | None = None,
    ) -> list[Outage]:
        """Aggregate outage adapters into deduplicated outages with radii."""
        records = await self.aggregate(adapters, timeout=timeout, window=window)
        return [r for r in records if isinstance(r, Outage)]

    async def aggregate_conflicts(
        self,
        adapters: Sequence[SourceAdapter],
        timeout: float | None = None,
    ) -> ConflictData:
        """Aggregate conflict adapters into hotspots plus derived arcs.

        Hotspots are deduplicated per country (first adapter wins) and
        sorted by forecasted fatalities, highest first.
        """
        results = await self._query_sources_concurrently(adapters, timeout, None)

        dedup: Deduplicator[ConflictHotspot] = Deduplicator(hotspot_key)
        for result in results:
            dedup.extend(r for r in result.records if isinstance(r, ConflictHotspot))

        hotspots = sorted(dedup.records, key=lambda h: h.forecasted_fatalities, reverse=True)
        arcs = build_arcs(hotspots)

        self.last_run = self._build_report(results, dedup.dropped, len(hotspots))
        logger.info(f"Processed {len(hotspots)} hotspots and {len(arcs)} arcs")

        forecast_run = next(
            (getattr(a, "forecast_run", None) for a in adapters if getattr(a, "forecast_run", None)),
            None,
        )
        return ConflictData(hotspots=hotspots, arcs=arcs, forecast_run=forecast_run)

    async def _query_sources_concurrently(
        self,
        adapters: Sequence[SourceAdapter],
        timeout: float | None,
        window: FetchWindow | None,
    ) -> list[SourceResult]:
        """Query all adapters concurrently.

        Returns one SourceResult per adapter, in adapter order.
        """
        if not adapters:
            return []

        semaphore = asyncio.Semaphore(self._max_concurrency)
        deadline = timeout if timeout is not None else self._settings.aggregate_timeout

        async def query_single(adapter: SourceAdapter) -> SourceResult:
            async with semaphore:
                try:
                    return await asyncio.wait_for(
                        self._fetch(adapter, window), timeout=self._adapter_timeout
                    )
                except asyncio.TimeoutError:
                    logger.warning(
                        f"Adapter {adapter.source_name} timed out after {self._adapter_timeout}s"
                    )
                    return SourceResult(
                        source_name=adapter.source_name,
                        status=ResultStatus.TIMED_OUT,
                        error=f"timed out after {self._adapter_timeout}s",
                    )
                except Exception as e:
                    logger.error(f"Unexpected error from {adapter.source_name}: {e}")
                    return SourceResult(
                        source_name=adapter.source_name,
                        status=ResultStatus.UNAVAILABLE,
                        error=str(e) or type(e).__name__,
                    )

        tasks = [asyncio.create_task(query_single(adapter)) for adapter in adapters]
        done, pending = await asyncio.wait(tasks, timeout=deadline)

        if pending:
            logger.warning(f"Aggregation deadline of {deadline}s hit; cancelling {len(pending)} sources")
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        results: list[SourceResult] = []
        for adapter, task in zip(adapters, tasks):
            if task in done and not task.cancelled() and task.exception() is None:
                results.append(task.result())
                continue
            if task in done and not task.cancelled():
                logger.error(f"Unexpected task exception from {adapter.source_name}: {task.exception()}")
            results.append(
                SourceResult(
                    source_name=adapter.source_name,
                    status=ResultStatus.TIMED_OUT,
                    error="cancelled at aggregation deadline",
                )
            )
        return results

    async def _fetch(self, adapter: SourceAdapter, window: FetchWindow | None) -> SourceResult:
        if self._cache is None:
            return await adapter.fetch_result(window)

        source = adapter.source_name
        fresh: list[SourceResult] = []

        async def loader() -> dict[str, Any] | None:
            result = await adapter.fetch_result(window)
            fresh.append(result)
            if not result.ok:
                return None
            return {"records": [r.model_dump(mode="json") for r in result.records]}

        key = cache_key(
            source, "records", window=window.model_dump(mode="json") if window else None
        )
        data = await self._cache.get_or_refresh(
            key, loader, ttl_seconds=self._settings.ttl_for(source), source=source
        )

        if fresh and fresh[0].ok:
            return fresh[0]
        if data is None:
            # Refresh failed and there is nothing to fall back to
            return fresh[0] if fresh else SourceResult(source_name=source, status=ResultStatus.NO_DATA)

        if fresh:
            logger.warning(
                f"Serving last good records for {source} after {fresh[0].status.value}"
            )
        records = self._rehydrate(adapter.category, data.get("records", []))
        return SourceResult(
            source_name=source,
            status=ResultStatus.SUCCESS if records else ResultStatus.NO_DATA,
            records=records,
            error=fresh[0].error if fresh else None,
        )

    @staticmethod
    def _rehydrate(category: SourceCategory, items: list[dict[str, Any]]) -> list[Any]:
        model = ConflictHotspot if category == SourceCategory.CONFLICT else Outage
        return [model.model_validate(item) for item in items]

    @staticmethod
    def _build_report(results: list[SourceResult], dropped: int, total: int) -> RunReport:
        report = RunReport(duplicates_dropped=dropped, total_records=total)
        for result in results:
            report.statuses[result.source_name] = result.status
            report.record_counts[result.source_name] = len(result.records)
            report.skipped_counts[result.source_name] = result.skipped
            if result.ok:
                report.sources_succeeded.append(result.source_name)
            else:
                report.sources_failed.append(result.source_name)
        return report


__all__ = ["AggregationOrchestrator", "RunReport"]
