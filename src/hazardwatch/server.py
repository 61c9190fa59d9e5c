"""FastMCP server for hazardwatch aggregation tools."""

import asyncio
import atexit
import logging

from fastmcp import FastMCP

from hazardwatch.adapters import (
    IODAAdapter,
    IODASignalsAdapter,
    OONIAdapter,
    PulseAdapter,
    SourceAdapter,
    VIEWSAdapter,
    WattTimeAdapter,
)
from hazardwatch.aggregation import AggregationOrchestrator, RunReport
from hazardwatch.cache import CacheManager, SQLiteCache
from hazardwatch.config import configure_logging, get_settings
from hazardwatch.models import (
    ConflictIntensity,
    GridStressLevel,
    GridStressReading,
    Outage,
)

logger = logging.getLogger(__name__)

# Initialize FastMCP server
mcp = FastMCP("hazardwatch")

# Global instances (initialized on first use)
_cache: CacheManager | None = None
_orchestrator: AggregationOrchestrator | None = None
_outage_adapters: list[SourceAdapter] | None = None
_views: VIEWSAdapter | None = None
_watttime: WattTimeAdapter | None = None

_SEVERITY_ICONS = {"total": "[TOTAL]", "major": "[MAJOR]", "partial": "[PARTIAL]"}


def _get_cache() -> CacheManager:
    global _cache
    if _cache is None:
        _cache = CacheManager(l2=SQLiteCache(get_settings().cache_db_path))
    return _cache


def _get_orchestrator() -> AggregationOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = AggregationOrchestrator(cache=_get_cache(), settings=get_settings())
    return _orchestrator


def _get_watttime() -> WattTimeAdapter:
    global _watttime
    if _watttime is None:
        _watttime = WattTimeAdapter(cache=_get_cache(), settings=get_settings())
    return _watttime


def _get_views() -> VIEWSAdapter:
    global _views
    if _views is None:
        _views = VIEWSAdapter()
    return _views


def _get_outage_adapters() -> list[SourceAdapter]:
    """Outage adapters in dedup priority order."""
    global _outage_adapters
    if _outage_adapters is None:
        _outage_adapters = [
            IODAAdapter(),
            IODASignalsAdapter(),
            OONIAdapter(),
            PulseAdapter(),
            _get_watttime(),
        ]
    return _outage_adapters


async def _cleanup_resources() -> None:
    """Close all open resources (adapters, cache connections)."""
    global _cache, _orchestrator, _outage_adapters, _views, _watttime

    _orchestrator = None

    # Close adapters first, then cache (adapters may use cache)
    adapters: list[SourceAdapter] = list(_outage_adapters or [])
    if _views is not None:
        adapters.append(_views)
    if _watttime is not None and _watttime not in adapters:
        adapters.append(_watttime)
    for adapter in adapters:
        await adapter.close()
    _outage_adapters = None
    _views = None
    _watttime = None

    if _cache is not None:
        await _cache.close()
        _cache = None

    logger.debug("All resources cleaned up")


def _atexit_cleanup() -> None:
    """Synchronous atexit handler that runs async cleanup."""
    try:
        asyncio.run(_cleanup_resources())
    except RuntimeError as e:
        # No usable event loop at interpreter shutdown
        logger.debug(f"Cleanup error (non-fatal): {e}")


# Register cleanup on process exit
atexit.register(_atexit_cleanup)


def _format_sources(report: RunReport | None) -> str:
    if report is None:
        return ""
    lines = ["", "## Sources", ""]
    for name, status in report.statuses.items():
        count = report.record_counts.get(name, 0)
        lines.append(f"- {name}: {status.value} ({count} records)")
    if report.duplicates_dropped:
        lines.append(f"- duplicates merged: {report.duplicates_dropped}")
    return "\n".join(lines)


def _format_outage(outage: Outage) -> str:
    icon = _SEVERITY_ICONS.get(outage.severity.value, "")
    line = (
        f"- {icon} **{outage.country}** ({outage.country_code}) - "
        f"{outage.type.value}: {outage.description}"
    )
    details = [f"source: {outage.source}"]
    if outage.radius_km is not None:
        details.append(f"radius ~{round(outage.radius_km)} km")
    if outage.affected_population:
        details.append(f"population ~{outage.affected_population:,}")
    if outage.start_time:
        details.append(f"since {outage.start_time}")
    return f"{line}\n  {', '.join(details)}"


def _format_reading(reading: GridStressReading) -> str:
    return (
        f"- **{reading.region}** ({reading.country_code}) - "
        f"{reading.stress_level.value}: {reading.description}"
    )


@mcp.tool()
async def hazard_outages(country: str = "") -> str:
    """Current internet and power outages aggregated across providers.

    Combines IODA, OONI, Internet Society Pulse and WattTime grid stress,
    collapsing reports of the same event from several providers into one.

    Args:
        country: Optional ISO-2 code or country name to filter by.

    Returns:
        Markdown summary of active outages, most severe first.
    """
    logger.info(f"Aggregating outages (country filter: {country or 'none'})")
    try:
        orchestrator = _get_orchestrator()
        outages = await orchestrator.aggregate_outages(_get_outage_adapters())
    except Exception as e:
        logger.exception(f"Unexpected error aggregating outages: {e}")
        return "## Error\n\nAn unexpected error occurred while aggregating outages."

    wanted = country.strip().lower()
    if wanted:
        outages = [
            o for o in outages if o.country_code.lower() == wanted or o.country.lower() == wanted
        ]

    if not outages:
        scope = f" for **{country}**" if wanted else ""
        return (
            f"## No Active Outages\n\nNo outages reported{scope}."
            f"{_format_sources(orchestrator.last_run)}"
        )

    outages.sort(key=lambda o: -o.severity.ordering)
    lines = [f"## Active Outages ({len(outages)})", ""]
    lines.extend(_format_outage(o) for o in outages)
    return "\n".join(lines) + _format_sources(orchestrator.last_run)


@mcp.tool()
async def conflict_forecast(limit: int = 15, min_intensity: str = "low") -> str:
    """Armed-conflict fatality forecasts for the coming month (VIEWS).

    Args:
        limit: Maximum number of hotspots to list.
        min_intensity: Lowest tier to include (low, elevated, high, critical).

    Returns:
        Markdown list of hotspots by forecasted fatalities, plus the
        conflict arcs between adversarial country pairs.
    """
    try:
        threshold = ConflictIntensity(min_intensity.strip().lower())
    except ValueError:
        return (
            f"## Invalid Intensity\n\n'{min_intensity}' is not a valid intensity. "
            "Use one of: low, elevated, high, critical."
        )

    try:
        orchestrator = _get_orchestrator()
        data = await orchestrator.aggregate_conflicts([_get_views()])
    except Exception as e:
        logger.exception(f"Unexpected error aggregating conflicts: {e}")
        return "## Error\n\nAn unexpected error occurred while fetching conflict forecasts."

    hotspots = [h for h in data.hotspots if h.intensity.ordering >= threshold.ordering]
    if not hotspots:
        return (
            "## No Conflict Hotspots\n\nNo forecasts at or above "
            f"**{threshold.value}** intensity.{_format_sources(orchestrator.last_run)}"
        )

    lines = [f"## Conflict Forecast (run: {data.forecast_run or 'unknown'})", ""]
    for hotspot in hotspots[:limit]:
        lines.append(f"- **{hotspot.label}** ({hotspot.forecast_month})")
        lines.append(f"  {hotspot.risk_description}")
    if len(hotspots) > limit:
        lines.append(f"- ... and {len(hotspots) - limit} more")

    if data.arcs:
        lines.extend(["", "## Conflict Arcs", ""])
        for arc in data.arcs:
            lines.append(
                f"- {arc.from_.name} -> {arc.to.name}: {arc.description} ({arc.intensity.value})"
            )
    return "\n".join(lines) + _format_sources(orchestrator.last_run)


@mcp.tool()
async def grid_stress() -> str:
    """Grid carbon-intensity percentiles for major grid regions (WattTime).

    A high percentile means the grid is burning its dirtiest marginal
    generation. It is a stress proxy, not a reliability signal.

    Returns:
        Markdown list of regions, most stressed first.
    """
    settings = get_settings()
    if not settings.has_watttime_credentials():
        return f"## Grid Stress Unavailable\n\n{settings.get_credential_error_message('watttime')}"

    try:
        readings = await _get_watttime().fetch_readings()
    except Exception as e:
        logger.exception(f"Unexpected error fetching grid stress: {e}")
        return "## Error\n\nAn unexpected error occurred while fetching grid stress."

    if not readings:
        return "## Grid Stress Unavailable\n\nWattTime returned no readings. Try again later."

    stressed = sum(1 for r in readings if r.stress_level != GridStressLevel.NORMAL)
    lines = [f"## Grid Stress ({stressed} of {len(readings)} regions above normal)", ""]
    lines.extend(_format_reading(r) for r in readings)
    return "\n".join(lines)


def main() -> None:
    """Run the hazardwatch MCP server."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info("Starting hazardwatch MCP server")
    mcp.run()


if __name__ == "__main__":
    main()
