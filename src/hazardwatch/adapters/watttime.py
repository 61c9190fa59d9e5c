"""WattTime adapter for grid carbon-intensity percentiles.

WattTime publishes a marginal operating emissions rate (MOER) index per
balancing authority. A high percentile means the grid is leaning on its
dirtiest marginal generators. It is shown on the outage layer as a
visual stress proxy only; it is not a supply-reliability signal.

API Reference: https://docs.watttime.org/

Authentication:
    HTTP Basic login returns a bearer token valid for 30 minutes. The
    token is held in the shared cache (memory tier only) and refreshed
    a few minutes before it expires.
"""

import asyncio
import logging
import re
from datetime import datetime, timezone
from typing import Any, NamedTuple

import httpx

from hazardwatch.adapters.base import (
    HTTPSourceAdapter,
    MissingConfiguration,
    SourceError,
    SourceTimeout,
    SourceUnavailable,
    decode_json,
    handle_http_status,
)
from hazardwatch.cache import CacheManager, cache_key
from hazardwatch.config import Settings, get_settings
from hazardwatch.models import (
    FetchWindow,
    GridStressLevel,
    GridStressReading,
    Outage,
    OutageType,
    ParseOutcome,
    WattTimeSignal,
    parse_raw_records,
)
from hazardwatch.severity import classify_grid_stress, grid_stress_severity

logger = logging.getLogger(__name__)

LOGIN_URL = "https://api.watttime.org/login"
SIGNAL_TYPE = "co2_moer"


class GridRegion(NamedTuple):
    """A fixed grid region polled on every run."""

    name: str
    lat: float
    lon: float
    country: str
    country_code: str
    area_km2: float | None = None


GRID_REGIONS: tuple[GridRegion, ...] = (
    # US ISOs
    GridRegion("CAISO", 36.7783, -119.4179, "United States", "US", 380_000),
    GridRegion("ERCOT Texas", 31.0, -100.0, "United States", "US", 695_000),
    GridRegion("PJM", 40.0, -77.0, "United States", "US", 500_000),
    GridRegion("MISO", 41.5, -93.0, "United States", "US", 920_000),
    GridRegion("ISO-NE", 42.4072, -71.3824, "United States", "US", 165_000),
    GridRegion("NYISO", 42.1657, -74.9481, "United States", "US", 140_000),
    GridRegion("SPP", 36.0, -97.5, "United States", "US", 650_000),
    # Europe
    GridRegion("Germany", 51.1657, 10.4515, "Germany", "DE", 357_000),
    GridRegion("UK", 53.5, -2.0, "United Kingdom", "GB", 243_000),
    GridRegion("France", 46.2276, 2.2137, "France", "FR", 640_000),
    # Asia-Pacific
    GridRegion("Japan (Tokyo)", 35.6762, 139.6503, "Japan", "JP", 378_000),
    GridRegion("Australia NEM", -33.8688, 151.2093, "Australia", "AU", 4_500_000),
)

_STRESS_DESCRIPTIONS: dict[GridStressLevel, str] = {
    GridStressLevel.CRITICAL: "Extreme fossil fuel reliance",
    GridStressLevel.HIGH: "Very high fossil fuel reliance",
    GridStressLevel.ELEVATED: "Above-average emissions",
    GridStressLevel.NORMAL: "Normal emissions",
}


def _region_slug(name: str) -> str:
    return re.sub(r"\s+", "-", name.lower())


def describe_grid_stress(level: GridStressLevel, percent: float) -> str:
    """Human-readable description of a percentile band."""
    return f"{round(percent)}th percentile - {_STRESS_DESCRIPTIONS[level]}"


def grid_stress_to_outage(reading: GridStressReading) -> Outage | None:
    """Map a grid stress reading onto the outage layer.

    Pure display mapping: critical -> total, high -> major,
    elevated -> partial. Normal readings are not outages.

    Args:
        reading: Grid carbon-intensity reading.

    Returns:
        A power Outage, or None for normal readings.
    """
    severity = grid_stress_severity(reading.stress_level)
    if severity is None:
        return None

    return Outage(
        id=reading.id,
        country=reading.country,
        country_code=reading.country_code,
        type=OutageType.POWER,
        severity=severity,
        lat=reading.lat,
        lon=reading.lon,
        description=(
            f"{reading.region} grid stress: {reading.description} "
            "(carbon-intensity proxy, not a reliability signal)"
        ),
        start_time=reading.timestamp,
        source="WattTime",
        active=True,
        boundary_coords=reading.boundary_coords,
        area_km2=reading.area_km2,
    )


class WattTimeAdapter(HTTPSourceAdapter):
    """WattTime MOER percentiles for a fixed set of grid regions.

    As an outage adapter it yields power outages for stressed regions;
    ``fetch_readings`` returns every region's reading.

    Attributes:
        source_name: "watttime"
    """

    SOURCE_NAME = "watttime"
    BASE_URL = "https://api.watttime.org/v3"
    DEFAULT_TIMEOUT = 10.0

    def __init__(
        self,
        cache: CacheManager | None = None,
        settings: Settings | None = None,
        regions: tuple[GridRegion, ...] = GRID_REGIONS,
        timeout: float | None = None,
    ) -> None:
        """Initialize the WattTime adapter.

        Args:
            cache: Shared cache for the login token.
            settings: Settings holding WattTime credentials.
            regions: Grid regions to poll.
            timeout: Per-request timeout in seconds.
        """
        super().__init__(timeout=timeout)
        self._cache = cache
        self._settings = settings
        self._regions = regions

    def _get_settings(self) -> Settings:
        return self._settings or get_settings()

    def _get_credentials(self) -> tuple[str, str]:
        settings = self._get_settings()
        if not settings.has_watttime_credentials():
            raise MissingConfiguration(self.source_name, "WattTime credentials not configured")
        return (
            settings.watttime_username.get_secret_value(),  # type: ignore[union-attr]
            settings.watttime_password.get_secret_value(),  # type: ignore[union-attr]
        )

    async def _login(self) -> dict[str, Any]:
        """Exchange Basic credentials for a bearer token.

        Raises:
            SourceUnavailable: If login fails or returns no token.
        """
        username, password = self._get_credentials()
        client = await self._get_client()
        try:
            response = await client.get(LOGIN_URL, auth=httpx.BasicAuth(username, password))
        except httpx.TimeoutException as e:
            raise SourceTimeout(self.source_name, self._timeout) from e
        except httpx.HTTPError as e:
            raise SourceUnavailable(self.source_name, f"login failed: {e}") from e
        handle_http_status(self.source_name, response)

        data = decode_json(self.source_name, response)
        token = data.get("token") if isinstance(data, dict) else None
        if not token:
            raise SourceUnavailable(self.source_name, "no token in login response")
        logger.debug("WattTime token obtained")
        return {"token": token}

    async def _get_token(self) -> str:
        """Return a valid bearer token, logging in only when needed."""
        # Fail fast without touching the cache when unconfigured
        self._get_credentials()

        if self._cache is None:
            data: dict[str, Any] | None = await self._login()
        else:
            settings = self._get_settings()
            data = await self._cache.get_or_refresh(
                cache_key(self.source_name, "token"),
                self._login,
                ttl_seconds=settings.ttl_watttime_token,
                source=self.source_name,
                refresh_margin=settings.token_refresh_margin,
                persist=False,
            )
        if not data or not data.get("token"):
            raise SourceUnavailable(self.source_name, "login failed")
        return str(data["token"])

    async def _fetch_region(self, region: GridRegion, token: str) -> GridStressReading | None:
        headers = {"Authorization": f"Bearer {token}"}

        region_data = await self._get_json(
            f"{self.BASE_URL}/region-from-loc",
            params={"latitude": region.lat, "longitude": region.lon, "signal_type": SIGNAL_TYPE},
            headers=headers,
        )
        region_id = region_data.get("region") if isinstance(region_data, dict) else None
        if not region_id:
            return None

        signal_data = await self._get_json(
            f"{self.BASE_URL}/signal-index",
            params={"region": region_id, "signal_type": SIGNAL_TYPE},
            headers=headers,
        )
        if not isinstance(signal_data, dict) or not isinstance(signal_data.get("data"), list):
            return None
        parsed = parse_raw_records("watttime", signal_data["data"][:1])
        if not parsed.records:
            return None
        point: WattTimeSignal = parsed.records[0]

        percent = point.value if point.value is not None else 50.0
        level = classify_grid_stress(percent)
        meta = signal_data.get("meta")
        if not isinstance(meta, dict):
            meta = {}
        return GridStressReading(
            id=f"watttime-{region.country_code}-{_region_slug(region.name)}",
            region=region.name,
            country=region.country,
            country_code=region.country_code,
            lat=region.lat,
            lon=region.lon,
            percent=percent,
            signal_type=meta.get("signal_type") or SIGNAL_TYPE,
            stress_level=level,
            description=describe_grid_stress(level, percent),
            timestamp=point.point_time or datetime.now(timezone.utc).isoformat(),
            area_km2=region.area_km2,
        )

    async def _collect_readings(self) -> tuple[list[GridStressReading], int]:
        token = await self._get_token()

        results = await asyncio.gather(
            *(self._fetch_region(region, token) for region in self._regions),
            return_exceptions=True,
        )

        readings: list[GridStressReading] = []
        skipped = 0
        for region, result in zip(self._regions, results):
            if isinstance(result, (SourceError, httpx.HTTPError, ValueError)):
                if getattr(result, "status_code", None) == 401 and self._cache is not None:
                    # Token rejected; the next fetch logs in again
                    await self._cache.invalidate(cache_key(self.source_name, "token"))
                logger.warning(f"Error fetching WattTime region {region.name}: {result}")
                skipped += 1
                continue
            if isinstance(result, Exception):
                logger.error(f"Unexpected error from WattTime region {region.name}: {result}")
                skipped += 1
                continue
            if isinstance(result, BaseException):
                raise result
            if result is None:
                skipped += 1
                continue
            readings.append(result)

        readings.sort(key=lambda r: (-r.stress_level.ordering, -r.percent))
        logger.info(f"Fetched {len(readings)} WattTime grid regions")
        return readings, skipped

    async def fetch_readings(self, window: FetchWindow | None = None) -> list[GridStressReading]:
        """Fetch every region's reading, most stressed first.

        Returns:
            Readings, or an empty list on any failure.
        """
        try:
            readings, _ = await self._collect_readings()
        except MissingConfiguration as e:
            logger.info(f"Skipping {self.source_name}: {e.message}")
            return []
        except (SourceError, httpx.HTTPError) as e:
            logger.warning(f"Source {self.source_name} failed: {e}")
            return []
        except Exception as e:
            logger.error(f"Unexpected error from {self.source_name}: {e}")
            return []
        if window is not None:
            readings = [r for r in readings if window.contains(r.lat, r.lon)]
        return readings

    async def _collect(self, window: FetchWindow | None) -> ParseOutcome:
        readings, skipped = await self._collect_readings()
        outcome = ParseOutcome(skipped=skipped)
        for reading in readings:
            outage = grid_stress_to_outage(reading)
            if outage is not None:
                outcome.records.append(outage)
        return outcome


__all__ = [
    "GRID_REGIONS",
    "GridRegion",
    "WattTimeAdapter",
    "describe_grid_stress",
    "grid_stress_to_outage",
]
