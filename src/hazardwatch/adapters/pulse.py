"""Internet Society Pulse adapter for government internet shutdowns."""

import logging

from hazardwatch.adapters.base import HTTPSourceAdapter, MalformedResponse
from hazardwatch.geo import resolve_country
from hazardwatch.models import (
    FetchWindow,
    Outage,
    OutageType,
    ParseOutcome,
    PulseShutdown,
    parse_raw_records,
)
from hazardwatch.severity import severity_from_pulse_type

logger = logging.getLogger(__name__)


class PulseAdapter(HTTPSourceAdapter):
    """Ongoing shutdowns tracked by Internet Society Pulse.

    Attributes:
        source_name: "pulse"
    """

    SOURCE_NAME = "pulse"
    BASE_URL = "https://pulse.internetsociety.org/api/shutdowns"
    DEFAULT_TIMEOUT = 15.0

    async def _collect(self, window: FetchWindow | None) -> ParseOutcome:
        payload = await self._get_json(self.BASE_URL, params={"status": "ongoing"})
        if not isinstance(payload, dict) or not isinstance(payload.get("shutdowns"), list):
            raise MalformedResponse(self.source_name, "expected object with 'shutdowns' list")

        parsed = parse_raw_records("pulse", payload["shutdowns"])
        outcome = ParseOutcome(skipped=parsed.skipped)
        for shutdown in parsed.records:
            outage = self._normalize(shutdown)
            if outage is not None:
                outcome.records.append(outage)
        return outcome

    def _normalize(self, shutdown: PulseShutdown) -> Outage | None:
        code = shutdown.country_code.upper()
        coords = resolve_country(code)
        if coords is None:
            logger.debug(f"Pulse shutdown for unknown country code {code!r} dropped")
            return None

        return Outage(
            id=f"pulse-{code}-{shutdown.start_date or 'ongoing'}",
            country=shutdown.country or code,
            country_code=code,
            type=OutageType.INTERNET,
            severity=severity_from_pulse_type(shutdown.type),
            lat=coords.lat,
            lon=coords.lon,
            description=shutdown.description or "Internet shutdown detected by Internet Society",
            affected_population=coords.population,
            start_time=shutdown.start_date,
            source="Internet Society Pulse",
            active=True,
        )


__all__ = ["PulseAdapter"]
