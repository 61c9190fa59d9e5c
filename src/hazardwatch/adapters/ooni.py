"""OONI adapter for documented network interference incidents.

API Reference: https://api.ooni.io/apidocs/
"""

import logging

from hazardwatch.adapters.base import HTTPSourceAdapter, MalformedResponse
from hazardwatch.geo import resolve_country
from hazardwatch.models import (
    FetchWindow,
    OONIIncident,
    Outage,
    OutageType,
    ParseOutcome,
    parse_raw_records,
)
from hazardwatch.severity import severity_from_ooni_event

logger = logging.getLogger(__name__)


class OONIAdapter(HTTPSourceAdapter):
    """OONI incident reports (censorship and interference).

    Incidents with no affected ASNs are skipped. An incident is active
    until OONI records an end time.

    Attributes:
        source_name: "ooni"
    """

    SOURCE_NAME = "ooni"
    BASE_URL = "https://api.ooni.io/api/v1/incidents/search"
    DEFAULT_TIMEOUT = 15.0
    INCIDENT_LIMIT = 20

    async def _collect(self, window: FetchWindow | None) -> ParseOutcome:
        payload = await self._get_json(
            self.BASE_URL, params={"only_mine": "false", "limit": self.INCIDENT_LIMIT}
        )
        if not isinstance(payload, dict) or not isinstance(payload.get("incidents"), list):
            raise MalformedResponse(self.source_name, "expected object with 'incidents' list")

        parsed = parse_raw_records("ooni", payload["incidents"])
        outcome = ParseOutcome(skipped=parsed.skipped)
        for incident in parsed.records:
            outage = self._normalize(incident)
            if outage is not None:
                outcome.records.append(outage)
        return outcome

    def _normalize(self, incident: OONIIncident) -> Outage | None:
        if not incident.asns:
            return None

        code = incident.ccs[0].upper() if incident.ccs else ""
        coords = resolve_country(code)
        if coords is None:
            logger.debug(f"OONI incident for unknown country code {code!r} dropped")
            return None

        country = code
        if incident.title:
            country = incident.title.split(" - ")[0] or code

        return Outage(
            id=f"ooni-{incident.incident_id or code}",
            country=country,
            country_code=code,
            type=OutageType.INTERNET,
            severity=severity_from_ooni_event(incident.event_type),
            lat=coords.lat,
            lon=coords.lon,
            description=(
                incident.short_description or incident.title or "Network interference detected"
            ),
            affected_population=coords.population,
            start_time=incident.start_time,
            source="OONI",
            active=not incident.end_time,
        )


__all__ = ["OONIAdapter"]
