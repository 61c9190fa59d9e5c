"""IODA adapters for internet outage detection.

IODA (Internet Outage Detection and Analysis, Georgia Tech) publishes
country-level connectivity alerts and raw per-datasource signals.

API Reference: https://api.ioda.inetintel.cc.gatech.edu/v2/
"""

import logging
from datetime import datetime, timedelta, timezone

from hazardwatch.adapters.base import HTTPSourceAdapter, MalformedResponse
from hazardwatch.geo import resolve_country
from hazardwatch.models import (
    FetchWindow,
    IODAAlert,
    IODASignal,
    Outage,
    OutageType,
    ParseOutcome,
    parse_raw_records,
)
from hazardwatch.severity import classify_outage_severity, severity_from_signal_value

logger = logging.getLogger(__name__)

BASE_URL = "https://api.ioda.inetintel.cc.gatech.edu/v2"

# Connectivity ratio below which a BGP signal counts as an outage
SIGNAL_OUTAGE_THRESHOLD = 0.8


def _data_items(source_name: str, payload: object) -> list[object]:
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
        raise MalformedResponse(source_name, "expected object with 'data' list")
    return payload["data"]


class IODAAdapter(HTTPSourceAdapter):
    """Ongoing IODA alerts, one outage per alerting country.

    Alert severity is a 0-1 score mapped through classify_outage_severity.

    Attributes:
        source_name: "ioda"
    """

    SOURCE_NAME = "ioda"
    DEFAULT_TIMEOUT = 15.0
    ALERT_LIMIT = 30

    async def _collect(self, window: FetchWindow | None) -> ParseOutcome:
        payload = await self._get_json(
            f"{BASE_URL}/alerts/ongoing", params={"limit": self.ALERT_LIMIT}
        )
        parsed = parse_raw_records("ioda", _data_items(self.source_name, payload))

        outcome = ParseOutcome(skipped=parsed.skipped)
        for index, alert in enumerate(parsed.records):
            outage = self._normalize(alert, index)
            if outage is not None:
                outcome.records.append(outage)
        return outcome

    def _normalize(self, alert: IODAAlert, index: int) -> Outage | None:
        code = alert.entity.code.upper()
        coords = resolve_country(code)
        if coords is None:
            logger.debug(f"IODA alert for unknown country code {code!r} dropped")
            return None

        return Outage(
            id=f"ioda-{code or 'unknown'}-{alert.start or index}",
            country=alert.entity.name or "Unknown",
            country_code=code,
            type=OutageType.INTERNET,
            severity=classify_outage_severity(alert.severity),
            lat=coords.lat,
            lon=coords.lon,
            description=(
                "Internet connectivity disruption detected by IODA "
                f"({alert.datasource or 'multiple sources'})"
            ),
            affected_population=coords.population,
            start_time=alert.start,
            source="IODA",
            active=True,
        )


class IODASignalsAdapter(HTTPSourceAdapter):
    """Raw IODA BGP country signals over a time window (default last 24h).

    A signal value is connectivity relative to normal (1.0). Values under
    0.8 are outages, and values under 0.5 are major.

    Attributes:
        source_name: "ioda_signals"
    """

    SOURCE_NAME = "ioda_signals"
    DEFAULT_TIMEOUT = 15.0
    DATASOURCE = "bgp"

    async def _collect(self, window: FetchWindow | None) -> ParseOutcome:
        now = datetime.now(timezone.utc)
        until = window.end if window and window.end else now
        start = window.start if window and window.start else until - timedelta(days=1)

        payload = await self._get_json(
            f"{BASE_URL}/signals/raw/country",
            params={"from": int(start.timestamp()), "until": int(until.timestamp())},
        )
        parsed = parse_raw_records("ioda_signal", _data_items(self.source_name, payload))

        outcome = ParseOutcome(skipped=parsed.skipped)
        for signal in parsed.records:
            if signal.datasource != self.DATASOURCE or signal.value >= SIGNAL_OUTAGE_THRESHOLD:
                continue
            outage = self._normalize(signal)
            if outage is not None:
                outcome.records.append(outage)
        return outcome

    def _normalize(self, signal: IODASignal) -> Outage | None:
        code = signal.entity.code.upper()
        coords = resolve_country(code)
        if coords is None:
            logger.debug(f"IODA signal for unknown country code {code!r} dropped")
            return None

        start_time = None
        if signal.from_ is not None:
            start_time = datetime.fromtimestamp(signal.from_, tz=timezone.utc).isoformat()

        return Outage(
            id=f"ioda-signal-{code}-{signal.from_ or 0}",
            country=signal.entity.name or code,
            country_code=code,
            type=OutageType.INTERNET,
            severity=severity_from_signal_value(signal.value),
            lat=coords.lat,
            lon=coords.lon,
            description=f"Internet connectivity at {round(signal.value * 100)}% of normal",
            affected_population=coords.population,
            start_time=start_time,
            source="IODA (Georgia Tech)",
            active=True,
        )


__all__ = ["IODAAdapter", "IODASignalsAdapter"]
