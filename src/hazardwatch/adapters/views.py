"""VIEWS adapter for armed-conflict fatality forecasts.

VIEWS (Violence Early-Warning System, Uppsala University) publishes
monthly country-level forecasts of state-based conflict fatalities.
Each prediction carries a mean fatality count (``main_mean``) and a
probability of at least one fatality (``main_dich``).

API Reference: https://api.viewsforecasting.org/
"""

import logging

import httpx

from hazardwatch.adapters.base import HTTPSourceAdapter, MalformedResponse
from hazardwatch.geo import resolve_centroid
from hazardwatch.models import (
    ConflictHotspot,
    ConflictIntensity,
    FetchWindow,
    ParseOutcome,
    SourceCategory,
    VIEWSPrediction,
    parse_raw_records,
)
from hazardwatch.severity import classify_conflict_intensity

logger = logging.getLogger(__name__)

BASE_URL = "https://api.viewsforecasting.org"

# Used when the run listing is unreachable or has no fatalities runs
FALLBACK_RUN_ID = "fatalities003_2025_11_t01"
RUN_LOOKUP_TIMEOUT = 5.0

# Predictions under both of these are dropped as negligible
MIN_FATALITIES = 0.1
MIN_PROBABILITY = 0.01

DATA_SOURCE = "VIEWS (Violence Early-Warning System) - Uppsala University"
REASONING = "VIEWS prediction based on historical conflict patterns and machine learning models."

_MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
                "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

_INTENSITY_LABELS: dict[ConflictIntensity, str] = {
    ConflictIntensity.CRITICAL: "Critical Conflict Risk",
    ConflictIntensity.HIGH: "High Conflict Risk",
    ConflictIntensity.ELEVATED: "Elevated Risk",
    ConflictIntensity.LOW: "Monitored Region",
}


def format_forecast_month(year: int, month: int) -> str:
    """Format a forecast month as e.g. "Mar 2026"."""
    return f"{_MONTH_NAMES[month - 1]} {year}"


def forecast_label(country: str, intensity: ConflictIntensity) -> str:
    return f"{country} - {_INTENSITY_LABELS[intensity]}"


def risk_description(intensity: ConflictIntensity, fatalities: float, probability: float) -> str:
    """One-line risk summary for a hotspot.

    Args:
        intensity: Classified tier.
        fatalities: Forecast fatalities (already rounded to one decimal).
        probability: Probability of any fatality, 0-1.
    """
    pct = round(probability * 100)
    if intensity == ConflictIntensity.CRITICAL:
        return (
            f"CRITICAL: {pct}% probability of armed conflict. "
            f"Forecast predicts ~{round(fatalities)} fatalities."
        )
    if intensity == ConflictIntensity.HIGH:
        return (
            f"HIGH RISK: {pct}% probability of conflict fatalities. "
            f"Model predicts ~{round(fatalities)} deaths."
        )
    if intensity == ConflictIntensity.ELEVATED:
        return (
            f"ELEVATED: {pct}% probability of some violence. "
            f"~{fatalities:.1f} predicted fatalities."
        )
    return (
        f"LOW RISK: {pct}% probability of conflict. "
        f"Minimal fatalities expected (~{fatalities:.1f})."
    )


def is_negligible(prediction: VIEWSPrediction) -> bool:
    """True when both the fatality mean and probability are under threshold."""
    return prediction.main_mean < MIN_FATALITIES and prediction.main_dich < MIN_PROBABILITY


class VIEWSAdapter(HTTPSourceAdapter):
    """VIEWS country-month fatality forecasts as conflict hotspots.

    Only the first forecast month of the latest ``fatalities*`` run is
    used. Countries without a known ISO-3 centroid are dropped.

    Attributes:
        source_name: "views"
        forecast_run: Run id used by the most recent fetch, if any.
    """

    SOURCE_NAME = "views"
    CATEGORY = SourceCategory.CONFLICT
    DEFAULT_TIMEOUT = 15.0
    PAGE_SIZE = 250

    def __init__(self, timeout: float | None = None) -> None:
        super().__init__(timeout=timeout)
        self.forecast_run: str | None = None

    async def resolve_run_id(self) -> str:
        """Pick the newest fatalities run, or the fallback run id.

        Never raises; any lookup problem falls back silently to the
        hardcoded run.
        """
        client = await self._get_client()
        try:
            response = await client.get(f"{BASE_URL}/", timeout=RUN_LOOKUP_TIMEOUT)
            if not response.is_success:
                return FALLBACK_RUN_ID
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"VIEWS run lookup failed, using fallback: {e}")
            return FALLBACK_RUN_ID

        runs = payload.get("runs") if isinstance(payload, dict) else None
        if not isinstance(runs, list):
            return FALLBACK_RUN_ID
        fatality_runs = sorted(
            (r for r in runs if isinstance(r, str) and r.startswith("fatalities")),
            reverse=True,
        )
        return fatality_runs[0] if fatality_runs else FALLBACK_RUN_ID

    async def _collect(self, window: FetchWindow | None) -> ParseOutcome:
        run_id = await self.resolve_run_id()
        self.forecast_run = run_id
        logger.info(f"Fetching VIEWS conflict forecasts (run: {run_id})")

        payload = await self._get_json(
            f"{BASE_URL}/{run_id}/cm/sb", params={"pagesize": self.PAGE_SIZE}
        )
        if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
            raise MalformedResponse(self.source_name, "expected object with 'data' list")

        parsed = parse_raw_records("views", payload["data"])
        outcome = ParseOutcome(skipped=parsed.skipped)
        if not parsed.records:
            return outcome

        first_month = payload.get("start_date")
        if not isinstance(first_month, int):
            first_month = min(p.month_id for p in parsed.records)

        for prediction in parsed.records:
            if prediction.month_id != first_month or is_negligible(prediction):
                continue
            hotspot = self._normalize(prediction)
            if hotspot is not None:
                outcome.records.append(hotspot)

        outcome.records.sort(key=lambda h: h.forecasted_fatalities, reverse=True)
        return outcome

    def _normalize(self, prediction: VIEWSPrediction) -> ConflictHotspot | None:
        iso = prediction.isoab.upper()
        centroid = resolve_centroid(iso)
        if centroid is None:
            logger.debug(f"VIEWS prediction for unknown ISO code {iso!r} dropped")
            return None

        intensity = classify_conflict_intensity(prediction.main_mean, prediction.main_dich)
        fatalities = round(prediction.main_mean * 10) / 10

        return ConflictHotspot(
            id=f"views-{prediction.country_id}",
            name=prediction.name,
            lat=centroid.lat,
            lon=centroid.lon,
            iso_code=iso,
            intensity=intensity,
            forecasted_fatalities=fatalities,
            fatality_probability=round(prediction.main_dich * 1000) / 10,
            forecast_month=format_forecast_month(prediction.year, prediction.month),
            forecast_year=prediction.year,
            label=forecast_label(prediction.name, intensity),
            risk_description=risk_description(intensity, fatalities, prediction.main_dich),
            reasoning=REASONING,
            data_source=DATA_SOURCE,
        )


__all__ = [
    "FALLBACK_RUN_ID",
    "VIEWSAdapter",
    "format_forecast_month",
    "is_negligible",
    "risk_description",
]
