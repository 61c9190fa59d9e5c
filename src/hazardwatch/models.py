"""Pydantic models for hazardwatch aggregation.

Canonical records (Outage, ConflictHotspot, ConflictArc) are what the
aggregation run hands to the UI/persistence layer. Raw provider schemas
(IODAAlert, OONIIncident, ...) are ephemeral and only live between an
adapter's HTTP call and its normalization step.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_serializer,
)

logger = logging.getLogger(__name__)


class OutageType(str, Enum):
    """What kind of connectivity an outage affects."""

    INTERNET = "internet"
    POWER = "power"
    BOTH = "both"


class OutageSeverity(str, Enum):
    """Outage severity tier, ordered partial < major < total."""

    PARTIAL = "partial"
    MAJOR = "major"
    TOTAL = "total"

    @property
    def ordering(self) -> int:
        """Numeric ordering for comparisons (higher is more severe).

        Returns:
            0 for PARTIAL, 1 for MAJOR, 2 for TOTAL.
        """
        return {
            OutageSeverity.PARTIAL: 0,
            OutageSeverity.MAJOR: 1,
            OutageSeverity.TOTAL: 2,
        }[self]


class ConflictIntensity(str, Enum):
    """Conflict intensity tier, ordered low < elevated < high < critical."""

    LOW = "low"
    ELEVATED = "elevated"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def ordering(self) -> int:
        """Numeric ordering for comparisons (higher is more intense).

        Returns:
            0 for LOW through 3 for CRITICAL.
        """
        return {
            ConflictIntensity.LOW: 0,
            ConflictIntensity.ELEVATED: 1,
            ConflictIntensity.HIGH: 2,
            ConflictIntensity.CRITICAL: 3,
        }[self]


class GridStressLevel(str, Enum):
    """Carbon-intensity percentile band for a grid region."""

    NORMAL = "normal"
    ELEVATED = "elevated"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def ordering(self) -> int:
        return {
            GridStressLevel.NORMAL: 0,
            GridStressLevel.ELEVATED: 1,
            GridStressLevel.HIGH: 2,
            GridStressLevel.CRITICAL: 3,
        }[self]


class SourceCategory(str, Enum):
    """Which canonical record family an adapter produces."""

    OUTAGE = "outage"
    CONFLICT = "conflict"


class ResultStatus(str, Enum):
    """Outcome of one adapter call within an aggregation run."""

    SUCCESS = "success"
    NO_DATA = "no_data"
    UNAVAILABLE = "unavailable"
    MALFORMED = "malformed"
    UNCONFIGURED = "unconfigured"
    TIMED_OUT = "timed_out"


# ---------------------------------------------------------------------------
# Canonical records
# ---------------------------------------------------------------------------


class Outage(BaseModel):
    """Canonical internet/power outage record."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
    )

    id: str
    country: str
    country_code: str
    type: OutageType
    severity: OutageSeverity
    lat: float
    lon: float
    description: str
    affected_population: int | None = Field(default=None, ge=0)
    start_time: str | None = None
    source: str
    active: bool = True
    radius_km: float | None = None
    boundary_coords: list[list[tuple[float, float]]] | None = None
    area_km2: float | None = None


class ConflictHotspot(BaseModel):
    """Canonical conflict forecast hotspot for one country."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
    )

    id: str
    name: str
    lat: float
    lon: float
    iso_code: str
    intensity: ConflictIntensity
    forecasted_fatalities: float = Field(ge=0)
    fatality_probability: float = Field(ge=0, le=100)  # percentage
    forecast_month: str
    forecast_year: int
    label: str = ""
    risk_description: str = ""
    reasoning: str = ""
    data_source: str = ""


class ArcEndpoint(BaseModel):
    """One end of a conflict arc."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str
    lat: float
    lon: float


class ConflictArc(BaseModel):
    """Derived edge between two conflict hotspots.

    Has no existence outside the hotspot set it was built from.
    """

    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
    )

    id: str
    from_: ArcEndpoint = Field(alias="from")
    to: ArcEndpoint
    intensity: ConflictIntensity
    color: str
    description: str


class ConflictData(BaseModel):
    """Hotspots and arcs from one conflict aggregation run."""

    model_config = ConfigDict(str_strip_whitespace=True)

    hotspots: list[ConflictHotspot] = Field(default_factory=list)
    arcs: list[ConflictArc] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    forecast_run: str | None = None

    @field_serializer("last_updated")
    def serialize_dt(self, dt: datetime) -> str:
        """Serialize datetime to ISO 8601 format with timezone."""
        return dt.isoformat()


class GridStressReading(BaseModel):
    """Carbon-intensity percentile for a fixed grid region.

    The percentile is a marginal-emissions signal, not a reliability
    signal. It only becomes an Outage through grid_stress_to_outage().
    """

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
    )

    id: str
    region: str
    country: str
    country_code: str
    lat: float
    lon: float
    percent: float = Field(ge=0, le=100)
    signal_type: str = "co2_moer"
    stress_level: GridStressLevel
    description: str
    timestamp: str
    boundary_coords: list[list[tuple[float, float]]] | None = None
    area_km2: float | None = None


CanonicalRecord = Union[Outage, ConflictHotspot]


class SourceResult(BaseModel):
    """Outcome of a single adapter call.

    Adapters never raise past their boundary; the orchestrator collects
    one of these per adapter before merging.
    """

    source_name: str
    status: ResultStatus
    records: list[Any] = Field(default_factory=list)
    skipped: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status in (ResultStatus.SUCCESS, ResultStatus.NO_DATA)


class FetchWindow(BaseModel):
    """Optional time/geo bounds for an adapter fetch."""

    model_config = ConfigDict(validate_assignment=True)

    start: datetime | None = None
    end: datetime | None = None
    # (min_lon, min_lat, max_lon, max_lat)
    bbox: tuple[float, float, float, float] | None = None

    def contains(self, lat: float, lon: float) -> bool:
        """Check whether a point falls inside the bbox (always True without one)."""
        if self.bbox is None:
            return True
        min_lon, min_lat, max_lon, max_lat = self.bbox
        return min_lon <= lon <= max_lon and min_lat <= lat <= max_lat


# ---------------------------------------------------------------------------
# Raw provider schemas
# ---------------------------------------------------------------------------


class _RawModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class IODAEntity(_RawModel):
    code: str = ""
    name: str | None = None
    latitude: float | None = None
    longitude: float | None = None


class IODAAlert(_RawModel):
    """Entry from the IODA ongoing-alerts endpoint."""

    provider: Literal["ioda"] = "ioda"
    entity: IODAEntity
    severity: float = 0.0
    datasource: str | None = None
    time: dict[str, Any] | None = None

    @property
    def start(self) -> str | None:
        """Alert start time as reported by IODA, if any."""
        if not self.time or self.time.get("start") is None:
            return None
        return str(self.time["start"])


class IODASignal(_RawModel):
    """Entry from the IODA raw country-signal endpoint."""

    provider: Literal["ioda_signal"] = "ioda_signal"
    entity: IODAEntity
    datasource: str
    value: float
    from_: int | None = Field(default=None, alias="from")


class OONIIncident(_RawModel):
    """Entry from the OONI incidents search endpoint."""

    provider: Literal["ooni"] = "ooni"
    incident_id: str | None = None
    title: str | None = None
    short_description: str | None = None
    event_type: str | None = None
    ccs: list[str] = Field(default_factory=list, alias="CCs")
    asns: list[int | str] = Field(default_factory=list, alias="ASNs")
    start_time: str | None = None
    end_time: str | None = None


class PulseShutdown(_RawModel):
    """Entry from the Internet Society Pulse shutdowns endpoint."""

    provider: Literal["pulse"] = "pulse"
    country_code: str = ""
    country: str | None = None
    type: str | None = None
    description: str | None = None
    start_date: str | None = None


class WattTimeSignal(_RawModel):
    """First data point of a WattTime signal-index response."""

    provider: Literal["watttime"] = "watttime"
    value: float | None = None
    point_time: str | None = None


class VIEWSPrediction(_RawModel):
    """Country-month prediction from the VIEWS forecasting API."""

    provider: Literal["views"] = "views"
    country_id: int
    month_id: int
    name: str
    isoab: str
    year: int
    month: int = Field(ge=1, le=12)
    main_mean: float = Field(ge=0)
    main_dich: float = Field(ge=0, le=1)


RawRecord = Annotated[
    Union[IODAAlert, IODASignal, OONIIncident, PulseShutdown, WattTimeSignal, VIEWSPrediction],
    Field(discriminator="provider"),
]

_raw_record_adapter: TypeAdapter[Any] = TypeAdapter(RawRecord)


class ParseOutcome(BaseModel):
    """Records decoded from a provider payload plus how many were skipped."""

    records: list[Any] = Field(default_factory=list)
    skipped: int = 0


def parse_raw_records(provider: str, items: list[Any]) -> ParseOutcome:
    """Decode provider items into typed raw records, skipping bad ones.

    Each item is tagged with the provider name and validated against the
    matching schema. Items that fail validation are counted and dropped
    individually; the rest of the payload is kept.

    Args:
        provider: Provider tag (e.g. "ioda", "views").
        items: Raw JSON items from the provider response.

    Returns:
        ParseOutcome with decoded records and a skip count.
    """
    outcome = ParseOutcome()
    for item in items:
        if not isinstance(item, dict):
            outcome.skipped += 1
            continue
        try:
            outcome.records.append(_raw_record_adapter.validate_python({**item, "provider": provider}))
        except ValidationError as e:
            logger.debug(f"Skipping malformed {provider} record: {e.error_count()} errors")
            outcome.skipped += 1
    return outcome


__all__ = [
    "ArcEndpoint",
    "CanonicalRecord",
    "ConflictArc",
    "ConflictData",
    "ConflictHotspot",
    "ConflictIntensity",
    "FetchWindow",
    "GridStressLevel",
    "GridStressReading",
    "IODAAlert",
    "IODAEntity",
    "IODASignal",
    "OONIIncident",
    "Outage",
    "OutageSeverity",
    "OutageType",
    "ParseOutcome",
    "PulseShutdown",
    "RawRecord",
    "ResultStatus",
    "SourceCategory",
    "SourceResult",
    "VIEWSPrediction",
    "WattTimeSignal",
    "parse_raw_records",
]
