"""Map provider-specific raw signals onto ordered severity tiers."""

from __future__ import annotations

from hazardwatch.models import (
    ConflictIntensity,
    GridStressLevel,
    OutageSeverity,
)

# Display colors per conflict intensity
INTENSITY_COLORS: dict[ConflictIntensity, str] = {
    ConflictIntensity.CRITICAL: "#dc2626",
    ConflictIntensity.HIGH: "#ef4444",
    ConflictIntensity.ELEVATED: "#f97316",
    ConflictIntensity.LOW: "#fbbf24",
}

# (fatalities, probability) thresholds, checked most severe first
_CONFLICT_THRESHOLDS: tuple[tuple[ConflictIntensity, float, float], ...] = (
    (ConflictIntensity.CRITICAL, 100.0, 0.99),
    (ConflictIntensity.HIGH, 25.0, 0.75),
    (ConflictIntensity.ELEVATED, 5.0, 0.25),
    (ConflictIntensity.LOW, 1.0, 0.01),
)


def classify_outage_severity(score: float) -> OutageSeverity:
    """Map a 0-1 disruption score (IODA alert severity) to a tier.

    Args:
        score: Raw score; higher means more disruption.

    Returns:
        TOTAL at >= 0.8, MAJOR at >= 0.5, PARTIAL otherwise.
    """
    if score >= 0.8:
        return OutageSeverity.TOTAL
    if score >= 0.5:
        return OutageSeverity.MAJOR
    return OutageSeverity.PARTIAL


def severity_from_signal_value(value: float) -> OutageSeverity:
    """Map an IODA connectivity signal (1.0 is normal) to a tier.

    A signal only ever reports MAJOR (below half of normal) or PARTIAL.
    """
    return OutageSeverity.MAJOR if value < 0.5 else OutageSeverity.PARTIAL


def severity_from_ooni_event(event_type: str | None) -> OutageSeverity:
    """Map an OONI incident event_type to a tier."""
    if event_type == "total_block":
        return OutageSeverity.TOTAL
    if event_type == "significant":
        return OutageSeverity.MAJOR
    return OutageSeverity.PARTIAL


def severity_from_pulse_type(shutdown_type: str | None) -> OutageSeverity:
    """Map an Internet Society Pulse shutdown type to a tier.

    Pulse calls a regional shutdown "partial", which is still a major
    outage for display.
    """
    if shutdown_type == "complete":
        return OutageSeverity.TOTAL
    if shutdown_type == "partial":
        return OutageSeverity.MAJOR
    return OutageSeverity.PARTIAL


def classify_conflict_intensity(fatalities: float, probability: float) -> ConflictIntensity:
    """Classify a forecast using OR-thresholds across two metrics.

    Either metric alone can escalate the tier: a country with a 99%
    probability of any fatality is critical even if the expected count
    is small.

    Args:
        fatalities: Forecast mean fatalities (VIEWS main_mean).
        probability: Probability of at least one fatality, 0-1 (main_dich).

    Returns:
        ConflictIntensity tier. Below every threshold is still LOW.
    """
    for intensity, min_fatalities, min_probability in _CONFLICT_THRESHOLDS:
        if fatalities >= min_fatalities or probability >= min_probability:
            return intensity
    return ConflictIntensity.LOW


def classify_grid_stress(percent: float) -> GridStressLevel:
    """Band a carbon-intensity percentile (0-100)."""
    if percent >= 98:
        return GridStressLevel.CRITICAL
    if percent >= 95:
        return GridStressLevel.HIGH
    if percent >= 85:
        return GridStressLevel.ELEVATED
    return GridStressLevel.NORMAL


def grid_stress_severity(level: GridStressLevel) -> OutageSeverity | None:
    """Visual outage tier for a grid stress band.

    This is a display mapping only. A high emissions percentile says
    nothing about supply reliability.

    Returns:
        Outage tier, or None for NORMAL (not shown as an outage).
    """
    return {
        GridStressLevel.CRITICAL: OutageSeverity.TOTAL,
        GridStressLevel.HIGH: OutageSeverity.MAJOR,
        GridStressLevel.ELEVATED: OutageSeverity.PARTIAL,
    }.get(level)


def intensity_rank(intensity: ConflictIntensity | None) -> int:
    """Ordering rank of a tier; a missing tier ranks as LOW."""
    return (intensity or ConflictIntensity.LOW).ordering


def max_intensity(
    a: ConflictIntensity | None, b: ConflictIntensity | None
) -> ConflictIntensity:
    """Return the more intense of two tiers; ties go to ``a``.

    Missing tiers count as LOW.
    """
    if intensity_rank(a) >= intensity_rank(b):
        return a or ConflictIntensity.LOW
    return b or ConflictIntensity.LOW


def intensity_color(intensity: ConflictIntensity) -> str:
    """Display color for a conflict intensity."""
    return INTENSITY_COLORS[intensity]


__all__ = [
    "INTENSITY_COLORS",
    "classify_conflict_intensity",
    "classify_grid_stress",
    "classify_outage_severity",
    "grid_stress_severity",
    "intensity_color",
    "intensity_rank",
    "max_intensity",
    "severity_from_ooni_event",
    "severity_from_pulse_type",
    "severity_from_signal_value",
]
