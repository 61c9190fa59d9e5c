"""Display radius estimation for outage markers."""

from __future__ import annotations

import math
from collections.abc import Iterable

from hazardwatch.models import Outage, OutageSeverity

BASE_RADIUS_KM: dict[OutageSeverity, float] = {
    OutageSeverity.TOTAL: 300.0,
    OutageSeverity.MAJOR: 200.0,
    OutageSeverity.PARTIAL: 100.0,
}

MIN_POPULATION_FACTOR = 0.5
MAX_POPULATION_FACTOR = 2.0
MAX_AREA_RADIUS_KM = 500.0


def radius_km(severity: OutageSeverity | str, population: int | None = None) -> float:
    """Radius for a severity tier, scaled by affected population.

    The base radius is multiplied by ``clamp(log10(population) / 8, 0.5, 2.0)``
    when a positive population is known, and rounded half up to whole kilometres.

    Args:
        severity: Outage severity tier (enum or its string value).
        population: Affected population, if known.

    Returns:
        Radius in km.
    """
    base = BASE_RADIUS_KM[OutageSeverity(severity)]
    if population is not None and population > 0:
        factor = math.log10(population) / 8
        base *= max(MIN_POPULATION_FACTOR, min(MAX_POPULATION_FACTOR, factor))
    # Half up, never to even
    return float(math.floor(base + 0.5))


def area_radius_km(area_km2: float) -> float:
    """Radius of a circle with the given area, capped at 500 km."""
    return min(math.sqrt(area_km2 / math.pi), MAX_AREA_RADIUS_KM)


def apply_radius(outages: Iterable[Outage]) -> None:
    """Set radius_km on every outage in place.

    Area-backed records (fixed grid regions) use their area; everything
    else uses severity and population.
    """
    for outage in outages:
        if outage.area_km2:
            outage.radius_km = area_radius_km(outage.area_km2)
        else:
            outage.radius_km = radius_km(outage.severity, outage.affected_population)


__all__ = [
    "BASE_RADIUS_KM",
    "MAX_AREA_RADIUS_KM",
    "apply_radius",
    "area_radius_km",
    "radius_km",
]
