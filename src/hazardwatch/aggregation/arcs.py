"""Derive conflict arcs between known adversarial country pairs."""

import logging
from collections.abc import Iterable
from typing import NamedTuple

from hazardwatch.geo import resolve_centroid
from hazardwatch.models import (
    ArcEndpoint,
    ConflictArc,
    ConflictHotspot,
    ConflictIntensity,
)
from hazardwatch.severity import intensity_color, intensity_rank, max_intensity

logger = logging.getLogger(__name__)


class ConflictPair(NamedTuple):
    """Directed ISO-3 pair; ``from_iso`` wins intensity ties."""

    from_iso: str
    to_iso: str
    description: str


CONFLICT_PAIRS: tuple[ConflictPair, ...] = (
    ConflictPair("RUS", "UKR", "Russia-Ukraine War"),
    ConflictPair("ISR", "LBN", "Israel-Lebanon Tensions"),
    ConflictPair("ISR", "SYR", "Israel-Syria Tensions"),
    ConflictPair("IRN", "ISR", "Iran-Israel Proxy Conflict"),
    ConflictPair("CHN", "TWN", "Cross-Strait Tensions"),
    ConflictPair("PRK", "KOR", "Korean Peninsula"),
    ConflictPair("IND", "PAK", "India-Pakistan Tensions"),
    ConflictPair("ETH", "ERI", "Ethiopia-Eritrea Tensions"),
    ConflictPair("SDN", "SSD", "Sudan-South Sudan Conflict"),
)


def build_arcs(
    hotspots: Iterable[ConflictHotspot],
    pairs: Iterable[ConflictPair] = CONFLICT_PAIRS,
    id_prefix: str = "views-arc",
) -> list[ConflictArc]:
    """Build arcs for pairs with at least one non-low endpoint.

    A pair is skipped when either country has no centroid, or when
    neither endpoint is present above LOW (a missing endpoint counts as
    LOW). The arc takes the higher endpoint intensity, ties going to the
    ``from`` side.

    Args:
        hotspots: Deduplicated hotspots from one run.
        pairs: Static adversarial pairs to consider.
        id_prefix: Prefix for arc ids.

    Returns:
        Arcs in pair-table order.
    """
    intensity_by_iso: dict[str, ConflictIntensity] = {
        h.iso_code.upper(): h.intensity for h in hotspots
    }

    arcs: list[ConflictArc] = []
    for pair in pairs:
        from_centroid = resolve_centroid(pair.from_iso)
        to_centroid = resolve_centroid(pair.to_iso)
        if from_centroid is None or to_centroid is None:
            logger.debug(f"No centroid for arc {pair.from_iso}-{pair.to_iso}")
            continue

        from_intensity = intensity_by_iso.get(pair.from_iso)
        to_intensity = intensity_by_iso.get(pair.to_iso)
        if intensity_rank(from_intensity) == 0 and intensity_rank(to_intensity) == 0:
            continue

        intensity = max_intensity(from_intensity, to_intensity)
        arcs.append(
            ConflictArc(
                id=f"{id_prefix}-{pair.from_iso}-{pair.to_iso}",
                from_=ArcEndpoint(
                    name=from_centroid.name, lat=from_centroid.lat, lon=from_centroid.lon
                ),
                to=ArcEndpoint(name=to_centroid.name, lat=to_centroid.lat, lon=to_centroid.lon),
                intensity=intensity,
                color=intensity_color(intensity),
                description=pair.description,
            )
        )
    return arcs


__all__ = ["CONFLICT_PAIRS", "ConflictPair", "build_arcs"]
