"""Multi-source aggregation module.

Provides concurrent fan-out across adapters, first-wins deduplication,
and conflict arc correlation.
"""

from hazardwatch.aggregation.arcs import CONFLICT_PAIRS, ConflictPair, build_arcs
from hazardwatch.aggregation.dedup import (
    Deduplicator,
    dedup_key,
    hotspot_key,
    record_key,
)
from hazardwatch.aggregation.orchestrator import AggregationOrchestrator, RunReport

__all__ = [
    # Orchestrator exports
    "AggregationOrchestrator",
    "RunReport",
    # Dedup exports
    "Deduplicator",
    "dedup_key",
    "hotspot_key",
    "record_key",
    # Arc exports
    "CONFLICT_PAIRS",
    "ConflictPair",
    "build_arcs",
]
