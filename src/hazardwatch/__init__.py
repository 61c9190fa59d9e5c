"""hazardwatch - multi-source outage and conflict-risk aggregation."""

__version__ = "0.1.0"
