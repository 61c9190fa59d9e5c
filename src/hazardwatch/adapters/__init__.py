"""Hazard and conflict-risk data source adapters."""

from hazardwatch.adapters.base import (
    HTTPSourceAdapter,
    MalformedResponse,
    MissingConfiguration,
    SourceAdapter,
    SourceError,
    SourceTimeout,
    SourceUnavailable,
    handle_http_status,
)
from hazardwatch.adapters.ioda import IODAAdapter, IODASignalsAdapter
from hazardwatch.adapters.ooni import OONIAdapter
from hazardwatch.adapters.pulse import PulseAdapter
from hazardwatch.adapters.views import VIEWSAdapter
from hazardwatch.adapters.watttime import WattTimeAdapter, grid_stress_to_outage

__all__ = [
    "SourceAdapter",
    "HTTPSourceAdapter",
    "SourceError",
    "SourceUnavailable",
    "SourceTimeout",
    "MalformedResponse",
    "MissingConfiguration",
    "IODAAdapter",
    "IODASignalsAdapter",
    "OONIAdapter",
    "PulseAdapter",
    "VIEWSAdapter",
    "WattTimeAdapter",
    "grid_stress_to_outage",
    "handle_http_status",
]
