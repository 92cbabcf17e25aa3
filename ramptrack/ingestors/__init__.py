"""Telemetry ingestors for RampTrack."""

from .opensky import TelemetryClient, filter_allowed
from .opensky_auth import TokenManager

__all__ = [
    "TelemetryClient",
    "TokenManager",
    "filter_allowed",
]
