"""Service-layer helpers for the RampTrack backend."""

from .cache_coordinator import AircraftResult, CacheCoordinator, CachePolicy, MemoryCache
from .gate_matching import match_aircraft_to_gates, nearest_taxi_nodes
from .trails import TrailTracker

__all__ = [
    "AircraftResult",
    "CacheCoordinator",
    "CachePolicy",
    "MemoryCache",
    "TrailTracker",
    "match_aircraft_to_gates",
    "nearest_taxi_nodes",
]
