"""Pydantic models for the RampTrack backend."""

from .aircraft import AircraftSnapshot, AircraftStatus
from .airport import (
    AIRPORTS,
    AircraftType,
    AirportBase,
    AirportLayout,
    GateRecord,
    LatLon,
    Runway,
    TaxiNode,
    get_airport,
)
from .surface import GateOccupancy, TaxiAssociation, TrailPoint

__all__ = [
    "AIRPORTS",
    "AircraftSnapshot",
    "AircraftStatus",
    "AircraftType",
    "AirportBase",
    "AirportLayout",
    "GateOccupancy",
    "GateRecord",
    "LatLon",
    "Runway",
    "TaxiAssociation",
    "TaxiNode",
    "TrailPoint",
    "get_airport",
]
