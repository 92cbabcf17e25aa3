"""Response payloads for the RampTrack HTTP API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ramptrack.models.aircraft import AircraftSnapshot
from ramptrack.models.airport import AirportBase, AirportLayout
from ramptrack.models.surface import GateOccupancy, TaxiAssociation, TrailPoint


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NearbyAircraftResponse(_CamelModel):
    """Aircraft near a base, with cache provenance."""

    airport: AirportBase
    radius_nm: float
    aircraft: list[AircraftSnapshot] = Field(default_factory=list)
    stale: bool = Field(..., description="True when served from cache after a skipped or failed fetch")
    source: str = Field(..., description="Which cache tier or upstream outcome produced the payload")
    updated_at: Optional[datetime] = None
    error: Optional[str] = None
    debug: Optional[dict[str, Any]] = None


class TrailsResponse(_CamelModel):
    base: str
    trails: dict[str, list[TrailPoint]] = Field(default_factory=dict)


class TrackPointRecord(_CamelModel):
    icao24: str
    callsign: Optional[str] = None
    ts: datetime
    lat: float
    lon: float
    track: Optional[float] = None
    ground_speed_kt: Optional[float] = None
    on_ground: bool = False


class TrackHistoryResponse(_CamelModel):
    base: str
    minutes: int
    points: list[TrackPointRecord] = Field(default_factory=list)


class LayoutResponse(_CamelModel):
    airport_code: str
    layout: AirportLayout


class OccupancyResponse(_CamelModel):
    airport: AirportBase
    gates: list[GateOccupancy] = Field(default_factory=list)
    taxi: list[TaxiAssociation] = Field(default_factory=list)
    stale: bool
    source: str
    updated_at: Optional[datetime] = None


__all__ = [
    "LayoutResponse",
    "NearbyAircraftResponse",
    "OccupancyResponse",
    "TrackHistoryResponse",
    "TrackPointRecord",
    "TrailsResponse",
]
