"""Airport reference data and surface layout models."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class LatLon(_CamelModel):
    lat: float
    lon: float


class AirportBase(_CamelModel):
    """A base airport at which fleet traffic is tracked."""

    code: str = Field(..., description="Three-letter IATA code, unique key")
    icao_code: str = Field(..., description="Four-letter ICAO code")
    lat: float
    lon: float

    model_config = ConfigDict(frozen=True)


class AircraftType(str, Enum):
    CRJ200 = "CRJ2"
    CRJ700 = "CRJ7"
    CRJ900 = "CRJ9"


class GateRecord(_CamelModel):
    id: str = Field(..., description="Gate label as shown on the ramp")
    position: LatLon
    notes: Optional[str] = None
    preferred_aircraft_type: Optional[AircraftType] = None


class TaxiNode(_CamelModel):
    id: str
    lat: float
    lon: float


class Runway(_CamelModel):
    id: str
    outline: list[tuple[float, float]] = Field(
        default_factory=list, description="Polygon as [lat, lon] pairs"
    )


class AirportLayout(_CamelModel):
    """Surface layout for one base, owned by the layout store."""

    center: LatLon
    gates: list[GateRecord] = Field(default_factory=list)
    runways: list[Runway] = Field(default_factory=list)
    taxi_graph: list[TaxiNode] = Field(default_factory=list)


AIRPORTS: dict[str, AirportBase] = {
    base.code: base
    for base in (
        AirportBase(code="SAV", icao_code="KSAV", lat=32.1270, lon=-81.2020),
        AirportBase(code="CLT", icao_code="KCLT", lat=35.2140, lon=-80.9431),
        AirportBase(code="DAY", icao_code="KDAY", lat=39.9024, lon=-84.2194),
        AirportBase(code="DFW", icao_code="KDFW", lat=32.8998, lon=-97.0403),
        AirportBase(code="PHL", icao_code="KPHL", lat=39.8744, lon=-75.2424),
    )
}


def get_airport(code: str | None) -> AirportBase | None:
    """Look up a base by code, ignoring case and surrounding whitespace."""

    return AIRPORTS.get((code or "").strip().upper())


__all__ = [
    "AIRPORTS",
    "AircraftType",
    "AirportBase",
    "AirportLayout",
    "GateRecord",
    "LatLon",
    "Runway",
    "TaxiNode",
    "get_airport",
]
