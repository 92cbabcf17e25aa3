"""Models produced by gate matching and trail tracking."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ramptrack.models.aircraft import AircraftSnapshot


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GateOccupancy(_CamelModel):
    """Inferred state of one gate. ``aircraft`` is None when the gate is free."""

    gate_id: str
    aircraft: Optional[AircraftSnapshot] = None

    @property
    def occupied(self) -> bool:
        return self.aircraft is not None


class TaxiAssociation(_CamelModel):
    icao24: str
    node_id: str
    distance_m: float


class TrailPoint(_CamelModel):
    icao24: str
    lat: float
    lon: float
    timestamp_ms: int = Field(..., description="Epoch milliseconds when the point was sampled")

    model_config = ConfigDict(frozen=True)


__all__ = ["GateOccupancy", "TaxiAssociation", "TrailPoint"]
