"""Models for aircraft snapshots normalized from OpenSky state vectors."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class AircraftStatus(str, Enum):
    ACTIVE = "active"
    LANDED = "landed"
    OFFLINE = "offline"


class AircraftSnapshot(BaseModel):
    """Point-in-time state of one aircraft.

    Snapshots are frozen. A newer fetch produces a new snapshot for the same
    ``icao24`` instead of updating an existing one.
    """

    icao24: str = Field(..., description="ICAO 24-bit hex address, lower-case")
    callsign: Optional[str] = Field(default=None, description="Upper-cased callsign")
    lat: float = Field(..., description="Latitude in decimal degrees")
    lon: float = Field(..., description="Longitude in decimal degrees")
    on_ground: bool = Field(default=False, description="Reported on-ground flag")
    ground_speed_kt: Optional[float] = Field(
        default=None, description="Ground speed in knots where available"
    )
    track: Optional[float] = Field(default=None, description="Track angle in degrees")
    last_contact: Optional[int] = Field(
        default=None, description="Unix seconds of the last message received"
    )
    status: AircraftStatus = Field(default=AircraftStatus.ACTIVE)
    source: str = Field(default="opensky")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def is_silent(self, now: float, offline_after_seconds: float) -> bool:
        if self.last_contact is None:
            return False
        return now - self.last_contact > offline_after_seconds

    def with_read_status(self, now: float, offline_after_seconds: float) -> "AircraftSnapshot":
        """Return this snapshot, marked offline if it has been silent too long."""

        if self.status is AircraftStatus.OFFLINE or not self.is_silent(now, offline_after_seconds):
            return self
        return self.model_copy(update={"status": AircraftStatus.OFFLINE})


__all__ = ["AircraftSnapshot", "AircraftStatus"]
