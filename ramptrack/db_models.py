"""SQLAlchemy ORM models for the RampTrack durable store."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ramptrack.db import Base


def _utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column here stores."""

    return datetime.now(timezone.utc).replace(tzinfo=None)


class AircraftCacheRow(Base):
    """Durable copy of the last payload fetched for a (base, radius) pair."""

    __tablename__ = "aircraft_cache"

    base_code: Mapped[str] = mapped_column(String(8), primary_key=True)
    radius_nm: Mapped[float] = mapped_column(Float, primary_key=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    cooldown_until: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)


class AircraftLatest(Base):
    """Most recent state seen for each airframe."""

    __tablename__ = "aircraft_latest"
    __table_args__ = (Index("ix_aircraft_latest_base_last_seen", "base_code", "last_seen"),)

    icao24: Mapped[str] = mapped_column(String(16), primary_key=True)
    base_code: Mapped[str] = mapped_column(String(8), index=True, nullable=False)
    callsign: Mapped[str | None] = mapped_column(String(16), nullable=True)
    last_seen: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lon: Mapped[float] = mapped_column(Float, nullable=False)
    track: Mapped[float | None] = mapped_column(Float, nullable=True)
    ground_speed_kt: Mapped[float | None] = mapped_column(Float, nullable=True)
    on_ground: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    source: Mapped[str] = mapped_column(String(32), nullable=False, default="opensky")
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class AircraftTrackPoint(Base):
    """Append-only log of moving-aircraft positions per base."""

    __tablename__ = "aircraft_track_points"
    __table_args__ = (Index("ix_track_points_base_ts", "base_code", "ts"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    base_code: Mapped[str] = mapped_column(String(8), nullable=False)
    icao24: Mapped[str] = mapped_column(String(16), index=True, nullable=False)
    callsign: Mapped[str | None] = mapped_column(String(16), nullable=True)
    ts: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lon: Mapped[float] = mapped_column(Float, nullable=False)
    track: Mapped[float | None] = mapped_column(Float, nullable=True)
    ground_speed_kt: Mapped[float | None] = mapped_column(Float, nullable=True)
    on_ground: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    source: Mapped[str] = mapped_column(String(32), nullable=False, default="opensky")


class AirportLayoutRecord(Base):
    """Surface layout blob for a base, replaced wholesale on edit."""

    __tablename__ = "airport_layouts"

    airport_code: Mapped[str] = mapped_column(String(8), primary_key=True)
    layout: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=_utcnow)
