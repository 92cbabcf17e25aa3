"""Durable key-value stores backed by SQLAlchemy.

The cache coordinator only relies on ``read_by_key`` and ``upsert``. The
remaining operations persist per-aircraft state and the track-point log that
the history endpoint reads back.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
import logging
import time
from typing import Any, Iterable, Protocol

from pydantic import ValidationError
from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ramptrack.config import settings
from ramptrack.db import SessionLocal
from ramptrack.db_models import (
    AircraftCacheRow,
    AircraftLatest,
    AircraftTrackPoint,
    AirportLayoutRecord,
)
from ramptrack.errors import StoreError
from ramptrack.models.aircraft import AircraftSnapshot, AircraftStatus
from ramptrack.models.airport import AirportLayout
from ramptrack.models.responses import TrackPointRecord

logger = logging.getLogger("ramptrack.store")

RADIUS_PRECISION = 1
HISTORY_MIN_MINUTES = 5
HISTORY_MAX_MINUTES = 240
HISTORY_MAX_POINTS = 25_000
CLEANUP_INTERVAL_SECONDS = 3600


def round_radius(radius_nm: float) -> float:
    return round(float(radius_nm), RADIUS_PRECISION)


def cache_key(base_code: str, radius_nm: float) -> str:
    """Key shared by near-identical requests for the same base and radius."""

    return f"{base_code.strip().upper()}:{round_radius(radius_nm)}"


def _to_db_time(ts: float | None) -> datetime | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).replace(tzinfo=None)


def _from_db_time(value: datetime | None) -> float | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


@dataclass(frozen=True)
class CacheEntry:
    """Cached aircraft payload for one (base, radius) pair."""

    base_code: str
    radius_nm: float
    aircraft: list[AircraftSnapshot] = field(default_factory=list)
    fetched_at: float | None = None
    cooldown_until: float | None = None
    cooldown_seconds: float | None = None

    @property
    def key(self) -> str:
        return cache_key(self.base_code, self.radius_nm)

    def age(self, now: float) -> float | None:
        if self.fetched_at is None:
            return None
        return now - self.fetched_at

    def is_fresh(self, now: float, ttl: float) -> bool:
        """An entry cooling down after a failed fetch is never fresh."""

        if self.in_cooldown(now):
            return False
        age = self.age(now)
        return age is not None and age < ttl

    def in_cooldown(self, now: float) -> bool:
        return self.cooldown_until is not None and now < self.cooldown_until

    def with_cooldown(self, until: float, window: float) -> "CacheEntry":
        return replace(self, cooldown_until=until, cooldown_seconds=window)

    def to_payload(self) -> dict[str, Any]:
        return {
            "aircraft": [a.model_dump(mode="json") for a in self.aircraft],
            "meta": {"cooldown_seconds": self.cooldown_seconds, "count": len(self.aircraft)},
        }

    @classmethod
    def from_row(cls, row: AircraftCacheRow) -> "CacheEntry":
        payload = row.payload or {}
        meta = payload.get("meta") or {}
        return cls(
            base_code=row.base_code,
            radius_nm=row.radius_nm,
            aircraft=[AircraftSnapshot.model_validate(a) for a in payload.get("aircraft") or []],
            fetched_at=_from_db_time(row.updated_at),
            cooldown_until=_from_db_time(row.cooldown_until),
            cooldown_seconds=meta.get("cooldown_seconds"),
        )


class CacheStore(Protocol):
    def read_by_key(self, base_code: str, radius_nm: float) -> CacheEntry | None: ...

    def upsert(self, entry: CacheEntry) -> None: ...


class SqlCacheStore:
    """Cache rows, latest aircraft state and track points in one database."""

    def __init__(
        self,
        session_factory: sessionmaker = SessionLocal,
        *,
        trail_min_kts: float | None = None,
        offline_after_seconds: int | None = None,
        retention_hours: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.trail_min_kts = trail_min_kts if trail_min_kts is not None else settings.trail_min_kts
        self.offline_after_seconds = offline_after_seconds or settings.offline_after_seconds
        self.retention_hours = retention_hours or settings.track_point_retention_hours
        self._last_cleanup_at: float | None = None

    def read_by_key(self, base_code: str, radius_nm: float) -> CacheEntry | None:
        try:
            with self._session_factory() as session:
                row = session.get(AircraftCacheRow, (base_code, round_radius(radius_nm)))
                return CacheEntry.from_row(row) if row is not None else None
        except (SQLAlchemyError, ValidationError) as exc:
            raise StoreError(f"Failed to read cache row {cache_key(base_code, radius_nm)}") from exc

    def upsert(self, entry: CacheEntry) -> None:
        row = AircraftCacheRow(
            base_code=entry.base_code,
            radius_nm=round_radius(entry.radius_nm),
            updated_at=_to_db_time(entry.fetched_at),
            cooldown_until=_to_db_time(entry.cooldown_until),
            payload=entry.to_payload(),
        )
        try:
            with self._session_factory.begin() as session:
                session.merge(row)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to write cache row {entry.key}") from exc

    def record_snapshots(
        self, base_code: str, aircraft: Iterable[AircraftSnapshot], now: float | None = None
    ) -> None:
        """Upsert latest state, log moving aircraft, then mark silent ones offline."""

        now = now if now is not None else time.time()
        now_db = _to_db_time(now)
        cutoff = _to_db_time(now - self.offline_after_seconds)

        try:
            with self._session_factory.begin() as session:
                for snapshot in aircraft:
                    last_seen = _to_db_time(snapshot.last_contact) if snapshot.last_contact else now_db
                    session.merge(
                        AircraftLatest(
                            icao24=snapshot.icao24,
                            base_code=base_code,
                            callsign=snapshot.callsign,
                            last_seen=last_seen,
                            lat=snapshot.lat,
                            lon=snapshot.lon,
                            track=snapshot.track,
                            ground_speed_kt=snapshot.ground_speed_kt,
                            on_ground=snapshot.on_ground,
                            status=snapshot.status.value,
                            source=snapshot.source,
                            updated_at=now_db,
                        )
                    )
                    if (snapshot.ground_speed_kt or 0) > self.trail_min_kts:
                        session.add(
                            AircraftTrackPoint(
                                base_code=base_code,
                                icao24=snapshot.icao24,
                                callsign=snapshot.callsign,
                                ts=last_seen,
                                lat=snapshot.lat,
                                lon=snapshot.lon,
                                track=snapshot.track,
                                ground_speed_kt=snapshot.ground_speed_kt,
                                on_ground=snapshot.on_ground,
                            )
                        )

                session.flush()
                session.execute(
                    update(AircraftLatest)
                    .where(
                        AircraftLatest.base_code == base_code,
                        AircraftLatest.last_seen < cutoff,
                        AircraftLatest.status != AircraftStatus.OFFLINE.value,
                    )
                    .values(status=AircraftStatus.OFFLINE.value, updated_at=now_db)
                )
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to record snapshots for {base_code}") from exc

        self.maybe_cleanup_old_points(now)

    def track_history(
        self,
        base_code: str,
        minutes: int = 60,
        *,
        include_offline: bool = False,
        now: float | None = None,
    ) -> tuple[int, list[TrackPointRecord]]:
        """Return ``(minutes, points)`` for the recent track-point log of a base.

        Unless ``include_offline`` is set, points are limited to aircraft not
        marked offline. When no aircraft at the base is online the filter is
        skipped.
        """

        minutes = max(HISTORY_MIN_MINUTES, min(HISTORY_MAX_MINUTES, int(minutes)))
        now = now if now is not None else time.time()
        since = _to_db_time(now - minutes * 60)

        query = (
            select(AircraftTrackPoint)
            .where(AircraftTrackPoint.base_code == base_code, AircraftTrackPoint.ts >= since)
            .order_by(AircraftTrackPoint.ts.asc())
            .limit(HISTORY_MAX_POINTS)
        )
        try:
            with self._session_factory() as session:
                if not include_offline:
                    online = session.scalars(
                        select(AircraftLatest.icao24).where(
                            AircraftLatest.base_code == base_code,
                            AircraftLatest.status != AircraftStatus.OFFLINE.value,
                        )
                    ).all()
                    if online:
                        query = query.where(AircraftTrackPoint.icao24.in_(online))
                rows = session.scalars(query).all()
                points = [
                    TrackPointRecord(
                        icao24=row.icao24,
                        callsign=row.callsign,
                        ts=row.ts.replace(tzinfo=timezone.utc),
                        lat=row.lat,
                        lon=row.lon,
                        track=row.track,
                        ground_speed_kt=row.ground_speed_kt,
                        on_ground=row.on_ground,
                    )
                    for row in rows
                ]
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to read track history for {base_code}") from exc
        return minutes, points

    def maybe_cleanup_old_points(self, now: float | None = None) -> None:
        """
        Delete track points older than the retention window.

        - Only run at most once per hour per store.
        - Fail-soft: log on error but never break the caller's normal write.
        """

        now = now if now is not None else time.time()
        if self._last_cleanup_at is not None and now - self._last_cleanup_at < CLEANUP_INTERVAL_SECONDS:
            return

        cutoff = _to_db_time(now) - timedelta(hours=max(self.retention_hours, 1))
        try:
            with self._session_factory.begin() as session:
                result = session.execute(
                    delete(AircraftTrackPoint).where(AircraftTrackPoint.ts < cutoff)
                )
            self._last_cleanup_at = now
            if result.rowcount:
                logger.info("Pruned %s track points older than %s", result.rowcount, cutoff)
        except SQLAlchemyError as exc:  # pragma: no cover
            logger.warning("Track point cleanup failed: %s", exc)


class SqlLayoutStore:
    """Airport surface layouts keyed by base code."""

    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._session_factory = session_factory

    def read(self, base_code: str) -> AirportLayout | None:
        code = base_code.strip().upper()
        try:
            with self._session_factory() as session:
                record = session.get(AirportLayoutRecord, code)
                if record is None:
                    return None
                return AirportLayout.model_validate(record.layout)
        except (SQLAlchemyError, ValidationError) as exc:
            raise StoreError(f"Failed to read layout for {code}") from exc

    def replace(self, base_code: str, layout: AirportLayout) -> None:
        code = base_code.strip().upper()
        record = AirportLayoutRecord(
            airport_code=code,
            layout=layout.model_dump(mode="json", by_alias=True),
            updated_at=_to_db_time(time.time()),
        )
        try:
            with self._session_factory.begin() as session:
                session.merge(record)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to write layout for {code}") from exc
        logger.info("Replaced layout for %s (%s gates)", code, len(layout.gates))


__all__ = [
    "CacheEntry",
    "CacheStore",
    "SqlCacheStore",
    "SqlLayoutStore",
    "cache_key",
    "round_radius",
]
