"""Bounded, decaying position trails for aircraft in motion."""

from __future__ import annotations

import logging
import threading
import time
from typing import Iterable

from ramptrack.config import settings
from ramptrack.geo import haversine_meters
from ramptrack.models.aircraft import AircraftSnapshot
from ramptrack.models.surface import TrailPoint

logger = logging.getLogger("ramptrack.services.trails")


def _now_ms() -> int:
    return int(time.time() * 1000)


class TrailTracker:
    """Per-base trail history, kept in process memory only.

    Trails are sampled by distance so position jitter does not add points,
    pruned by age, and capped in length. An aircraft missing from an update
    loses its trail.
    """

    def __init__(
        self,
        *,
        min_speed_kts: float | None = None,
        min_move_meters: float | None = None,
        max_age_ms: int | None = None,
        max_points: int | None = None,
    ) -> None:
        self.min_speed_kts = min_speed_kts if min_speed_kts is not None else settings.trail_min_kts
        self.min_move_meters = (
            min_move_meters if min_move_meters is not None else settings.trail_min_move_meters
        )
        self.max_age_ms = max_age_ms or settings.trail_max_age_ms
        self.max_points = max_points or settings.trail_max_points
        self._trails: dict[str, dict[str, list[TrailPoint]]] = {}
        self._lock = threading.Lock()

    def update(
        self, base: str, aircraft: Iterable[AircraftSnapshot], now_ms: int | None = None
    ) -> None:
        now_ms = now_ms if now_ms is not None else _now_ms()
        snapshots = list(aircraft)

        with self._lock:
            trails = self._trails.setdefault(base, {})

            seen = {a.icao24 for a in snapshots}
            for icao24 in [k for k in trails if k not in seen]:
                del trails[icao24]

            for snapshot in snapshots:
                if snapshot.ground_speed_kt is None or snapshot.ground_speed_kt <= self.min_speed_kts:
                    continue
                points = trails.setdefault(snapshot.icao24, [])
                point = TrailPoint(
                    icao24=snapshot.icao24,
                    lat=snapshot.lat,
                    lon=snapshot.lon,
                    timestamp_ms=now_ms,
                )
                if points and haversine_meters(points[-1], point) < self.min_move_meters:
                    continue
                points.append(point)
                trails[snapshot.icao24] = self._prune(points, now_ms)

    def _prune(self, points: list[TrailPoint], now_ms: int) -> list[TrailPoint]:
        cutoff = now_ms - self.max_age_ms
        recent = [p for p in points if p.timestamp_ms >= cutoff]
        return recent[-self.max_points:]

    def trail(self, base: str, icao24: str, now_ms: int | None = None) -> list[TrailPoint]:
        now_ms = now_ms if now_ms is not None else _now_ms()
        with self._lock:
            points = self._trails.get(base, {}).get(icao24, [])
            return self._prune(points, now_ms)

    def trails(self, base: str, now_ms: int | None = None) -> dict[str, list[TrailPoint]]:
        now_ms = now_ms if now_ms is not None else _now_ms()
        with self._lock:
            result = {}
            for icao24, points in self._trails.get(base, {}).items():
                recent = self._prune(points, now_ms)
                if recent:
                    result[icao24] = recent
            return result

    def clear(self) -> None:
        with self._lock:
            self._trails.clear()


__all__ = ["TrailTracker"]
