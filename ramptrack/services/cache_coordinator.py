"""Two-tier aircraft cache with cooldown and in-flight de-duplication.

Request flow for ``CacheCoordinator.get_aircraft``:

1. Process-local memory tier, trusted only within its own TTL.
2. Durable tier: served while the key is cooling down after an upstream
   failure, otherwise when fresh.
3. Live fetch, shared by every concurrent caller for the same key. Success
   refreshes both tiers and clears the cooldown. Failure evicts the memory
   copy and serves the best durable payload under an extended cooldown.

The fleet filter and offline status are applied to every payload returned,
whichever tier it came from.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import threading
import time
from typing import Callable, Optional

from ramptrack.config import Settings, settings as default_settings
from ramptrack.errors import AuthError, StoreError, UpstreamError, UpstreamTimeout
from ramptrack.geo import bounding_box_from_center
from ramptrack.ingestors.opensky import TelemetryClient, filter_allowed
from ramptrack.models.aircraft import AircraftSnapshot
from ramptrack.models.airport import AirportBase
from ramptrack.store import CacheEntry, CacheStore, cache_key, round_radius

logger = logging.getLogger("ramptrack.services.cache")

SOURCE_MEMORY = "cache_fresh_mem"
SOURCE_DURABLE = "cache_fresh"
SOURCE_COOLDOWN = "cache_cooldown"
SOURCE_LIVE = "opensky_live"
SOURCE_AUTH_FAILED = "opensky_auth_failed"
SOURCE_TIMEOUT = "opensky_timeout"
SOURCE_FETCH_FAILED = "cache_fetch_failed"


@dataclass(frozen=True)
class CachePolicy:
    """Tunables for freshness, cooldown and filtering."""

    ephemeral_ttl: float = 6.0
    durable_fresh_ttl: float = 4.0
    cooldown_seconds: float = 10.0
    cooldown_max_seconds: float = 60.0
    backoff: bool = True
    timeout: float = 12.0
    allowed_prefixes: tuple[str, ...] = ("JIA",)
    offline_after_seconds: float = 120.0

    @classmethod
    def from_settings(cls, cfg: Settings | None = None) -> "CachePolicy":
        cfg = cfg or default_settings
        return cls(
            ephemeral_ttl=cfg.ephemeral_ttl_seconds,
            durable_fresh_ttl=cfg.durable_fresh_ttl_seconds,
            cooldown_seconds=cfg.cooldown_seconds,
            cooldown_max_seconds=cfg.cooldown_max_seconds,
            backoff=cfg.cooldown_backoff,
            timeout=cfg.opensky_timeout,
            allowed_prefixes=tuple(cfg.allowed_callsign_prefixes),
            offline_after_seconds=cfg.offline_after_seconds,
        )

    def next_cooldown(self, previous: CacheEntry | None) -> float:
        """Cooldown window after a failure, doubling on consecutive failures."""

        if not self.backoff or previous is None or previous.cooldown_until is None:
            return self.cooldown_seconds
        prior = previous.cooldown_seconds or self.cooldown_seconds
        return min(max(prior * 2, self.cooldown_seconds), self.cooldown_max_seconds)


@dataclass
class AircraftResult:
    aircraft: list[AircraftSnapshot]
    stale: bool
    source: str
    updated_at: Optional[datetime] = None
    error: Optional[str] = None


@dataclass
class CoordinatorStats:
    memory_hits: int = 0
    durable_hits: int = 0
    cooldown_hits: int = 0
    live_fetches: int = 0
    live_failures: int = 0
    store_errors: int = 0

    def as_dict(self) -> dict[str, int]:
        return dict(self.__dict__)


class MemoryCache:
    """Thread-safe process-local cache of the last good entry per key."""

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str, now: float, ttl: float) -> CacheEntry | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if not entry.is_fresh(now, ttl):
                del self._entries[key]
                return None
            return entry

    def set(self, entry: CacheEntry) -> None:
        with self._lock:
            self._entries[entry.key] = entry

    def discard(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def _timestamp(ts: float | None) -> datetime | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def _failure_source(exc: Exception) -> str:
    if isinstance(exc, AuthError):
        return SOURCE_AUTH_FAILED
    if isinstance(exc, UpstreamTimeout):
        return SOURCE_TIMEOUT
    if isinstance(exc, UpstreamError) and exc.status is not None:
        return f"opensky_http_{exc.status}"
    return SOURCE_FETCH_FAILED


class CacheCoordinator:
    """Single entry point for nearby-aircraft lookups.

    Owns the memory tier and the in-flight registry. One instance is built
    per process and shared by request handlers.
    """

    def __init__(
        self,
        *,
        telemetry: TelemetryClient,
        store: CacheStore,
        policy: CachePolicy | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.telemetry = telemetry
        self.store = store
        self.policy = policy or CachePolicy.from_settings()
        self._clock = clock
        self._memory = MemoryCache()
        self._inflight: dict[str, asyncio.Task] = {}
        self.stats = CoordinatorStats()

    def reset(self) -> None:
        """Drop process-local state. Durable rows are left untouched."""

        self._memory.clear()
        self._inflight.clear()
        self.stats = CoordinatorStats()

    async def get_aircraft(
        self, base: AirportBase, radius_nm: float, force: bool = False
    ) -> AircraftResult:
        radius_nm = round_radius(radius_nm)
        key = cache_key(base.code, radius_nm)
        now = self._clock()

        if not force:
            entry = self._memory.get(key, now, self.policy.ephemeral_ttl)
            if entry is not None:
                self.stats.memory_hits += 1
                return self._result(entry.aircraft, False, SOURCE_MEMORY, entry.fetched_at)

        durable, read_ok = self._read_durable(base.code, radius_nm)

        if not force and durable is not None:
            if durable.in_cooldown(now):
                self.stats.cooldown_hits += 1
                logger.debug("Key %s cooling down until %s", key, durable.cooldown_until)
                return self._result(durable.aircraft, True, SOURCE_COOLDOWN, durable.fetched_at)
            if durable.is_fresh(now, self.policy.durable_fresh_ttl):
                self.stats.durable_hits += 1
                return self._result(durable.aircraft, False, SOURCE_DURABLE, durable.fetched_at)

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch_live(base, radius_nm, durable, read_ok))
            self._inflight[key] = task
            task.add_done_callback(lambda done, key=key: self._release(key, done))
        else:
            logger.debug("Joining in-flight fetch for %s", key)

        result = await asyncio.shield(task)
        return self._result(
            result.aircraft, result.stale, result.source, result.updated_at, result.error
        )

    def _release(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    def _read_durable(self, base_code: str, radius_nm: float) -> tuple[CacheEntry | None, bool]:
        """Return ``(entry, ok)``. ``ok`` is False when the store could not be read."""

        try:
            return self.store.read_by_key(base_code, radius_nm), True
        except StoreError as exc:
            self.stats.store_errors += 1
            logger.warning("Durable cache read failed, treating as miss: %s", exc)
            return None, False

    def _write_durable(self, entry: CacheEntry) -> None:
        try:
            self.store.upsert(entry)
        except StoreError as exc:
            self.stats.store_errors += 1
            logger.warning("Durable cache write failed: %s", exc)

    async def _fetch_live(
        self,
        base: AirportBase,
        radius_nm: float,
        durable: CacheEntry | None,
        read_ok: bool = True,
    ) -> AircraftResult:
        bbox = bounding_box_from_center(base, radius_nm)
        self.stats.live_fetches += 1
        try:
            aircraft = await self.telemetry.get_nearby(bbox, self.policy.allowed_prefixes)
        except (AuthError, UpstreamError) as exc:
            return self._fail(base, radius_nm, durable, read_ok, exc)

        now = self._clock()
        entry = CacheEntry(
            base_code=base.code,
            radius_nm=radius_nm,
            aircraft=aircraft,
            fetched_at=now,
        )
        self._memory.set(entry)
        self._write_durable(entry)
        self._record_snapshots(base.code, aircraft, now)
        logger.info("Live fetch for %s returned %s aircraft", entry.key, len(aircraft))
        return AircraftResult(aircraft, False, SOURCE_LIVE, _timestamp(now))

    def _fail(
        self,
        base: AirportBase,
        radius_nm: float,
        durable: CacheEntry | None,
        read_ok: bool,
        exc: Exception,
    ) -> AircraftResult:
        now = self._clock()
        key = cache_key(base.code, radius_nm)
        self._memory.discard(key)
        self.stats.live_failures += 1
        source = _failure_source(exc)

        if not read_ok:
            # A row that could not be read is never overwritten
            durable, read_ok = self._read_durable(base.code, radius_nm)

        window = self.policy.next_cooldown(durable)
        previous = durable or CacheEntry(base_code=base.code, radius_nm=radius_nm)
        if read_ok:
            self._write_durable(previous.with_cooldown(now + window, window))
        else:
            logger.warning("Durable cache unreadable; cooldown for %s not recorded", key)

        logger.warning(
            "Live fetch for %s failed (%s); cooling down %.0fs: %s",
            key,
            source,
            window,
            exc,
        )
        return AircraftResult(
            list(previous.aircraft), True, source, _timestamp(previous.fetched_at), str(exc)[:200]
        )

    def _record_snapshots(self, base_code: str, aircraft: list[AircraftSnapshot], now: float) -> None:
        record = getattr(self.store, "record_snapshots", None)
        if record is None:
            return
        try:
            record(base_code, aircraft, now)
        except StoreError as exc:
            self.stats.store_errors += 1
            logger.warning("Failed to record aircraft snapshots: %s", exc)

    def _result(
        self,
        aircraft: list[AircraftSnapshot],
        stale: bool,
        source: str,
        fetched_at: float | datetime | None,
        error: str | None = None,
    ) -> AircraftResult:
        now = self._clock()
        visible = [
            a.with_read_status(now, self.policy.offline_after_seconds)
            for a in filter_allowed(aircraft, self.policy.allowed_prefixes)
        ]
        updated_at = fetched_at if isinstance(fetched_at, datetime) else _timestamp(fetched_at)
        return AircraftResult(visible, stale, source, updated_at, error)


__all__ = [
    "AircraftResult",
    "CacheCoordinator",
    "CachePolicy",
    "MemoryCache",
]
