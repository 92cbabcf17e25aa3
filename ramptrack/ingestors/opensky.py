"""OpenSky states client: bounding-box queries and vector normalization.

OpenSky state vector positions used here:
0: icao24          - ICAO24 hex address
1: callsign        - Callsign (8 chars max, space padded)
4: last_contact    - Unix timestamp of last message
5: longitude       - WGS84 longitude
6: latitude        - WGS84 latitude
8: on_ground       - Boolean
9: velocity        - Ground speed (m/s)
10: true_track     - Track angle (degrees, 0=north)
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging
import math
from typing import Any, Iterable, Optional

import httpx

from ramptrack.config import settings
from ramptrack.errors import AuthError, UpstreamError, UpstreamTimeout
from ramptrack.geo import BoundingBox
from ramptrack.ingestors.opensky_auth import TokenManager
from ramptrack.models.aircraft import AircraftSnapshot, AircraftStatus

logger = logging.getLogger("ramptrack.ingestors.opensky")

MS_TO_KNOTS = 1.943844
_MIN_VECTOR_LENGTH = 11
# Largest epoch second a datetime can represent (9999-12-31T23:59:59Z)
_MAX_EPOCH_SECONDS = 253_402_300_799


def _is_number(value: Any) -> bool:
    """Finite int or float. NaN and infinities decoded from JSON do not count."""

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def _ms_to_knots(value_ms: Any) -> float | None:
    if not _is_number(value_ms):
        return None
    knots = float(value_ms) * MS_TO_KNOTS
    return knots if math.isfinite(knots) else None


def _epoch_seconds(value: Any) -> int | None:
    if not _is_number(value) or not 0 <= value <= _MAX_EPOCH_SECONDS:
        return None
    return int(value)


def _clean_callsign(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    return value.strip().upper() or None


def filter_allowed(
    snapshots: Iterable[AircraftSnapshot], prefixes: Iterable[str]
) -> list[AircraftSnapshot]:
    """Keep snapshots whose callsign starts with one of ``prefixes``.

    Records without a callsign cannot be attributed to the fleet and are
    dropped.
    """

    allowed = tuple(p.strip().upper() for p in prefixes if p and p.strip())
    if not allowed:
        return []

    kept = []
    for snapshot in snapshots:
        callsign = (snapshot.callsign or "").strip().upper()
        if callsign and callsign.startswith(allowed):
            if callsign != snapshot.callsign:
                snapshot = snapshot.model_copy(update={"callsign": callsign})
            kept.append(snapshot)
    return kept


class TelemetryClient:
    """Fetch and normalize aircraft state vectors from OpenSky."""

    def __init__(
        self,
        *,
        token_manager: TokenManager,
        base_url: str | None = None,
        timeout: float | None = None,
        landed_max_kts: float | None = None,
        user_agent: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.token_manager = token_manager
        self.base_url = base_url or settings.opensky_states_url
        self.timeout = timeout or settings.opensky_timeout
        self.landed_max_kts = (
            landed_max_kts if landed_max_kts is not None else settings.landed_max_kts
        )
        self.user_agent = user_agent or settings.opensky_user_agent
        self.transport = transport

    async def fetch_states(self, bbox: BoundingBox) -> list[Any]:
        """Return the raw ``states`` list for ``bbox``.

        A 401 forces one token refresh and a single retry. Any other failure
        is raised to the caller, which owns fallback policy.
        """

        params: dict[str, Any] = {**bbox.to_params(), "extended": 1}

        token = await self.token_manager.get_token()
        response = await self._get(params, token)
        if response.status_code == 401:
            logger.info("OpenSky rejected bearer token; refreshing and retrying once")
            token = await self.token_manager.get_token(force_refresh=True)
            response = await self._get(params, token)
            if response.status_code == 401:
                raise AuthError(
                    "OpenSky rejected refreshed token",
                    status=401,
                    body_snippet=response.text,
                )

        if response.status_code == 429:
            logger.warning("OpenSky rate limit encountered: %s", response.text[:200])
        if not response.is_success:
            logger.warning("OpenSky returned HTTP %s", response.status_code)
            raise UpstreamError(
                f"OpenSky HTTP {response.status_code}",
                status=response.status_code,
                body_snippet=response.text,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            logger.warning("Failed to parse OpenSky JSON response: %s", exc)
            raise UpstreamError(
                "OpenSky response is not JSON",
                status=response.status_code,
                body_snippet=response.text,
            ) from exc

        if not isinstance(payload, dict):
            raise UpstreamError(
                "OpenSky response has unexpected shape",
                status=response.status_code,
                body_snippet=response.text,
            )

        states = payload.get("states")
        if states is None:
            return []
        if not isinstance(states, list):
            raise UpstreamError(
                "OpenSky states field is not a list",
                status=response.status_code,
                body_snippet=response.text,
            )
        logger.debug("Received %s state vectors from OpenSky", len(states))
        return states

    async def _get(self, params: dict[str, Any], token: str) -> httpx.Response:
        headers = {"Authorization": f"Bearer {token}", "User-Agent": self.user_agent}
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                return await client.get(self.base_url, params=params, headers=headers)
        except httpx.TimeoutException as exc:
            logger.warning("OpenSky request timed out: %s", exc)
            raise UpstreamTimeout("OpenSky request timed out") from exc
        except httpx.RequestError as exc:
            logger.warning("OpenSky request failed: %s", exc)
            raise UpstreamError("OpenSky request failed", body_snippet=str(exc)) from exc

    def normalize(
        self, raw_states: Iterable[Any], *, now: datetime | None = None
    ) -> list[AircraftSnapshot]:
        updated_at = now or datetime.now(timezone.utc)
        snapshots = []
        for entry in raw_states:
            snapshot = self._normalize_vector(entry, updated_at)
            if snapshot:
                snapshots.append(snapshot)

        logger.debug("Normalized %s aircraft snapshots", len(snapshots))
        return snapshots

    def _normalize_vector(self, entry: Any, updated_at: datetime) -> Optional[AircraftSnapshot]:
        if not isinstance(entry, (list, tuple)) or len(entry) < _MIN_VECTOR_LENGTH:
            return None

        icao24 = entry[0]
        lon = entry[5]
        lat = entry[6]
        if not isinstance(icao24, str) or not icao24.strip():
            return None
        if not _is_number(lat) or not _is_number(lon):
            return None

        on_ground = entry[8] is True
        knots = _ms_to_knots(entry[9])
        landed = on_ground or (knots is not None and knots <= self.landed_max_kts)

        return AircraftSnapshot(
            icao24=icao24.strip().lower(),
            callsign=_clean_callsign(entry[1]),
            lat=float(lat),
            lon=float(lon),
            on_ground=on_ground,
            ground_speed_kt=knots,
            track=float(entry[10]) if _is_number(entry[10]) else None,
            last_contact=_epoch_seconds(entry[4]),
            status=AircraftStatus.LANDED if landed else AircraftStatus.ACTIVE,
            source="opensky",
            updated_at=updated_at,
        )

    async def get_nearby(
        self, bbox: BoundingBox, prefixes: Iterable[str]
    ) -> list[AircraftSnapshot]:
        raw = await self.fetch_states(bbox)
        return filter_allowed(self.normalize(raw), prefixes)


__all__ = ["MS_TO_KNOTS", "TelemetryClient", "filter_allowed"]
