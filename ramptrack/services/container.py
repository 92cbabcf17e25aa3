"""Process-wide service wiring, built once in the app lifespan."""

from __future__ import annotations

from dataclasses import dataclass

import httpx
from sqlalchemy.orm import sessionmaker

from ramptrack.config import Settings, settings as default_settings
from ramptrack.db import SessionLocal
from ramptrack.ingestors.opensky import TelemetryClient
from ramptrack.ingestors.opensky_auth import TokenManager
from ramptrack.services.cache_coordinator import CacheCoordinator, CachePolicy
from ramptrack.services.trails import TrailTracker
from ramptrack.store import SqlCacheStore, SqlLayoutStore


@dataclass
class Services:
    token_manager: TokenManager
    telemetry: TelemetryClient
    cache_store: SqlCacheStore
    layout_store: SqlLayoutStore
    coordinator: CacheCoordinator
    trails: TrailTracker


def build_services(
    cfg: Settings | None = None,
    *,
    session_factory: sessionmaker = SessionLocal,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Services:
    cfg = cfg or default_settings
    policy = CachePolicy.from_settings(cfg)

    token_manager = TokenManager(
        client_id=cfg.opensky_client_id,
        client_secret=cfg.opensky_client_secret,
        token_url=cfg.opensky_token_url,
        timeout=policy.timeout,
        transport=transport,
    )
    telemetry = TelemetryClient(
        token_manager=token_manager,
        base_url=cfg.opensky_states_url,
        timeout=policy.timeout,
        landed_max_kts=cfg.landed_max_kts,
        user_agent=cfg.opensky_user_agent,
        transport=transport,
    )
    cache_store = SqlCacheStore(
        session_factory,
        trail_min_kts=cfg.trail_min_kts,
        offline_after_seconds=cfg.offline_after_seconds,
        retention_hours=cfg.track_point_retention_hours,
    )
    return Services(
        token_manager=token_manager,
        telemetry=telemetry,
        cache_store=cache_store,
        layout_store=SqlLayoutStore(session_factory),
        coordinator=CacheCoordinator(telemetry=telemetry, store=cache_store, policy=policy),
        trails=TrailTracker(
            min_speed_kts=cfg.trail_min_kts,
            min_move_meters=cfg.trail_min_move_meters,
            max_age_ms=cfg.trail_max_age_ms,
            max_points=cfg.trail_max_points,
        ),
    )


__all__ = ["Services", "build_services"]
