"""Configuration settings for the RampTrack backend."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache

import boto3
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger("ramptrack.config")

# Shared SSM client for secret reads. Default to a region so imports do not
# fail in environments without AWS configuration (e.g. CI test runners).
_ssm_client = boto3.client(
    "ssm",
    region_name=os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION") or "us-east-1",
)


def _get_bool(env_var: str, default: bool = False) -> bool:
    """Parse an environment variable into a boolean with a default."""

    value = os.getenv(env_var)
    if value is None:
        return default

    return value.lower() in {"1", "true", "yes", "on"}


def _get_prefixes(env_var: str, default: str) -> tuple[str, ...]:
    raw = os.getenv(env_var, default)
    return tuple(p.strip().upper() for p in raw.split(",") if p.strip())


@lru_cache(maxsize=1)
def get_opensky_client_secret(parameter_name: str) -> str:
    """Fetch the OpenSky client secret from AWS SSM Parameter Store.

    The value is cached in-memory to avoid repeated SSM calls.
    """

    try:
        response = _ssm_client.get_parameter(Name=parameter_name, WithDecryption=True)
        value = response.get("Parameter", {}).get("Value")
    except (ClientError, BotoCoreError) as exc:  # pragma: no cover - AWS error passthrough
        logger.error("Failed to load OpenSky client secret from SSM: %s", exc)
        raise RuntimeError("Unable to load OpenSky client secret from SSM") from exc

    if not value:
        logger.error("Received empty OpenSky client secret from SSM")
        raise RuntimeError("OpenSky client secret not configured in SSM")

    return value


@dataclass
class Settings:
    """Application configuration loaded from environment variables."""

    ramptrack_env: str = os.getenv("RAMPTRACK_ENV", "local")
    log_level: str = os.getenv("RAMPTRACK_LOG_LEVEL", "INFO")

    # OpenSky telemetry provider
    opensky_states_url: str = os.getenv(
        "OPENSKY_STATES_URL", "https://opensky-network.org/api/states/all"
    )
    opensky_token_url: str = os.getenv(
        "OPENSKY_TOKEN_URL",
        "https://auth.opensky-network.org/auth/realms/opensky-network/protocol/openid-connect/token",
    )
    opensky_client_id: str | None = os.getenv("OPENSKY_CLIENT_ID")
    opensky_client_secret: str | None = os.getenv("OPENSKY_CLIENT_SECRET")
    opensky_secret_parameter: str | None = os.getenv("OPENSKY_CLIENT_SECRET_SSM_PARAM")
    opensky_timeout: float = float(os.getenv("OPENSKY_TIMEOUT", "12.0"))
    opensky_user_agent: str = os.getenv("OPENSKY_USER_AGENT", "ramptrack/0.1")

    # Fleet filter: operating carrier plus optional regional partners
    allowed_callsign_prefixes: tuple[str, ...] = field(
        default_factory=lambda: _get_prefixes("ALLOWED_CALLSIGN_PREFIXES", "JIA")
    )
    default_radius_nm: float = float(os.getenv("DEFAULT_RADIUS_NM", "55"))

    # Cache tiers and cooldown
    ephemeral_ttl_seconds: float = float(os.getenv("EPHEMERAL_TTL_SECONDS", "6"))
    durable_fresh_ttl_seconds: float = float(os.getenv("DURABLE_FRESH_TTL_SECONDS", "4"))
    cooldown_seconds: float = float(os.getenv("COOLDOWN_SECONDS", "10"))
    cooldown_max_seconds: float = float(os.getenv("COOLDOWN_MAX_SECONDS", "60"))
    cooldown_backoff: bool = _get_bool("COOLDOWN_BACKOFF", default=True)

    # Snapshot status thresholds
    landed_max_kts: float = float(os.getenv("LANDED_MAX_KTS", "10"))
    offline_after_seconds: int = int(os.getenv("OFFLINE_AFTER_SECONDS", "120"))

    # Trails
    trail_min_kts: float = float(os.getenv("TRAIL_MIN_KTS", "5"))
    trail_min_move_meters: float = float(os.getenv("TRAIL_MIN_MOVE_METERS", "25"))
    trail_max_age_ms: int = int(os.getenv("TRAIL_MAX_AGE_MS", "120000"))
    trail_max_points: int = int(os.getenv("TRAIL_MAX_POINTS", "18"))

    # Gate and taxi-node association
    gate_radius_meters: float = float(os.getenv("GATE_RADIUS_METERS", "40"))
    gate_max_speed_kts: float = float(os.getenv("GATE_MAX_SPEED_KTS", "5"))
    taxi_node_radius_meters: float = float(os.getenv("TAXI_NODE_RADIUS_METERS", "60"))

    # Durable store
    store_timeout: float = float(os.getenv("STORE_TIMEOUT", "8.0"))
    track_point_retention_hours: int = int(os.getenv("TRACK_POINT_RETENTION_HOURS", "24"))


settings = Settings()

# Resolve the client secret from SSM only when it is not provided directly
if not settings.opensky_client_secret and settings.opensky_secret_parameter:
    try:
        settings.opensky_client_secret = get_opensky_client_secret(
            settings.opensky_secret_parameter
        )
    except RuntimeError:
        logger.warning("OpenSky client secret not available at import time")

__all__ = ["settings", "Settings", "get_opensky_client_secret"]
