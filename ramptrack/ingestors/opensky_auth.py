"""OAuth2 client-credentials token handling for the OpenSky API."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import math
import time
from typing import Callable

import httpx

from ramptrack.config import settings
from ramptrack.errors import AuthError

logger = logging.getLogger("ramptrack.ingestors.opensky_auth")

DEFAULT_TOKEN_TTL_SECONDS = 1800
EARLY_EXPIRY_SECONDS = 60
MIN_TOKEN_TTL_SECONDS = 60


@dataclass
class CachedToken:
    token: str
    expires_at: float


class TokenManager:
    """Produce bearer tokens for OpenSky, refreshing only when needed.

    Tokens are stored with an expiry 60 seconds ahead of the server TTL so
    requests near the boundary do not come back 401.
    """

    def __init__(
        self,
        *,
        client_id: str | None = None,
        client_secret: str | None = None,
        token_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.client_id = client_id if client_id is not None else settings.opensky_client_id
        self.client_secret = (
            client_secret if client_secret is not None else settings.opensky_client_secret
        )
        self.token_url = token_url or settings.opensky_token_url
        self.timeout = timeout or settings.opensky_timeout
        self.transport = transport
        self._clock = clock
        self._cached: CachedToken | None = None

    @property
    def has_valid_token(self) -> bool:
        return self._cached is not None and self._clock() < self._cached.expires_at

    def clear(self) -> None:
        self._cached = None

    async def get_token(self, force_refresh: bool = False) -> str:
        if not force_refresh and self.has_valid_token:
            return self._cached.token

        client_id = (self.client_id or "").strip()
        if not client_id or not self.client_secret:
            raise AuthError("OpenSky client credentials are missing")

        data = {
            "grant_type": "client_credentials",
            "client_id": client_id,
            "client_secret": self.client_secret,
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.post(self.token_url, data=data)
        except httpx.TimeoutException as exc:
            logger.warning("OpenSky token request timed out: %s", exc)
            raise AuthError("OpenSky token request timed out") from exc
        except httpx.RequestError as exc:
            logger.warning("OpenSky token request failed: %s", exc)
            raise AuthError("OpenSky token request failed", body_snippet=str(exc)) from exc

        if not response.is_success:
            logger.error("OpenSky token exchange returned HTTP %s", response.status_code)
            raise AuthError(
                f"OpenSky token failed: {response.status_code}",
                status=response.status_code,
                body_snippet=response.text,
            )

        try:
            payload = response.json()
            token = payload["access_token"]
            if not isinstance(token, str) or not token:
                raise TypeError("access_token is not a non-empty string")
            expires_in = float(payload.get("expires_in") or DEFAULT_TOKEN_TTL_SECONDS)
            if not math.isfinite(expires_in):
                raise ValueError("expires_in is not finite")
        except (ValueError, KeyError, TypeError) as exc:
            raise AuthError(
                "OpenSky token response malformed",
                status=response.status_code,
                body_snippet=response.text,
            ) from exc

        ttl = max(MIN_TOKEN_TTL_SECONDS, expires_in - EARLY_EXPIRY_SECONDS)
        self._cached = CachedToken(token=token, expires_at=self._clock() + ttl)
        logger.info("Obtained OpenSky token valid for %.0fs", ttl)
        return token


__all__ = ["TokenManager"]
