"""Error types raised while acquiring or caching telemetry."""

from __future__ import annotations

SNIPPET_LENGTH = 200


def _snippet(text: str | None) -> str:
    return (text or "")[:SNIPPET_LENGTH]


class TelemetryError(RuntimeError):
    """Base class for failures talking to the telemetry provider."""

    def __init__(self, message: str, *, status: int | None = None, body_snippet: str | None = None):
        super().__init__(message)
        self.status = status
        self.body_snippet = _snippet(body_snippet)


class AuthError(TelemetryError):
    """Token exchange failed or the provider rejected a refreshed token."""


class UpstreamError(TelemetryError):
    """Non-2xx or malformed response from the telemetry provider."""


class UpstreamTimeout(UpstreamError):
    """The provider did not answer within the configured timeout."""


class StoreError(RuntimeError):
    """Durable store read or write failed."""


__all__ = [
    "AuthError",
    "StoreError",
    "TelemetryError",
    "UpstreamError",
    "UpstreamTimeout",
]
