"""FastAPI dependencies resolving process-wide services from app state."""

from __future__ import annotations

from fastapi import HTTPException, Path, Request, status

from ramptrack.models.airport import AirportBase, get_airport
from ramptrack.services.container import Services


def get_services(request: Request) -> Services:
    return request.app.state.services


def require_airport(base: str = Path(..., description="Three-letter base code")) -> AirportBase:
    airport = get_airport(base)
    if airport is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown airport")
    return airport


__all__ = ["get_services", "require_airport"]
