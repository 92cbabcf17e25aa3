"""Aircraft poll, trail and track-history endpoints."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ramptrack.api.deps import get_services, require_airport
from ramptrack.config import settings
from ramptrack.errors import StoreError
from ramptrack.geo import bounding_box_from_center
from ramptrack.models.airport import AirportBase
from ramptrack.models.responses import (
    NearbyAircraftResponse,
    TrackHistoryResponse,
    TrailsResponse,
)
from ramptrack.services.container import Services
from ramptrack.store import cache_key

router = APIRouter(prefix="/api/v1/aircraft", tags=["aircraft"])

logger = logging.getLogger("ramptrack.api.aircraft")


@router.get(
    "/nearby/{base}",
    response_model=NearbyAircraftResponse,
    summary="Fleet aircraft near a base",
)
async def get_nearby_aircraft(
    airport: AirportBase = Depends(require_airport),
    radius_nm: Optional[float] = Query(
        default=None, alias="radiusNm", gt=0, le=1000, description="Search radius in nautical miles"
    ),
    force: bool = Query(default=False, description="Bypass both cache tiers"),
    debug: bool = Query(default=False, description="Attach cache diagnostics"),
    services: Services = Depends(get_services),
) -> NearbyAircraftResponse:
    """Return cached or live aircraft for a base.

    Upstream failures never surface as 5xx; the response carries ``stale``
    and ``source`` instead.
    """

    radius = radius_nm or settings.default_radius_nm
    result = await services.coordinator.get_aircraft(airport, radius, force=force)
    services.trails.update(airport.code, result.aircraft)

    debug_info = None
    if debug:
        debug_info = {
            "cacheKey": cache_key(airport.code, radius),
            "bbox": bounding_box_from_center(airport, radius).to_params(),
            "stats": services.coordinator.stats.as_dict(),
        }

    logger.info(
        "Nearby aircraft: base=%s radius=%s source=%s stale=%s count=%s",
        airport.code,
        radius,
        result.source,
        result.stale,
        len(result.aircraft),
    )

    return NearbyAircraftResponse(
        airport=airport,
        radius_nm=radius,
        aircraft=result.aircraft,
        stale=result.stale,
        source=result.source,
        updated_at=result.updated_at,
        error=result.error,
        debug=debug_info,
    )


@router.get(
    "/trails/{base}",
    response_model=TrailsResponse,
    summary="Recent in-memory trails for moving aircraft",
)
async def get_trails(
    airport: AirportBase = Depends(require_airport),
    services: Services = Depends(get_services),
) -> TrailsResponse:
    return TrailsResponse(base=airport.code, trails=services.trails.trails(airport.code))


@router.get(
    "/history/{base}",
    response_model=TrackHistoryResponse,
    summary="Logged track points for a base",
)
async def get_track_history(
    airport: AirportBase = Depends(require_airport),
    minutes: int = Query(default=60, description="Look-back window, clamped to 5-240"),
    include_offline: bool = Query(default=False, alias="includeOffline"),
    services: Services = Depends(get_services),
) -> TrackHistoryResponse:
    try:
        window, points = services.cache_store.track_history(
            airport.code, minutes, include_offline=include_offline
        )
    except StoreError as exc:
        logger.error("Track history unavailable: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Track history unavailable",
        ) from exc

    return TrackHistoryResponse(base=airport.code, minutes=window, points=points)
