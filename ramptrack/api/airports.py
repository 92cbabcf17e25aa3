"""Airport layout and gate occupancy endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from ramptrack.api.deps import get_services, require_airport
from ramptrack.config import settings
from ramptrack.errors import StoreError
from ramptrack.models.airport import AirportBase, AirportLayout
from ramptrack.models.responses import LayoutResponse, OccupancyResponse
from ramptrack.services.container import Services
from ramptrack.services.gate_matching import match_aircraft_to_gates, nearest_taxi_nodes

router = APIRouter(prefix="/api/v1/airports", tags=["airports"])

logger = logging.getLogger("ramptrack.api.airports")


def _load_layout(services: Services, code: str) -> AirportLayout:
    try:
        layout = services.layout_store.read(code)
    except StoreError as exc:
        logger.error("Layout store read failed for %s: %s", code, exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Layout store unavailable",
        ) from exc

    if layout is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No layout found for airport {code}",
        )
    return layout


@router.get("/{base}/layout", response_model=LayoutResponse, summary="Surface layout")
async def get_layout(
    airport: AirportBase = Depends(require_airport),
    services: Services = Depends(get_services),
) -> LayoutResponse:
    return LayoutResponse(airport_code=airport.code, layout=_load_layout(services, airport.code))


@router.get(
    "/{base}/occupancy",
    response_model=OccupancyResponse,
    summary="Gate occupancy and taxi-node positions",
)
async def get_occupancy(
    airport: AirportBase = Depends(require_airport),
    services: Services = Depends(get_services),
) -> OccupancyResponse:
    layout = _load_layout(services, airport.code)
    result = await services.coordinator.get_aircraft(airport, settings.default_radius_nm)

    return OccupancyResponse(
        airport=airport,
        gates=match_aircraft_to_gates(result.aircraft, layout.gates),
        taxi=nearest_taxi_nodes(result.aircraft, layout.taxi_graph),
        stale=result.stale,
        source=result.source,
        updated_at=result.updated_at,
    )
