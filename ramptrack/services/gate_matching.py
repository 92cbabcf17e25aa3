"""Gate occupancy and taxi-node association for aircraft on the surface."""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from ramptrack.config import settings
from ramptrack.geo import haversine_meters
from ramptrack.models.aircraft import AircraftSnapshot
from ramptrack.models.airport import GateRecord, TaxiNode
from ramptrack.models.surface import GateOccupancy, TaxiAssociation

logger = logging.getLogger("ramptrack.services.gates")


def _is_parked_at(
    aircraft: AircraftSnapshot, gate: GateRecord, radius_m: float, max_speed_kt: float
) -> bool:
    # Missing speed never counts as stopped
    if aircraft.ground_speed_kt is None or aircraft.ground_speed_kt >= max_speed_kt:
        return False
    return haversine_meters(aircraft, gate.position) < radius_m


def match_aircraft_to_gates(
    aircraft: Sequence[AircraftSnapshot],
    gates: Iterable[GateRecord],
    *,
    radius_m: float | None = None,
    max_speed_kt: float | None = None,
) -> list[GateOccupancy]:
    """Report one occupancy entry per gate, in gate order.

    Each gate takes the first aircraft in ``aircraft`` that is within
    ``radius_m`` and slower than ``max_speed_kt``. This is a greedy scan, not
    an optimal assignment: the pool is not consumed, so an aircraft between
    two close gates can be reported at both.
    """

    radius_m = radius_m if radius_m is not None else settings.gate_radius_meters
    max_speed_kt = max_speed_kt if max_speed_kt is not None else settings.gate_max_speed_kts

    results = []
    for gate in gates:
        match = next(
            (a for a in aircraft if _is_parked_at(a, gate, radius_m, max_speed_kt)),
            None,
        )
        results.append(GateOccupancy(gate_id=gate.id, aircraft=match))

    occupied = sum(1 for r in results if r.aircraft is not None)
    logger.debug("Gate scan: %s of %s gates occupied", occupied, len(results))
    return results


def nearest_taxi_nodes(
    aircraft: Iterable[AircraftSnapshot],
    nodes: Sequence[TaxiNode],
    *,
    radius_m: float | None = None,
) -> list[TaxiAssociation]:
    """Attach each aircraft to its closest taxi-graph node within ``radius_m``."""

    radius_m = radius_m if radius_m is not None else settings.taxi_node_radius_meters
    if not nodes:
        return []

    associations = []
    for snapshot in aircraft:
        node, distance = min(
            ((n, haversine_meters(snapshot, n)) for n in nodes),
            key=lambda pair: pair[1],
        )
        if distance <= radius_m:
            associations.append(
                TaxiAssociation(icao24=snapshot.icao24, node_id=node.id, distance_m=round(distance, 1))
            )
    return associations


__all__ = ["match_aircraft_to_gates", "nearest_taxi_nodes"]
