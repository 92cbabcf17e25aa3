"""Distance and bounding-box helpers for airport-scale geometry."""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Protocol

EARTH_RADIUS_M = 6_371_000.0
KM_PER_NM = 1.852
KM_PER_DEGREE = 111.0


class LatLonLike(Protocol):
    lat: float
    lon: float


@dataclass(frozen=True)
class BoundingBox:
    """Lat/lon rectangle used to scope an OpenSky states query."""

    lamin: float
    lomin: float
    lamax: float
    lomax: float

    def contains(self, lat: float, lon: float) -> bool:
        return self.lamin <= lat <= self.lamax and self.lomin <= lon <= self.lomax

    def to_params(self) -> dict[str, float]:
        return {
            "lamin": self.lamin,
            "lomin": self.lomin,
            "lamax": self.lamax,
            "lomax": self.lomax,
        }


def haversine_meters(a: LatLonLike, b: LatLonLike) -> float:
    """Great-circle distance in meters between two points."""

    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    d_lat = lat2 - lat1
    d_lon = math.radians(b.lon - a.lon)

    x = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(x), math.sqrt(1 - x))


def bounding_box_from_center(center: LatLonLike, radius_nm: float) -> BoundingBox:
    """Convert a nautical-mile radius around ``center`` into a lat/lon box.

    The longitude span grows without bound towards the poles. Airports of
    interest are far from them, so this is left as a known limitation.
    """

    radius_km = abs(radius_nm) * KM_PER_NM
    d_lat = radius_km / KM_PER_DEGREE
    d_lon = radius_km / (KM_PER_DEGREE * math.cos(math.radians(center.lat)))
    return BoundingBox(
        lamin=center.lat - d_lat,
        lomin=center.lon - d_lon,
        lamax=center.lat + d_lat,
        lomax=center.lon + d_lon,
    )


__all__ = [
    "BoundingBox",
    "EARTH_RADIUS_M",
    "LatLonLike",
    "bounding_box_from_center",
    "haversine_meters",
]
