import pytest

from ramptrack.geo import bounding_box_from_center, haversine_meters
from ramptrack.models.airport import AIRPORTS, LatLon


@pytest.mark.parametrize("radius_nm", [0.5, 5, 55, 250, 500])
@pytest.mark.parametrize("code", sorted(AIRPORTS))
def test_bounding_box_is_ordered_and_contains_center(code, radius_nm):
    airport = AIRPORTS[code]

    bbox = bounding_box_from_center(airport, radius_nm)

    assert bbox.lamin < bbox.lamax
    assert bbox.lomin < bbox.lomax
    assert bbox.contains(airport.lat, airport.lon)


def test_bounding_box_uses_nautical_mile_conversion():
    bbox = bounding_box_from_center(LatLon(lat=0.0, lon=0.0), 60)

    # 60 nm = 111.12 km, a shade over one degree at the equator
    assert bbox.lamax == pytest.approx(111.12 / 111)
    assert bbox.lomax == pytest.approx(111.12 / 111)
    assert bbox.to_params() == {
        "lamin": bbox.lamin,
        "lomin": bbox.lomin,
        "lamax": bbox.lamax,
        "lomax": bbox.lomax,
    }


def test_haversine_zero_and_symmetric():
    a = LatLon(lat=32.1270, lon=-81.2020)
    b = LatLon(lat=35.2140, lon=-80.9431)

    assert haversine_meters(a, a) == 0
    assert haversine_meters(a, b) == haversine_meters(b, a)


def test_haversine_accuracy_at_airport_scale():
    gate = LatLon(lat=32.1270, lon=-81.2020)
    # 0.001 degrees of latitude is about 111.2 m
    north = LatLon(lat=32.1280, lon=-81.2020)

    assert haversine_meters(gate, north) == pytest.approx(111.19, abs=0.5)
