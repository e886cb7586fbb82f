"""
Unit tests for great-circle helpers.
"""

import math

import pytest

from src.logbook.geo import (
    EARTH_RADIUS_NM,
    destination_point,
    distance_nm,
    format_position,
    within_distance,
)
from src.logbook.models import Position


# ============================================================================
# distance_nm
# ============================================================================


class TestDistance:
    """Haversine distance in nautical miles."""

    @pytest.mark.parametrize("lat,lon", [
        (0.0, 0.0),
        (51.9, 4.5),
        (-33.86, 151.21),
        (89.999, -179.999),
    ])
    def test_identical_points_are_zero(self, lat, lon):
        assert distance_nm(lat, lon, lat, lon) == 0.0

    @pytest.mark.parametrize("a,b", [
        ((0.0, 0.0), (0.0, 1.0)),
        ((43.5, 7.0), (38.5, -28.6)),
        ((-10.0, 170.0), (10.0, -170.0)),
    ])
    def test_symmetric(self, a, b):
        assert distance_nm(*a, *b) == pytest.approx(distance_nm(*b, *a), abs=1e-9)

    def test_one_degree_longitude_at_equator(self):
        expected = EARTH_RADIUS_NM * math.pi / 180
        assert distance_nm(0.0, 0.0, 0.0, 1.0) == pytest.approx(expected)
        assert distance_nm(0.0, 0.0, 0.0, 1.0) == pytest.approx(60.04, abs=0.01)

    def test_one_degree_latitude(self):
        assert distance_nm(10.0, 20.0, 11.0, 20.0) == pytest.approx(60.04, abs=0.01)

    def test_antimeridian_crossing_is_short(self):
        assert distance_nm(0.0, 179.5, 0.0, -179.5) == pytest.approx(60.04, abs=0.01)

    def test_non_negative(self):
        assert distance_nm(12.0, -40.0, -12.0, 40.0) > 0.0


class TestWithinDistance:
    def test_small_move_is_within(self):
        a = Position(0.0, 0.0)
        b = Position(0.0, 0.0005)
        assert within_distance(a, b, 0.054)

    def test_large_move_is_not_within(self):
        a = Position(0.0, 0.0)
        b = Position(0.0, 0.01)
        assert not within_distance(a, b, 0.054)


class TestDestinationPoint:
    def test_due_east_along_equator(self):
        lat, lon = destination_point(0.0, 0.0, 90.0, 60.0405)
        assert lat == pytest.approx(0.0, abs=1e-6)
        assert lon == pytest.approx(1.0, abs=1e-4)

    def test_distance_round_trip(self):
        lat, lon = destination_point(43.5, 7.0, 270.0, 12.0)
        assert distance_nm(43.5, 7.0, lat, lon) == pytest.approx(12.0, abs=1e-6)

    def test_longitude_normalised(self):
        _, lon = destination_point(0.0, 179.9, 90.0, 30.0)
        assert -180.0 <= lon < 180.0


# ============================================================================
# format_position
# ============================================================================


class TestFormatPosition:
    def test_north_east(self):
        assert format_position(12.5, 4.25) == "12°30.000'N, 4°15.000'E"

    def test_south_west(self):
        assert format_position(-33.5, -70.75) == "33°30.000'S, 70°45.000'W"

    def test_missing(self):
        assert format_position(None, 4.0) == "Position unavailable"
