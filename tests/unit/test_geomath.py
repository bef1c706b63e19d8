"""
Unit tests for spherical geometry and route construction.
"""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from contracts.validation import Airport, Coordinate
from tracking.geomath import (
    bearing_deg,
    distance_km,
    estimate_duration_s,
    generate_waypoints,
    interpolate,
)
from tracking.route import build_route_schedule

LAX = Coordinate(latitude=33.9425, longitude=-118.4081)
JFK = Coordinate(latitude=40.6413, longitude=-73.7781)
LHR = Coordinate(latitude=51.47, longitude=-0.4543)
SYD = Coordinate(latitude=-33.9399, longitude=151.1753)
NRT = Coordinate(latitude=35.772, longitude=140.3929)

SAMPLE_PAIRS = [
    (LAX, JFK),
    (LHR, SYD),
    (NRT, LAX),
    (Coordinate(latitude=0, longitude=179.5), Coordinate(latitude=0, longitude=-179.5)),
    (Coordinate(latitude=89.0, longitude=0), Coordinate(latitude=-89.0, longitude=90)),
]


class TestDistance:
    """Test haversine great-circle distance."""

    def test_lax_to_jfk(self):
        """LAX -> JFK on a 6371 km sphere."""
        d = distance_km(LAX, JFK)
        assert 3970 <= d <= 4000

    @pytest.mark.parametrize("a,b", SAMPLE_PAIRS)
    def test_symmetric(self, a, b):
        assert distance_km(a, b) == pytest.approx(distance_km(b, a), rel=1e-12)

    def test_zero_for_same_point(self):
        assert distance_km(LHR, LHR) == 0.0

    def test_across_date_line_is_short(self):
        """One degree of longitude at the equator, not 359."""
        a = Coordinate(latitude=0, longitude=179.5)
        b = Coordinate(latitude=0, longitude=-179.5)
        assert distance_km(a, b) == pytest.approx(111.19, abs=0.1)


class TestInterpolate:
    """Test great-circle interpolation."""

    @pytest.mark.parametrize("a,b", SAMPLE_PAIRS)
    def test_endpoints(self, a, b):
        start = interpolate(a, b, 0.0)
        end = interpolate(a, b, 1.0)
        assert distance_km(start, a) < 1e-6
        assert distance_km(end, b) < 1e-6

    def test_midpoint_splits_distance(self):
        mid = interpolate(LAX, JFK, 0.5)
        total = distance_km(LAX, JFK)
        assert distance_km(LAX, mid) == pytest.approx(total / 2, rel=1e-9)
        assert distance_km(mid, JFK) == pytest.approx(total / 2, rel=1e-9)

    def test_coincident_points_return_start(self):
        assert interpolate(LHR, LHR, 0.7) == LHR

    def test_crosses_date_line(self):
        a = Coordinate(latitude=0, longitude=170)
        b = Coordinate(latitude=0, longitude=-170)
        mid = interpolate(a, b, 0.5)
        assert mid.latitude == pytest.approx(0.0, abs=1e-9)
        assert abs(mid.longitude) == pytest.approx(180.0, abs=1e-9)


class TestBearing:
    """Test initial bearing."""

    def test_cardinal_directions(self):
        origin = Coordinate(latitude=0, longitude=0)
        assert bearing_deg(origin, Coordinate(latitude=10, longitude=0)) == pytest.approx(0.0)
        assert bearing_deg(origin, Coordinate(latitude=0, longitude=10)) == pytest.approx(90.0)
        assert bearing_deg(origin, Coordinate(latitude=-10, longitude=0)) == pytest.approx(180.0)
        assert bearing_deg(origin, Coordinate(latitude=0, longitude=-10)) == pytest.approx(270.0)

    @pytest.mark.parametrize("a,b", SAMPLE_PAIRS)
    def test_range(self, a, b):
        assert 0.0 <= bearing_deg(a, b) < 360.0

    def test_lax_to_jfk_heads_east_north_east(self):
        assert 60.0 < bearing_deg(LAX, JFK) < 75.0


class TestWaypoints:
    """Test lazy waypoint generation."""

    def test_count_and_endpoints(self):
        points = list(generate_waypoints(LAX, JFK, 20))
        assert len(points) == 21
        assert distance_km(points[0], LAX) < 1e-6
        assert distance_km(points[-1], JFK) < 1e-6

    def test_restartable(self):
        assert list(generate_waypoints(LHR, SYD, 5)) == list(generate_waypoints(LHR, SYD, 5))

    def test_evenly_spaced(self):
        points = list(generate_waypoints(LHR, SYD, 4))
        legs = [distance_km(a, b) for a, b in zip(points, points[1:])]
        for leg in legs:
            assert leg == pytest.approx(legs[0], rel=1e-9)

    def test_zero_segments_rejected(self):
        with pytest.raises(ValueError):
            generate_waypoints(LAX, JFK, 0)


class TestDuration:
    """Test constant-speed duration estimate."""

    def test_850_km_takes_one_hour(self):
        assert estimate_duration_s(850.0) == pytest.approx(3600.0)

    def test_custom_speed(self):
        assert estimate_duration_s(900.0, speed_kmh=450.0) == pytest.approx(7200.0)

    def test_non_positive_speed_rejected(self):
        with pytest.raises(ValueError):
            estimate_duration_s(100.0, speed_kmh=0)


class TestBuildRouteSchedule:
    """Test schedule derivation from airports."""

    @pytest.fixture
    def airports(self):
        lhr = Airport(code="lhr", name="Heathrow", city="London", country="United Kingdom", coordinate=LHR)
        syd = Airport(code="SYD", name="Kingsford Smith", city="Sydney", country="Australia", coordinate=SYD)
        return lhr, syd

    def test_defaults(self, airports):
        lhr, syd = airports
        departure_time = datetime(2024, 3, 1, 21, 0, tzinfo=timezone.utc)
        schedule = build_route_schedule(lhr, syd, departure_time)

        distance = distance_km(LHR, SYD)
        assert schedule.estimated_distance_km == pytest.approx(distance)
        assert schedule.estimated_duration_s == pytest.approx(distance / 850.0 * 3600)
        assert len(schedule.waypoints) == 21
        assert schedule.waypoints[0] == LHR
        assert schedule.waypoints[-1] == SYD
        assert schedule.departure.code == "LHR"

    def test_explicit_duration(self, airports):
        lhr, syd = airports
        schedule = build_route_schedule(lhr, syd, "2024-03-01T21:00:00Z", duration_s=79200, segments=4)
        assert schedule.estimated_duration_s == 79200
        assert len(schedule.waypoints) == 5
        assert schedule.departure_time.tzinfo is not None

    def test_same_airport_needs_duration(self, airports):
        lhr, _ = airports
        with pytest.raises(ValueError):
            build_route_schedule(lhr, lhr, datetime(2024, 3, 1, tzinfo=timezone.utc))

    def test_same_airport_with_duration(self, airports):
        lhr, _ = airports
        schedule = build_route_schedule(lhr, lhr, datetime(2024, 3, 1, tzinfo=timezone.utc), duration_s=1800)
        assert schedule.estimated_distance_km == 0.0
        assert all(point == LHR for point in schedule.waypoints)
