"""
Contract tests for flight records and progress values.

Validates that the flight-record example and the result models match the
schema contracts. These tests run independently (no network required).
"""

import json
import pytest
from pathlib import Path
import sys
from datetime import datetime, timezone

from pydantic import ValidationError

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from contracts.validation import (
    Coordinate,
    FlightProgress,
    OfflineEstimate,
    validate_route_schedule,
    validate_tracked_flight,
)


def load_example(filename: str) -> dict:
    """Load example JSON file."""
    example_path = Path(__file__).parent.parent.parent / "contracts" / "examples" / filename
    with open(example_path) as f:
        return json.load(f)


class TestTrackedFlightContract:
    """Test that flight records match the TrackedFlight schema."""

    def test_tracked_flight_example_validates(self):
        """Test that example tracked flight validates."""
        example = load_example("tracked_flight.json")
        is_valid, flight, error = validate_tracked_flight(example)

        assert is_valid, f"Example should validate: {error}"
        assert flight.flight_number == "AA100"
        assert flight.carrier_prefix == "AA"
        assert flight.known_vehicle_id is None
        assert flight.schedule.departure.code == "LAX"
        assert flight.schedule.departure_time == datetime(2024, 3, 1, 15, 0, tzinfo=timezone.utc)
        assert flight.schedule.scheduled_arrival_time == datetime(2024, 3, 1, 20, 30, tzinfo=timezone.utc)

    def test_known_vehicle_id_normalized(self):
        """Test that icao24 is lower-cased and blank means unknown."""
        example = load_example("tracked_flight.json")

        example["known_vehicle_id"] = " A1B2C3 "
        _, flight, _ = validate_tracked_flight(example)
        assert flight.known_vehicle_id == "a1b2c3"

        example["known_vehicle_id"] = "  "
        _, flight, _ = validate_tracked_flight(example)
        assert flight.known_vehicle_id is None

    def test_tracked_flight_required_fields(self):
        """Test that missing required fields fail validation."""
        example = load_example("tracked_flight.json")

        del example["schedule"]
        is_valid, _, error = validate_tracked_flight(example)
        assert not is_valid, "Should fail without schedule"


class TestRouteScheduleContract:
    """Test RouteSchedule invariants."""

    def test_duration_must_be_positive(self):
        """Test that zero duration fails validation."""
        schedule = load_example("tracked_flight.json")["schedule"]

        schedule["estimated_duration_s"] = 0
        is_valid, _, error = validate_route_schedule(schedule)
        assert not is_valid, "Should fail with zero duration"

    def test_naive_departure_time_is_utc(self):
        """Test that a timestamp without offset is read as UTC."""
        schedule = load_example("tracked_flight.json")["schedule"]

        schedule["departure_time"] = "2024-03-01T15:00:00"
        _, parsed, _ = validate_route_schedule(schedule)
        assert parsed.departure_time == datetime(2024, 3, 1, 15, 0, tzinfo=timezone.utc)

    def test_waypoints_must_span_route(self):
        """Test that waypoints must start at departure and end at arrival."""
        schedule = load_example("tracked_flight.json")["schedule"]
        dep = schedule["departure"]["coordinate"]
        arr = schedule["arrival"]["coordinate"]

        schedule["waypoints"] = [dep, {"latitude": 39.0, "longitude": -98.0}, arr]
        is_valid, _, error = validate_route_schedule(schedule)
        assert is_valid, f"Spanning waypoints should validate: {error}"

        schedule["waypoints"] = [dep, {"latitude": 39.0, "longitude": -98.0}]
        is_valid, _, error = validate_route_schedule(schedule)
        assert not is_valid, "Should fail when waypoints stop short of arrival"

        schedule["waypoints"] = [arr]
        is_valid, _, error = validate_route_schedule(schedule)
        assert not is_valid, "Should fail with a single waypoint"

    def test_invalid_airport_coordinate(self):
        """Test that invalid coordinates fail validation."""
        schedule = load_example("tracked_flight.json")["schedule"]

        schedule["arrival"]["coordinate"]["latitude"] = 91.0
        is_valid, _, error = validate_route_schedule(schedule)
        assert not is_valid, "Should fail with invalid latitude"


class TestResultContract:
    """Test that progress values enforce their ranges and are immutable."""

    def _progress(self, **overrides) -> dict:
        fields = {
            "current_position": {"latitude": 39.0, "longitude": -98.0},
            "progress_fraction": 0.5,
            "distance_remaining_km": 1990.0,
            "eta_seconds": 8000.0,
            "current_location_name": "United States",
            "altitude_m": 10668.0,
            "speed_mps": 240.0,
            "heading_deg": 75.0,
            "on_ground": False,
            "computed_at": "2024-03-01T17:30:00Z",
        }
        fields.update(overrides)
        return fields

    def test_flight_progress_validates(self):
        progress = FlightProgress(**self._progress())
        assert progress.vehicle_id is None
        assert progress.computed_at.tzinfo is not None

    @pytest.mark.parametrize("field,value", [
        ("progress_fraction", 1.5),
        ("progress_fraction", -0.1),
        ("distance_remaining_km", -1.0),
        ("eta_seconds", -1.0),
        ("current_location_name", ""),
    ])
    def test_flight_progress_ranges(self, field, value):
        with pytest.raises(ValidationError):
            FlightProgress(**self._progress(**{field: value}))

    def test_offline_estimate_ranges(self):
        with pytest.raises(ValidationError):
            OfflineEstimate(
                estimated_position={"latitude": 39.0, "longitude": -98.0},
                progress_fraction=0.5,
                estimated_location_name="United States",
                elapsed_seconds=100.0,
                remaining_seconds=-1.0,
                computed_at="2024-03-01T17:30:00Z",
            )

    def test_results_are_immutable(self):
        progress = FlightProgress(**self._progress())
        with pytest.raises(ValidationError):
            progress.progress_fraction = 0.9

    def test_coordinate_is_close_across_date_line(self):
        east = Coordinate(latitude=10.0, longitude=180.0)
        west = Coordinate(latitude=10.0, longitude=-180.0)
        assert east.is_close(west)
        assert not east.is_close(Coordinate(latitude=10.0, longitude=179.0))
