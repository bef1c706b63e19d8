"""
Shared fixtures for SkyTrack tests.

Everything here is in-process: no network, no real timers.
"""

import json
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from contracts.validation import (
    Airport,
    Coordinate,
    RouteSchedule,
    TelemetryReport,
    TelemetrySnapshot,
    TrackedFlight,
)
from tracking.scheduler import ManualClock, ManualScheduler

EXAMPLES_DIR = Path(__file__).parent.parent / "contracts" / "examples"
DEPARTURE_TIME = datetime(2024, 3, 1, 15, 0, tzinfo=timezone.utc)


def load_example(filename: str) -> dict:
    """Load example JSON file."""
    with open(EXAMPLES_DIR / filename) as f:
        return json.load(f)


@pytest.fixture
def lax() -> Airport:
    return Airport(
        code="LAX",
        name="Los Angeles International Airport",
        city="Los Angeles",
        country="United States",
        coordinate=Coordinate(latitude=33.9425, longitude=-118.4081),
    )


@pytest.fixture
def jfk() -> Airport:
    return Airport(
        code="JFK",
        name="John F. Kennedy International Airport",
        city="New York",
        country="United States",
        coordinate=Coordinate(latitude=40.6413, longitude=-73.7781),
    )


@pytest.fixture
def schedule(lax, jfk) -> RouteSchedule:
    """LAX -> JFK, five hours."""
    return RouteSchedule(
        departure=lax,
        arrival=jfk,
        departure_time=DEPARTURE_TIME,
        estimated_duration_s=18000,
        estimated_distance_km=3975.0,
    )


@pytest.fixture
def flight(schedule) -> TrackedFlight:
    return TrackedFlight(flight_number="AA100", schedule=schedule)


@pytest.fixture
def make_report():
    """Factory for TelemetryReport with sensible cruise defaults."""
    def _make(
        vehicle_id: str = "a1b2c3",
        callsign: str = "AA100",
        latitude=39.0,
        longitude=-98.0,
        velocity_mps=240.0,
        **overrides,
    ) -> TelemetryReport:
        position = None
        if latitude is not None and longitude is not None:
            position = Coordinate(latitude=latitude, longitude=longitude)
        fields = {
            "vehicle_id": vehicle_id,
            "callsign": callsign,
            "origin_country": "United States",
            "position": position,
            "last_contact": DEPARTURE_TIME,
            "on_ground": False,
            "velocity_mps": velocity_mps,
            "heading_deg": 75.0,
            "baro_altitude_m": 10668.0,
            "geo_altitude_m": 10900.0,
        }
        fields.update(overrides)
        return TelemetryReport(**fields)

    return _make


@pytest.fixture
def make_snapshot():
    def _make(*reports, captured_at: datetime = DEPARTURE_TIME) -> TelemetrySnapshot:
        return TelemetrySnapshot(captured_at=captured_at, reports=tuple(reports))

    return _make


@pytest.fixture
def clock() -> ManualClock:
    """Virtual clock one hour after the fixture departure time."""
    return ManualClock(start=DEPARTURE_TIME.replace(hour=16))


@pytest.fixture
def scheduler(clock) -> ManualScheduler:
    return ManualScheduler(clock=clock)
