"""
SkyTrack Contracts Package

Provides shared constants and validation for data contracts.
"""

from contracts.constants import *
from contracts.validation import (
    Coordinate,
    Airport,
    RouteSchedule,
    TrackedFlight,
    TelemetryReport,
    TelemetrySnapshot,
    FlightProgress,
    OfflineEstimate,
    validate_tracked_flight,
    validate_route_schedule,
    validate_telemetry_report,
    validate_telemetry_snapshot,
)

__all__ = [
    # Constants
    "EARTH_RADIUS_KM",
    "DEFAULT_CRUISE_SPEED_KMH",
    "SNAPSHOT_TTL_SECONDS",
    "TELEMETRY_REFRESH_SECONDS",
    "TICK_SECONDS",
    "MATCH_RADIUS_KM",
    "GEOCODE_CACHE_SIZE",
    "INTERNATIONAL_WATERS",
    # Models
    "Coordinate",
    "Airport",
    "RouteSchedule",
    "TrackedFlight",
    "TelemetryReport",
    "TelemetrySnapshot",
    "FlightProgress",
    "OfflineEstimate",
    # Validators
    "validate_tracked_flight",
    "validate_route_schedule",
    "validate_telemetry_report",
    "validate_telemetry_snapshot",
]
