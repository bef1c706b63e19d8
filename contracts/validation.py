"""
Validation library for SkyTrack data contracts.

Provides Pydantic models for every value that crosses a component boundary:
route schedules coming from the flight-record store, telemetry snapshots
coming from the live-telemetry provider, and the progress values handed to
presentation layers. All models are immutable.
"""

from typing import Optional
from datetime import datetime, timedelta, timezone
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from contracts.constants import (
    CARRIER_PREFIX_LENGTH,
    METERS_TO_FEET,
    MPS_TO_KMH,
)


WAYPOINT_TOLERANCE_DEG = 1e-6


def _parse_timestamp(v):
    """Parse ISO 8601 strings and unix seconds; naive datetimes are taken as UTC."""
    if isinstance(v, str):
        v = datetime.fromisoformat(v.replace("Z", "+00:00"))
    elif isinstance(v, (int, float)) and not isinstance(v, bool):
        v = datetime.fromtimestamp(v, tz=timezone.utc)
    if isinstance(v, datetime) and v.tzinfo is None:
        v = v.replace(tzinfo=timezone.utc)
    return v


# ============================================================================
# Shared Components
# ============================================================================

class Coordinate(BaseModel):
    """Geographic position."""
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90, le=90, description="Latitude in degrees (WGS84)")
    longitude: float = Field(ge=-180, le=180, description="Longitude in degrees (WGS84)")

    def is_close(self, other: "Coordinate", tolerance_deg: float = WAYPOINT_TOLERANCE_DEG) -> bool:
        """Compare positions, treating -180 and 180 longitude as the same meridian."""
        dlon = abs(self.longitude - other.longitude) % 360.0
        dlon = min(dlon, 360.0 - dlon)
        return abs(self.latitude - other.latitude) <= tolerance_deg and dlon <= tolerance_deg


class Airport(BaseModel):
    """Airport resolved from the flight record."""
    model_config = ConfigDict(frozen=True)

    code: str = Field(min_length=3, max_length=4, description="IATA or ICAO code")
    name: str
    city: str
    country: str
    coordinate: Coordinate

    @field_validator("code")
    @classmethod
    def validate_code(cls, v: str) -> str:
        """Normalize airport code to uppercase."""
        return v.strip().upper()

    @property
    def display_name(self) -> str:
        return f"{self.city}, {self.country}"


# ============================================================================
# Route Schedule
# ============================================================================

class RouteSchedule(BaseModel):
    """Scheduled route owned by the flight record; replaced, never mutated."""
    model_config = ConfigDict(frozen=True)

    departure: Airport
    arrival: Airport
    departure_time: datetime
    estimated_duration_s: float = Field(gt=0, description="Block time estimate in seconds")
    estimated_distance_km: float = Field(ge=0, description="Route distance estimate in km")
    waypoints: Optional[tuple[Coordinate, ...]] = None

    @field_validator("departure_time", mode="before")
    @classmethod
    def parse_departure_time(cls, v):
        """Parse ISO 8601 datetime string."""
        return _parse_timestamp(v)

    @model_validator(mode="after")
    def validate_waypoints(self):
        """Waypoint polyline must start at departure and end at arrival."""
        if self.waypoints is None:
            return self
        if len(self.waypoints) < 2:
            raise ValueError("waypoints must contain at least departure and arrival")
        if not self.waypoints[0].is_close(self.departure.coordinate):
            raise ValueError("waypoints must start at the departure airport")
        if not self.waypoints[-1].is_close(self.arrival.coordinate):
            raise ValueError("waypoints must end at the arrival airport")
        return self

    @property
    def scheduled_arrival_time(self) -> datetime:
        return self.departure_time + timedelta(seconds=self.estimated_duration_s)


class TrackedFlight(BaseModel):
    """Flight identity plus schedule, as supplied by the flight-record store."""
    model_config = ConfigDict(frozen=True)

    flight_number: str = Field(min_length=3, description="Flight number or callsign, e.g. BAW283")
    schedule: RouteSchedule
    known_vehicle_id: Optional[str] = Field(None, description="Last matched icao24, if any")

    @field_validator("flight_number")
    @classmethod
    def validate_flight_number(cls, v: str) -> str:
        """Normalize flight number: no spaces, uppercase."""
        return "".join(v.split()).upper()

    @field_validator("known_vehicle_id")
    @classmethod
    def validate_known_vehicle_id(cls, v: Optional[str]) -> Optional[str]:
        """Normalize icao24 to lowercase."""
        if v is None:
            return None
        v = v.strip().lower()
        return v or None

    @property
    def carrier_prefix(self) -> str:
        return self.flight_number[:CARRIER_PREFIX_LENGTH]


# ============================================================================
# Telemetry
# ============================================================================

class TelemetryReport(BaseModel):
    """Single aircraft state vector from the live-telemetry provider."""
    model_config = ConfigDict(frozen=True)

    vehicle_id: str = Field(pattern=r"^[0-9a-f]{6}$", description="ICAO 24-bit address (hex, lowercase)")
    callsign: Optional[str] = None
    origin_country: Optional[str] = None
    position: Optional[Coordinate] = None
    last_contact: datetime = Field(description="Most recent message timestamp (freshness clock)")
    on_ground: bool = False
    velocity_mps: Optional[float] = Field(None, ge=0, description="Ground speed in m/s")
    heading_deg: Optional[float] = Field(None, ge=0, le=360, description="True track in degrees")
    vertical_rate_mps: Optional[float] = None
    baro_altitude_m: Optional[float] = None
    geo_altitude_m: Optional[float] = None
    squawk: Optional[str] = None

    @field_validator("vehicle_id", mode="before")
    @classmethod
    def validate_vehicle_id(cls, v):
        """Normalize icao24 to lowercase."""
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("callsign")
    @classmethod
    def validate_callsign(cls, v: Optional[str]) -> Optional[str]:
        """Callsigns arrive space-padded; blank means unknown."""
        if v is None:
            return None
        return v.strip() or None

    @field_validator("last_contact", mode="before")
    @classmethod
    def parse_last_contact(cls, v):
        """Parse unix seconds or ISO 8601 datetime string."""
        return _parse_timestamp(v)

    @property
    def altitude_m(self) -> Optional[float]:
        """Barometric altitude, falling back to geometric altitude."""
        if self.baro_altitude_m is not None:
            return self.baro_altitude_m
        return self.geo_altitude_m

    @property
    def speed_kmh(self) -> Optional[float]:
        if self.velocity_mps is None:
            return None
        return self.velocity_mps * MPS_TO_KMH

    @property
    def altitude_ft(self) -> Optional[float]:
        altitude = self.altitude_m
        if altitude is None:
            return None
        return altitude * METERS_TO_FEET


class TelemetrySnapshot(BaseModel):
    """Bulk state array captured in one refresh; replaced wholesale."""
    model_config = ConfigDict(frozen=True)

    captured_at: datetime
    reports: tuple[TelemetryReport, ...] = ()

    @field_validator("captured_at", mode="before")
    @classmethod
    def parse_captured_at(cls, v):
        """Parse ISO 8601 datetime string."""
        return _parse_timestamp(v)


# ============================================================================
# Results
# ============================================================================

class FlightProgress(BaseModel):
    """Telemetry-driven progress value."""
    model_config = ConfigDict(frozen=True)

    current_position: Coordinate
    progress_fraction: float = Field(ge=0, le=1)
    distance_remaining_km: float = Field(ge=0)
    eta_seconds: float = Field(ge=0, description="0 when ground speed is unknown")
    current_location_name: str = Field(min_length=1)
    altitude_m: float
    speed_mps: float
    heading_deg: float
    on_ground: bool
    computed_at: datetime
    vehicle_id: Optional[str] = None


class OfflineEstimate(BaseModel):
    """Schedule-driven (dead reckoning) progress value."""
    model_config = ConfigDict(frozen=True)

    estimated_position: Coordinate
    progress_fraction: float = Field(ge=0, le=1)
    estimated_location_name: str = Field(min_length=1)
    elapsed_seconds: float = Field(ge=0)
    remaining_seconds: float = Field(ge=0)
    computed_at: datetime


# ============================================================================
# Validation Functions
# ============================================================================

def validate_tracked_flight(data: dict) -> tuple[bool, Optional[TrackedFlight], Optional[str]]:
    """
    Validate TrackedFlight.

    Returns:
        (is_valid, flight_or_none, error_message_or_none)
    """
    try:
        flight = TrackedFlight(**data)
        return True, flight, None
    except Exception as e:
        return False, None, str(e)


def validate_route_schedule(data: dict) -> tuple[bool, Optional[RouteSchedule], Optional[str]]:
    """
    Validate RouteSchedule.

    Returns:
        (is_valid, schedule_or_none, error_message_or_none)
    """
    try:
        schedule = RouteSchedule(**data)
        return True, schedule, None
    except Exception as e:
        return False, None, str(e)


def validate_telemetry_report(data: dict) -> tuple[bool, Optional[TelemetryReport], Optional[str]]:
    """
    Validate TelemetryReport.

    Returns:
        (is_valid, report_or_none, error_message_or_none)
    """
    try:
        report = TelemetryReport(**data)
        return True, report, None
    except Exception as e:
        return False, None, str(e)


def validate_telemetry_snapshot(data: dict) -> tuple[bool, Optional[TelemetrySnapshot], Optional[str]]:
    """
    Validate TelemetrySnapshot.

    Returns:
        (is_valid, snapshot_or_none, error_message_or_none)
    """
    try:
        snapshot = TelemetrySnapshot(**data)
        return True, snapshot, None
    except Exception as e:
        return False, None, str(e)
