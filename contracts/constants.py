"""
Shared constants for SkyTrack components.

This module provides a single source of truth for:
- Earth and unit constants used by the geometry helpers
- Telemetry cache and refresh timings
- Matching and estimation tolerances

All components should import from this module to ensure consistency.
"""

# Geometry
EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE_LAT = 111.0
MPS_TO_KMH = 3.6
METERS_TO_FEET = 3.28084

# Dead reckoning
DEFAULT_CRUISE_SPEED_KMH = 850.0
DEFAULT_ROUTE_SEGMENTS = 20

# Telemetry
SNAPSHOT_TTL_SECONDS = 300
TELEMETRY_REFRESH_SECONDS = 45
TICK_SECONDS = 1
OPENSKY_STATE_FIELDS = 17

# Matching
MATCH_RADIUS_KM = 100.0
CARRIER_PREFIX_LENGTH = 2

# Estimation
SAME_AIRPORT_TOLERANCE_KM = 0.01

# Reverse geocoding
GEOCODE_CACHE_SIZE = 100

# Match strategies
MATCH_STRATEGY_CALLSIGN = "callsign"
MATCH_STRATEGY_VEHICLE_ID = "vehicle_id"
MATCH_STRATEGY_PROXIMITY = "proximity"
MATCH_STRATEGY_NONE = "none"

# Estimate modes
ESTIMATE_MODE_LIVE = "live"
ESTIMATE_MODE_OFFLINE = "offline"

# Session states
SESSION_STATE_IDLE = "IDLE"
SESSION_STATE_ONLINE = "ONLINE"
SESSION_STATE_OFFLINE = "OFFLINE"

# Place names
INTERNATIONAL_WATERS = "International Waters"

# Data Providers
PROVIDER_OPENSKY = "opensky"
PROVIDER_NOMINATIM = "nominatim"
