"""
Spherical-geometry primitives on a spherical Earth.

All functions are pure and operate on Coordinate values in degrees.
"""

import math
from typing import Iterator

from contracts.constants import DEFAULT_CRUISE_SPEED_KMH, EARTH_RADIUS_KM
from contracts.validation import Coordinate

# Central angles below this are treated as coincident points
COINCIDENT_EPSILON_RAD = 1e-12


def _central_angle(a: Coordinate, b: Coordinate) -> float:
    """Great-circle central angle between two points in radians (haversine)."""
    lat1_rad = math.radians(a.latitude)
    lat2_rad = math.radians(b.latitude)
    dlat = lat2_rad - lat1_rad
    dlon = math.radians(b.longitude - a.longitude)

    h = (math.sin(dlat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2)

    # Rounding can push h marginally above 1 for near-antipodal points
    return 2 * math.asin(math.sqrt(min(h, 1.0)))


def distance_km(a: Coordinate, b: Coordinate) -> float:
    """
    Calculate great-circle distance between two points using the haversine formula.

    Args:
        a: First point
        b: Second point

    Returns:
        Distance in kilometers (Earth radius 6371 km)
    """
    return EARTH_RADIUS_KM * _central_angle(a, b)


def interpolate(a: Coordinate, b: Coordinate, fraction: float) -> Coordinate:
    """
    Spherical linear interpolation along the great-circle arc from a to b.

    Args:
        a: Start point (fraction 0)
        b: End point (fraction 1)
        fraction: Position along the arc in [0, 1]

    Returns:
        Interpolated coordinate.

    Coincident points return ``a``. Antipodal points have no unique great
    circle: sin(d) is ~0 and the slerp weights blow up, so the result for
    that case is unspecified and must not be relied on.
    """
    d = _central_angle(a, b)
    if d < COINCIDENT_EPSILON_RAD:
        return a

    lat1 = math.radians(a.latitude)
    lon1 = math.radians(a.longitude)
    lat2 = math.radians(b.latitude)
    lon2 = math.radians(b.longitude)

    sin_d = math.sin(d)
    weight_a = math.sin((1 - fraction) * d) / sin_d
    weight_b = math.sin(fraction * d) / sin_d

    x = weight_a * math.cos(lat1) * math.cos(lon1) + weight_b * math.cos(lat2) * math.cos(lon2)
    y = weight_a * math.cos(lat1) * math.sin(lon1) + weight_b * math.cos(lat2) * math.sin(lon2)
    z = weight_a * math.sin(lat1) + weight_b * math.sin(lat2)

    lat = math.degrees(math.atan2(z, math.sqrt(x * x + y * y)))
    lon = math.degrees(math.atan2(y, x))

    return Coordinate(
        latitude=max(-90.0, min(90.0, lat)),
        longitude=max(-180.0, min(180.0, lon)),
    )


def bearing_deg(a: Coordinate, b: Coordinate) -> float:
    """
    Calculate initial great-circle bearing from a to b.

    Returns:
        Bearing in degrees [0, 360), where 0=North, 90=East
    """
    lat1_rad = math.radians(a.latitude)
    lat2_rad = math.radians(b.latitude)
    dlon_rad = math.radians(b.longitude - a.longitude)

    x = math.sin(dlon_rad) * math.cos(lat2_rad)
    y = (math.cos(lat1_rad) * math.sin(lat2_rad) -
         math.sin(lat1_rad) * math.cos(lat2_rad) * math.cos(dlon_rad))

    bearing = math.degrees(math.atan2(x, y))
    return (bearing + 360) % 360


def generate_waypoints(a: Coordinate, b: Coordinate, n: int) -> Iterator[Coordinate]:
    """
    Lazily sample n+1 points along the great circle at fractions i/n.

    Each call returns a fresh generator, so the sequence can be restarted.
    """
    if n < 1:
        raise ValueError(f"segment count must be >= 1, got {n}")
    return (interpolate(a, b, i / n) for i in range(n + 1))


def estimate_duration_s(distance: float, speed_kmh: float = DEFAULT_CRUISE_SPEED_KMH) -> float:
    """Constant-speed flight time in seconds for a distance in km."""
    if speed_kmh <= 0:
        raise ValueError(f"speed must be positive, got {speed_kmh}")
    return distance / speed_kmh * 3600
