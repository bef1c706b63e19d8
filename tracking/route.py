"""
Route schedule construction for flights whose duration and distance are
not independently known.
"""

from datetime import datetime
from typing import Optional

from contracts.constants import DEFAULT_CRUISE_SPEED_KMH, DEFAULT_ROUTE_SEGMENTS
from contracts.validation import Airport, RouteSchedule
from tracking.geomath import distance_km, estimate_duration_s, generate_waypoints


def build_route_schedule(
    departure: Airport,
    arrival: Airport,
    departure_time: datetime,
    duration_s: Optional[float] = None,
    segments: int = DEFAULT_ROUTE_SEGMENTS,
    cruise_speed_kmh: float = DEFAULT_CRUISE_SPEED_KMH,
) -> RouteSchedule:
    """
    Build a RouteSchedule with a great-circle polyline.

    Distance is the great-circle distance between the airports; duration
    defaults to that distance flown at a constant cruise speed.

    Raises:
        ValueError: if both airports share a coordinate and no duration is
            given (a zero-length route has no constant-speed duration).
    """
    dep = departure.coordinate
    arr = arrival.coordinate
    distance = distance_km(dep, arr)

    if duration_s is None:
        duration_s = estimate_duration_s(distance, cruise_speed_kmh)
    if duration_s <= 0:
        raise ValueError(
            f"cannot derive a positive duration for {departure.code}->{arrival.code} "
            f"(distance {distance:.3f} km)"
        )

    waypoints = tuple(generate_waypoints(dep, arr, segments))
    # Pin the endpoints so the polyline invariant holds exactly
    waypoints = (dep,) + waypoints[1:-1] + (arr,)

    return RouteSchedule(
        departure=departure,
        arrival=arrival,
        departure_time=departure_time,
        estimated_duration_s=duration_s,
        estimated_distance_km=distance,
        waypoints=waypoints,
    )
