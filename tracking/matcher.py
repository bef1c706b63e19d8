"""
Find the tracked flight's live report inside a telemetry snapshot.

Strategies are tried in order of confidence and the first hit wins:
exact callsign, then the previously matched vehicle id, then a spatial
search around both airports filtered by carrier prefix.
"""

import logging
import math
from typing import Callable, List, Optional, Tuple

from shapely.geometry import Point, box

from contracts.constants import (
    CARRIER_PREFIX_LENGTH,
    KM_PER_DEGREE_LAT,
    MATCH_RADIUS_KM,
    MATCH_STRATEGY_CALLSIGN,
    MATCH_STRATEGY_NONE,
    MATCH_STRATEGY_PROXIMITY,
    MATCH_STRATEGY_VEHICLE_ID,
)
from contracts.validation import Coordinate, TelemetryReport, TelemetrySnapshot
from tracking.metrics import MATCH_OUTCOMES

logger = logging.getLogger(__name__)

# Keeps the longitude half-width finite near the poles
MIN_COS_LATITUDE = 0.01


def _normalize(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def search_region(center: Coordinate, radius_km: float = MATCH_RADIUS_KM):
    """
    Square region of +-radius_km around a point as a shapely polygon.

    The longitude half-width is widened by 1/cos(latitude). Regions are not
    wrapped across the date line.
    """
    lat_delta = radius_km / KM_PER_DEGREE_LAT
    cos_lat = max(math.cos(math.radians(center.latitude)), MIN_COS_LATITUDE)
    lon_delta = min(radius_km / (KM_PER_DEGREE_LAT * cos_lat), 180.0)
    return box(
        center.longitude - lon_delta,
        center.latitude - lat_delta,
        center.longitude + lon_delta,
        center.latitude + lat_delta,
    )


class MatchRequest:
    """Inputs shared by all strategies for one match call."""

    def __init__(
        self,
        flight_id: str,
        known_vehicle_id: Optional[str],
        departure: Coordinate,
        arrival: Coordinate,
        snapshot: TelemetrySnapshot,
    ):
        self.flight_id = flight_id
        self.known_vehicle_id = known_vehicle_id
        self.departure = departure
        self.arrival = arrival
        self.snapshot = snapshot


Strategy = Callable[[MatchRequest], Optional[TelemetryReport]]


class TelemetryMatcher:
    """Ordered-fallback matcher; pure apart from metrics."""

    def __init__(self, radius_km: float = MATCH_RADIUS_KM):
        self.radius_km = radius_km
        self.strategies: List[Tuple[str, Strategy]] = [
            (MATCH_STRATEGY_CALLSIGN, self._by_callsign),
            (MATCH_STRATEGY_VEHICLE_ID, self._by_vehicle_id),
            (MATCH_STRATEGY_PROXIMITY, self._by_proximity),
        ]

    def match(
        self,
        flight_id: str,
        known_vehicle_id: Optional[str],
        departure: Coordinate,
        arrival: Coordinate,
        snapshot: TelemetrySnapshot,
    ) -> Optional[TelemetryReport]:
        """Return the best matching report, or None."""
        report, _ = self.match_with_strategy(flight_id, known_vehicle_id, departure, arrival, snapshot)
        return report

    def match_with_strategy(
        self,
        flight_id: str,
        known_vehicle_id: Optional[str],
        departure: Coordinate,
        arrival: Coordinate,
        snapshot: TelemetrySnapshot,
    ) -> Tuple[Optional[TelemetryReport], str]:
        """
        Run the strategies in order.

        Returns:
            (report_or_none, strategy_name); strategy is "none" on no match
        """
        request = MatchRequest(flight_id, known_vehicle_id, departure, arrival, snapshot)

        if snapshot.reports:
            for name, strategy in self.strategies:
                report = strategy(request)
                if report is not None:
                    MATCH_OUTCOMES.labels(strategy=name).inc()
                    logger.debug(f"Matched {flight_id} to {report.vehicle_id} via {name}")
                    return report, name

        MATCH_OUTCOMES.labels(strategy=MATCH_STRATEGY_NONE).inc()
        return None, MATCH_STRATEGY_NONE

    def _by_callsign(self, request: MatchRequest) -> Optional[TelemetryReport]:
        wanted = _normalize(request.flight_id)
        if not wanted:
            return None
        return next(
            (r for r in request.snapshot.reports if _normalize(r.callsign) == wanted),
            None,
        )

    def _by_vehicle_id(self, request: MatchRequest) -> Optional[TelemetryReport]:
        wanted = _normalize(request.known_vehicle_id)
        if not wanted:
            return None
        return next(
            (r for r in request.snapshot.reports if r.vehicle_id == wanted),
            None,
        )

    def _by_proximity(self, request: MatchRequest) -> Optional[TelemetryReport]:
        prefix = _normalize(request.flight_id)[:CARRIER_PREFIX_LENGTH]
        if len(prefix) < CARRIER_PREFIX_LENGTH:
            return None

        regions = (
            search_region(request.departure, self.radius_km),
            search_region(request.arrival, self.radius_km),
        )

        for report in request.snapshot.reports:
            if report.position is None or prefix not in _normalize(report.callsign):
                continue
            point = Point(report.position.longitude, report.position.latitude)
            if any(region.covers(point) for region in regions):
                return report
        return None
