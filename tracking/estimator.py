"""
Progress estimation from live telemetry or from the schedule alone.

Live estimates measure progress as great-circle distance flown from the
departure airport over the airport-to-airport great-circle distance. The
schedule's estimated_distance_km is not used as the denominator, so the
live and offline paths share one distance model.

Offline estimates are dead reckoning: elapsed time over scheduled duration,
placed on the great circle between the airports.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Protocol, Union

from contracts.constants import (
    ESTIMATE_MODE_LIVE,
    ESTIMATE_MODE_OFFLINE,
    SAME_AIRPORT_TOLERANCE_KM,
)
from contracts.validation import (
    Coordinate,
    FlightProgress,
    OfflineEstimate,
    RouteSchedule,
    TelemetryReport,
)
from tracking.errors import DataError
from tracking.geomath import distance_km, interpolate
from tracking.location import LocationClassifier
from tracking.metrics import ESTIMATES_COMPUTED

logger = logging.getLogger(__name__)

Estimate = Union[FlightProgress, OfflineEstimate]


class Locator(Protocol):
    def classify(self, coord: Coordinate) -> str:
        ...


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProgressEstimator:
    """Stateless estimator; the locator names positions."""

    def __init__(self, locator: Optional[Locator] = None):
        self.locator = locator or LocationClassifier()

    def estimate_live(
        self,
        schedule: RouteSchedule,
        report: TelemetryReport,
        now: Optional[datetime] = None,
    ) -> FlightProgress:
        """
        Compute progress from a live report.

        Raises:
            DataError: if the report has no position, or the route has zero
                length while the aircraft is away from the airport
        """
        if report.position is None:
            raise DataError(f"report {report.vehicle_id} has no position")

        position = report.position
        departure = schedule.departure.coordinate
        arrival = schedule.arrival.coordinate

        total = distance_km(departure, arrival)
        from_departure = distance_km(departure, position)

        if total <= 0.0:
            if from_departure >= SAME_AIRPORT_TOLERANCE_KM:
                raise DataError(
                    f"route {schedule.departure.code}->{schedule.arrival.code} has zero length "
                    f"but aircraft is {from_departure:.1f} km away"
                )
            progress = 1.0
        else:
            progress = _clamp(from_departure / total)

        remaining_km = distance_km(position, arrival)
        speed = report.velocity_mps or 0.0

        # Zero speed means unknown ETA; reported as 0, not as arrived
        eta = (remaining_km * 1000) / speed if speed > 0 else 0.0

        altitude = report.altitude_m

        ESTIMATES_COMPUTED.labels(mode=ESTIMATE_MODE_LIVE).inc()
        return FlightProgress(
            current_position=position,
            progress_fraction=progress,
            distance_remaining_km=remaining_km,
            eta_seconds=eta,
            current_location_name=self.locator.classify(position),
            altitude_m=altitude if altitude is not None else 0.0,
            speed_mps=speed,
            heading_deg=report.heading_deg if report.heading_deg is not None else 0.0,
            on_ground=report.on_ground,
            computed_at=now or _utc_now(),
            vehicle_id=report.vehicle_id,
        )

    def estimate_offline(self, schedule: RouteSchedule, now: datetime) -> OfflineEstimate:
        """
        Dead-reckon position from the schedule.

        Before departure the aircraft is held at the departure airport with
        the full duration remaining; no extrapolation backwards.

        Raises:
            DataError: if the scheduled duration is not positive
        """
        duration = schedule.estimated_duration_s
        if duration <= 0:
            raise DataError(f"scheduled duration must be positive, got {duration}")

        elapsed = (now - schedule.departure_time).total_seconds()
        departure = schedule.departure

        ESTIMATES_COMPUTED.labels(mode=ESTIMATE_MODE_OFFLINE).inc()

        if elapsed < 0:
            return OfflineEstimate(
                estimated_position=departure.coordinate,
                progress_fraction=0.0,
                estimated_location_name=departure.display_name,
                elapsed_seconds=0.0,
                remaining_seconds=duration,
                computed_at=now,
            )

        progress = _clamp(elapsed / duration)
        position = interpolate(departure.coordinate, schedule.arrival.coordinate, progress)

        return OfflineEstimate(
            estimated_position=position,
            progress_fraction=progress,
            estimated_location_name=self.locator.classify(position),
            elapsed_seconds=elapsed,
            remaining_seconds=max(duration - elapsed, 0.0),
            computed_at=now,
        )

    def estimate(
        self,
        schedule: RouteSchedule,
        report: Optional[TelemetryReport],
        now: datetime,
        offline_forced: bool = False,
    ) -> Estimate:
        """Live estimate when a positioned report exists and offline is not forced, else offline."""
        if report is not None and report.position is not None and not offline_forced:
            return self.estimate_live(schedule, report, now)
        return self.estimate_offline(schedule, now)
