"""
Tracking session: periodic recompute of one flight's progress.

State machine: IDLE -> ONLINE <-> OFFLINE -> IDLE.

A fast tick (1 s) recomputes the estimate from the cached telemetry
snapshot and the clock; it never touches the network. A slow tick (45 s)
submits a telemetry refresh to run off the tick thread, which publishes
into the feed when it completes.
"""

import logging
import threading
from enum import Enum
from typing import Callable, List, Optional

from contracts.constants import (
    SESSION_STATE_IDLE,
    SESSION_STATE_OFFLINE,
    SESSION_STATE_ONLINE,
    TELEMETRY_REFRESH_SECONDS,
    TICK_SECONDS,
)
from contracts.validation import TrackedFlight
from tracking.errors import DataError
from tracking.estimator import Estimate, ProgressEstimator
from tracking.feed import TelemetryFeed
from tracking.matcher import TelemetryMatcher
from tracking.metrics import DATA_ERRORS, SESSION_STATE
from tracking.scheduler import Scheduler, TaskHandle, utc_now

logger = logging.getLogger(__name__)

Listener = Callable[[Estimate], None]
VehicleIdCallback = Callable[[str, str], None]


class SessionState(str, Enum):
    IDLE = SESSION_STATE_IDLE
    ONLINE = SESSION_STATE_ONLINE
    OFFLINE = SESSION_STATE_OFFLINE


class TrackingSession:
    """Owns the refresh loop for one tracked flight and exposes the latest result."""

    def __init__(
        self,
        feed: TelemetryFeed,
        scheduler: Scheduler,
        clock=utc_now,
        matcher: Optional[TelemetryMatcher] = None,
        estimator: Optional[ProgressEstimator] = None,
        tick_seconds: float = TICK_SECONDS,
        refresh_seconds: float = TELEMETRY_REFRESH_SECONDS,
        on_vehicle_id: Optional[VehicleIdCallback] = None,
    ):
        """
        Args:
            feed: Telemetry snapshot holder shared with the refresh job
            scheduler: Runs the periodic ticks and background refreshes
            clock: Returns the current aware datetime
            on_vehicle_id: Called with (flight_number, vehicle_id) when a new
                vehicle id is matched, so the caller can persist it
        """
        self.feed = feed
        self.scheduler = scheduler
        self.clock = clock
        self.matcher = matcher or TelemetryMatcher()
        self.estimator = estimator or ProgressEstimator()
        self.tick_seconds = tick_seconds
        self.refresh_seconds = refresh_seconds
        self.on_vehicle_id = on_vehicle_id

        self._lock = threading.RLock()
        self._state = SessionState.IDLE
        self._offline_forced = False
        self._flight: Optional[TrackedFlight] = None
        self._vehicle_id: Optional[str] = None
        self._latest: Optional[Estimate] = None
        self._tasks: List[TaskHandle] = []
        self._listeners: List[Listener] = []
        self._refresh_in_flight = False
        self._publish_state_metric()

    # ============================================
    # Observation
    # ============================================

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def latest(self) -> Optional[Estimate]:
        """Most recent complete result, or None when idle or nothing computed yet."""
        with self._lock:
            return self._latest

    @property
    def vehicle_id(self) -> Optional[str]:
        """Vehicle id to remember for future vehicle-id matching."""
        with self._lock:
            return self._vehicle_id

    @property
    def flight(self) -> Optional[TrackedFlight]:
        with self._lock:
            return self._flight

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a callback for every new result.

        Returns:
            A function that removes the listener
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    # ============================================
    # Lifecycle
    # ============================================

    def start(self, flight: TrackedFlight) -> None:
        """Begin tracking; ONLINE unless offline mode was already forced."""
        with self._lock:
            if self._state != SessionState.IDLE:
                raise RuntimeError(f"session already tracking {self._flight.flight_number}")

            self._flight = flight
            self._vehicle_id = flight.known_vehicle_id
            self._latest = None
            self._state = SessionState.OFFLINE if self._offline_forced else SessionState.ONLINE
            self._tasks = [
                self.scheduler.schedule_repeating(self.tick_seconds, self.tick, name="recompute"),
                self.scheduler.schedule_repeating(self.refresh_seconds, self.request_refresh, name="telemetry-refresh"),
            ]

        self._publish_state_metric()
        logger.info(f"Tracking {flight.flight_number} "
                    f"({flight.schedule.departure.code}->{flight.schedule.arrival.code}), "
                    f"state={self._state.value}")

        self.request_refresh()
        self.tick()

    def stop(self) -> None:
        """Cancel periodic work and forget the last result. In-flight refreshes may still land in the feed."""
        with self._lock:
            if self._state == SessionState.IDLE:
                return
            tasks, self._tasks = self._tasks, []
            flight_number = self._flight.flight_number
            self._state = SessionState.IDLE
            self._flight = None
            self._latest = None

        for task in tasks:
            task.cancel()

        self._publish_state_metric()
        logger.info(f"Stopped tracking {flight_number}")

    def set_offline_mode(self, offline: bool) -> None:
        """Switch between ONLINE and OFFLINE without resetting progress."""
        with self._lock:
            self._offline_forced = offline
            if self._state == SessionState.IDLE:
                return
            previous = self._state
            current = SessionState.OFFLINE if offline else SessionState.ONLINE
            self._state = current

        if previous != current:
            self._publish_state_metric()
            logger.info(f"Session switched {previous.value} -> {current.value}")
            if not offline:
                self.request_refresh()

    # ============================================
    # Periodic work
    # ============================================

    def request_refresh(self) -> None:
        """Submit a telemetry refresh unless one is already running or the session is not online."""
        with self._lock:
            if self._state != SessionState.ONLINE or self._refresh_in_flight:
                return
            self._refresh_in_flight = True

        try:
            self.scheduler.submit(self._refresh, name="telemetry-fetch")
        except Exception:
            with self._lock:
                self._refresh_in_flight = False
            raise

    def _refresh(self) -> None:
        try:
            self.feed.refresh()
        finally:
            with self._lock:
                self._refresh_in_flight = False

    def tick(self) -> Optional[Estimate]:
        """
        Recompute the estimate from the cached snapshot and the clock.

        Returns:
            The new result; the previous one if the data could not produce an
            estimate; None if the session is idle
        """
        with self._lock:
            if self._state == SessionState.IDLE:
                return None
            flight = self._flight
            offline = self._state == SessionState.OFFLINE
            known_vehicle_id = self._vehicle_id

        schedule = flight.schedule
        now = self.clock()

        report = None
        if not offline:
            snapshot = self.feed.latest()
            if snapshot is not None:
                report = self.matcher.match(
                    flight.flight_number,
                    known_vehicle_id,
                    schedule.departure.coordinate,
                    schedule.arrival.coordinate,
                    snapshot,
                )

        try:
            result = self.estimator.estimate(schedule, report, now, offline_forced=offline)
        except DataError as e:
            DATA_ERRORS.inc()
            logger.error(f"No estimate for {flight.flight_number}: {e}")
            return self.latest

        new_vehicle_id = None
        with self._lock:
            # Session was stopped or restarted while computing
            if self._flight is not flight:
                return None
            self._latest = result
            if report is not None and report.vehicle_id != self._vehicle_id:
                self._vehicle_id = report.vehicle_id
                new_vehicle_id = report.vehicle_id
            listeners = list(self._listeners)

        if new_vehicle_id is not None:
            logger.info(f"Matched {flight.flight_number} to vehicle {new_vehicle_id}")
            if self.on_vehicle_id is not None:
                self.on_vehicle_id(flight.flight_number, new_vehicle_id)

        for listener in listeners:
            try:
                listener(result)
            except Exception as e:
                logger.error(f"Result listener failed: {e}")

        return result

    def _publish_state_metric(self) -> None:
        current = self.state
        for state in SessionState:
            SESSION_STATE.labels(state=state.value).set(1 if state == current else 0)
