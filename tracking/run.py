#!/usr/bin/env python3
"""
Entry point for tracking a single flight.

Loads the flight record from FLIGHT_FILE, wires the telemetry feed,
geocoder and tracking session, and logs every new estimate.
"""

import json
import os
import sys
import time
import logging
import threading

from prometheus_client import start_http_server

from contracts.constants import TELEMETRY_REFRESH_SECONDS, TICK_SECONDS
from contracts.validation import (
    Airport,
    FlightProgress,
    TrackedFlight,
    validate_tracked_flight,
)
from ingestion.opensky_client import OpenSkyClient
from tracking.estimator import Estimate, ProgressEstimator
from tracking.feed import TelemetryFeed
from tracking.geocode import NominatimLookup, ReverseGeocoder
from tracking.route import build_route_schedule
from tracking.scheduler import ThreadScheduler
from tracking.session import TrackingSession

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)

FLIGHT_FILE = os.getenv("FLIGHT_FILE", "flight.json")
FORCE_OFFLINE = os.getenv("FORCE_OFFLINE", "false").lower() == "true"
METRICS_PORT = int(os.getenv("METRICS_PORT", "8080"))
GEOCODER_ENABLED = os.getenv("GEOCODER_ENABLED", "false").lower() == "true"
REFRESH_SECONDS = float(os.getenv("TELEMETRY_REFRESH_SECONDS", str(TELEMETRY_REFRESH_SECONDS)))
TICK_INTERVAL_SECONDS = float(os.getenv("TICK_SECONDS", str(TICK_SECONDS)))


def start_metrics_server():
    """Start Prometheus metrics server in background thread."""
    try:
        start_http_server(METRICS_PORT)
        logger.info(f"Prometheus metrics server started on port {METRICS_PORT}")
    except Exception as e:
        logger.error(f"Failed to start metrics server: {e}")


def load_flight(data: dict) -> TrackedFlight:
    """
    Build a TrackedFlight from a flight record.

    Accepts either a full record with a "schedule" object, or a short form
    with "departure", "arrival" and "departure_time" (plus an optional
    "estimated_duration_s"), in which case the schedule is derived from the
    great-circle route.

    Raises:
        ValueError: if the record is invalid
    """
    if "schedule" not in data:
        departure = Airport(**data["departure"])
        arrival = Airport(**data["arrival"])
        schedule = build_route_schedule(
            departure,
            arrival,
            data["departure_time"],
            duration_s=data.get("estimated_duration_s"),
        )
        data = {
            "flight_number": data["flight_number"],
            "known_vehicle_id": data.get("known_vehicle_id"),
            "schedule": schedule,
        }

    is_valid, flight, error = validate_tracked_flight(data)
    if not is_valid:
        raise ValueError(f"Invalid flight record: {error}")
    return flight


def load_flight_file(path: str) -> TrackedFlight:
    with open(path) as f:
        return load_flight(json.load(f))


def log_estimate(result: Estimate) -> None:
    if isinstance(result, FlightProgress):
        logger.info(
            f"[live] {result.progress_fraction:.1%} over {result.current_location_name}, "
            f"{result.distance_remaining_km:.0f} km to go, ETA {result.eta_seconds / 60:.0f} min, "
            f"alt {result.altitude_m:.0f} m"
        )
    else:
        logger.info(
            f"[offline] {result.progress_fraction:.1%} near {result.estimated_location_name}, "
            f"{result.remaining_seconds / 60:.0f} min remaining"
        )


def build_session() -> TrackingSession:
    scheduler = ThreadScheduler()

    feed = TelemetryFeed(client=OpenSkyClient())
    feed.load_cached()

    lookup = NominatimLookup() if GEOCODER_ENABLED else None
    geocoder = ReverseGeocoder(
        lookup=lookup,
        submit=lambda job: scheduler.submit(job, name="geocode"),
    )

    def remember_vehicle(flight_number: str, vehicle_id: str) -> None:
        logger.info(f"Recommended vehicle id for {flight_number}: {vehicle_id}")

    session = TrackingSession(
        feed=feed,
        scheduler=scheduler,
        estimator=ProgressEstimator(locator=geocoder),
        tick_seconds=TICK_INTERVAL_SECONDS,
        refresh_seconds=REFRESH_SECONDS,
        on_vehicle_id=remember_vehicle,
    )
    session.set_offline_mode(FORCE_OFFLINE)
    session.subscribe(log_estimate)
    return session


def main() -> int:
    logger.info("=" * 50)
    logger.info("SkyTrack Flight Tracker - Starting")
    logger.info("=" * 50)

    try:
        flight = load_flight_file(FLIGHT_FILE)
    except (OSError, ValueError, KeyError, TypeError) as e:
        logger.error(f"Could not load flight from {FLIGHT_FILE}: {e}")
        return 1

    metrics_thread = threading.Thread(target=start_metrics_server, daemon=True)
    metrics_thread.start()

    session = build_session()
    session.start(flight)

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    finally:
        session.stop()

    return 0


if __name__ == "__main__":
    sys.exit(main())
