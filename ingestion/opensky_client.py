"""
OpenSky Network telemetry client.

Fetches the bulk state-vector array from /states/all and parses it into a
TelemetrySnapshot. Transport and HTTP failures raise TransportError; the
caller decides whether to keep serving a cached snapshot.
"""

import os
import time
import logging
from datetime import datetime, timezone
from typing import Optional

import requests

from contracts.constants import PROVIDER_OPENSKY
from contracts.validation import (
    TelemetryReport,
    TelemetrySnapshot,
    validate_telemetry_report,
)
from tracking.errors import TransportError
from tracking.metrics import (
    STATES_DISCARDED,
    TELEMETRY_FETCH_LATENCY,
    TELEMETRY_FETCHES,
    TOKEN_REFRESHES,
)

logger = logging.getLogger(__name__)

# ============================================
# Configuration
# ============================================

OPENSKY_USERNAME = os.getenv("OPENSKY_USERNAME")
OPENSKY_PASSWORD = os.getenv("OPENSKY_PASSWORD")
OPENSKY_API_URL = os.getenv("OPENSKY_API_URL", "https://opensky-network.org/api/states/all")
OPENSKY_TOKEN_URL = os.getenv(
    "OPENSKY_TOKEN_URL",
    "https://auth.opensky-network.org/auth/realms/opensky-network/protocol/openid-connect/token",
)
OPENSKY_TIMEOUT_SECONDS = float(os.getenv("OPENSKY_TIMEOUT_SECONDS", "30"))
TOKEN_REFRESH_BUFFER_SECONDS = 300  # Refresh 5 minutes before expiry (tokens last 30 min)


# ============================================
# State Parsing
# ============================================

def transform_state(state: list) -> Optional[TelemetryReport]:
    """
    Parse one OpenSky state array into a TelemetryReport.

    Index layout: icao24, callsign, origin_country, time_position,
    last_contact, longitude, latitude, baro_altitude, on_ground, velocity,
    true_track, vertical_rate, sensors, geo_altitude, squawk, spi,
    position_source. Reports without a position are kept with position=None.

    Returns:
        TelemetryReport, or None if the array is malformed
    """
    if not isinstance(state, (list, tuple)):
        logger.debug(f"Discarding non-array state: {type(state).__name__}")
        STATES_DISCARDED.inc()
        return None

    try:
        icao24 = state[0]
        callsign = state[1]
        origin_country = state[2]
        last_contact = state[4]
        longitude = state[5]
        latitude = state[6]
        baro_altitude = state[7]
        on_ground = state[8]
        velocity = state[9]
        true_track = state[10]
        vertical_rate = state[11]
        geo_altitude = state[13]
        squawk = state[14]
    except (IndexError, TypeError) as e:
        logger.debug(f"Malformed state array: {e}")
        STATES_DISCARDED.inc()
        return None

    if not icao24 or last_contact is None:
        STATES_DISCARDED.inc()
        return None

    position = None
    if latitude is not None and longitude is not None:
        position = {"latitude": latitude, "longitude": longitude}

    is_valid, report, error = validate_telemetry_report({
        "vehicle_id": icao24,
        "callsign": callsign,
        "origin_country": origin_country,
        "position": position,
        "last_contact": last_contact,
        "on_ground": bool(on_ground),
        "velocity_mps": velocity,
        "heading_deg": true_track,
        "vertical_rate_mps": vertical_rate,
        "baro_altitude_m": baro_altitude,
        "geo_altitude_m": geo_altitude,
        "squawk": squawk,
    })
    if not is_valid:
        logger.debug(f"Discarding invalid state for {icao24}: {error}")
        STATES_DISCARDED.inc()
        return None

    return report


def parse_states(data: dict, received_at: Optional[datetime] = None) -> TelemetrySnapshot:
    """
    Build a snapshot from a /states/all response body.

    captured_at is the provider's "time" field when present, otherwise the
    receive time.
    """
    provider_time = data.get("time")
    if provider_time is not None:
        captured_at = datetime.fromtimestamp(provider_time, tz=timezone.utc)
    else:
        captured_at = received_at or datetime.now(timezone.utc)

    reports = []
    for state in data.get("states") or []:
        report = transform_state(state)
        if report is not None:
            reports.append(report)

    return TelemetrySnapshot(captured_at=captured_at, reports=tuple(reports))


# ============================================
# OpenSky Client (OAuth2 Client Credentials Flow)
# ============================================

class OpenSkyClient:
    """Client for OpenSky Network API with optional OAuth2 authentication."""

    provider = PROVIDER_OPENSKY

    def __init__(
        self,
        client_id: Optional[str] = OPENSKY_USERNAME,
        client_secret: Optional[str] = OPENSKY_PASSWORD,
        session: Optional[requests.Session] = None,
        api_url: str = OPENSKY_API_URL,
        token_url: str = OPENSKY_TOKEN_URL,
        timeout: float = OPENSKY_TIMEOUT_SECONDS,
    ):
        """
        Initialize OpenSky client.

        Args:
            client_id: OAuth2 client ID (from OPENSKY_USERNAME env var)
            client_secret: OAuth2 client secret (from OPENSKY_PASSWORD env var)
            session: requests session to use; a new one is created if omitted

        Without credentials the client uses anonymous (rate-limited) access.
        """
        self.client_id = client_id
        self.client_secret = client_secret
        self.session = session or requests.Session()
        self.api_url = api_url
        self.token_url = token_url
        self.timeout = timeout

        # OAuth2 token state
        self._access_token: Optional[str] = None
        self._token_expires_at: float = 0  # Unix timestamp when token expires

    @property
    def has_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _refresh_token(self) -> bool:
        """
        Obtain a new OAuth2 access token using client credentials flow.

        Returns:
            True if token was successfully obtained, False otherwise.
        """
        if not self.has_credentials:
            logger.warning("Cannot refresh token: missing client credentials")
            return False

        try:
            response = self.session.post(
                self.token_url,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                },
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            TOKEN_REFRESHES.labels(status="error").inc()
            logger.error(f"Token refresh request failed: {e}")
            return False

        if response.status_code != 200:
            TOKEN_REFRESHES.labels(status="failed").inc()
            logger.error(f"Failed to obtain OAuth2 token: HTTP {response.status_code}")
            return False

        token_data = response.json()
        self._access_token = token_data.get("access_token")
        expires_in = token_data.get("expires_in", 1800)
        self._token_expires_at = time.time() + expires_in

        TOKEN_REFRESHES.labels(status="success").inc()
        logger.info(f"OAuth2 token obtained. Expires in {expires_in}s ({expires_in // 60} min)")
        return True

    def _ensure_valid_token(self) -> bool:
        """Refresh the token if it is missing or about to expire."""
        if not self.has_credentials:
            return False  # No credentials, will use anonymous access

        time_until_expiry = self._token_expires_at - time.time()
        if self._access_token is None or time_until_expiry <= TOKEN_REFRESH_BUFFER_SECONDS:
            return self._refresh_token()
        return True

    def _get_auth_headers(self) -> dict:
        if self._access_token:
            return {"Authorization": f"Bearer {self._access_token}"}
        return {}

    def fetch_states(self, bbox: Optional[dict] = None, retry_on_401: bool = True) -> dict:
        """
        Fetch the raw /states/all response body.

        Args:
            bbox: Optional bounding box with lat_min, lat_max, lon_min, lon_max
            retry_on_401: If True, refresh token and retry once on 401

        Raises:
            TransportError: on timeout, connection failure, or non-200 status
        """
        self._ensure_valid_token()

        params = None
        if bbox:
            params = {
                "lamin": bbox["lat_min"],
                "lamax": bbox["lat_max"],
                "lomin": bbox["lon_min"],
                "lomax": bbox["lon_max"],
            }

        try:
            with TELEMETRY_FETCH_LATENCY.time():
                response = self.session.get(
                    self.api_url,
                    params=params,
                    headers=self._get_auth_headers(),
                    timeout=self.timeout,
                )
        except requests.exceptions.Timeout as e:
            TELEMETRY_FETCHES.labels(status="timeout").inc()
            raise TransportError(f"OpenSky timeout: {e}", error_type="timeout") from e
        except requests.exceptions.RequestException as e:
            TELEMETRY_FETCHES.labels(status="connection_error").inc()
            raise TransportError(f"OpenSky connection error: {e}", error_type="connection") from e

        if response.status_code == 200:
            TELEMETRY_FETCHES.labels(status="success").inc()
            try:
                return response.json()
            except ValueError as e:
                TELEMETRY_FETCHES.labels(status="invalid_body").inc()
                raise TransportError(f"OpenSky returned invalid JSON: {e}", error_type="invalid_body") from e

        if response.status_code == 401 and retry_on_401 and self.has_credentials:
            # Token may have expired server-side; refresh once
            TELEMETRY_FETCHES.labels(status="auth_failed").inc()
            logger.warning("401 Unauthorized - attempting token refresh...")
            if self._refresh_token():
                return self.fetch_states(bbox, retry_on_401=False)

        if response.status_code == 429:
            TELEMETRY_FETCHES.labels(status="rate_limited").inc()
            raise TransportError("OpenSky rate limit exceeded", error_type="rate_limited")

        TELEMETRY_FETCHES.labels(status="error").inc()
        raise TransportError(
            f"OpenSky API error: HTTP {response.status_code}",
            error_type=f"http_{response.status_code}",
        )

    def fetch_snapshot(self, bbox: Optional[dict] = None) -> TelemetrySnapshot:
        """Fetch and parse a full telemetry snapshot."""
        received_at = datetime.now(timezone.utc)
        data = self.fetch_states(bbox)
        snapshot = parse_states(data, received_at)
        logger.info(f"Fetched {len(snapshot.reports)} states captured at {snapshot.captured_at.isoformat()}")
        return snapshot
