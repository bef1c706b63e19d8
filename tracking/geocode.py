"""
Reverse geocoding with a bounded result cache.

classify() never blocks on the network: on a cache miss it answers from the
static LocationClassifier and, when a remote lookup is configured, submits
the remote query to run in the background. Later calls for the same
(rounded) coordinate get the remote answer from the cache.
"""

import logging
import os
import threading
from typing import Callable, Optional, Protocol, Set

import requests

from contracts.constants import GEOCODE_CACHE_SIZE, PROVIDER_NOMINATIM
from contracts.validation import Coordinate
from tracking.cache import BoundedTTLCache
from tracking.location import LocationClassifier, PlaceInfo
from tracking.metrics import GEOCODE_LOOKUPS

logger = logging.getLogger(__name__)

GEOCODER_URL = os.getenv("GEOCODER_URL", "https://nominatim.openstreetmap.org/reverse")
GEOCODER_USER_AGENT = os.getenv("GEOCODER_USER_AGENT", "skytrack/0.1")
GEOCODER_TIMEOUT_SECONDS = float(os.getenv("GEOCODER_TIMEOUT_SECONDS", "10"))
CACHE_KEY_PRECISION = 1  # ~11 km of latitude per key


class RemoteLookup(Protocol):
    def __call__(self, coord: Coordinate) -> Optional[PlaceInfo]:
        ...


class NominatimLookup:
    """Reverse geocode through a Nominatim-compatible /reverse endpoint."""

    provider = PROVIDER_NOMINATIM

    def __init__(
        self,
        url: str = GEOCODER_URL,
        session: Optional[requests.Session] = None,
        user_agent: str = GEOCODER_USER_AGENT,
        timeout: float = GEOCODER_TIMEOUT_SECONDS,
    ):
        self.url = url
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent})
        self.timeout = timeout

    def __call__(self, coord: Coordinate) -> Optional[PlaceInfo]:
        """Returns None when the service fails or knows nothing about the point."""
        try:
            response = self.session.get(
                self.url,
                params={
                    "format": "jsonv2",
                    "lat": coord.latitude,
                    "lon": coord.longitude,
                    "zoom": 10,
                },
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.warning(f"Reverse geocode request failed: {e}")
            return None

        if response.status_code != 200:
            logger.warning(f"Reverse geocode error: HTTP {response.status_code}")
            return None

        try:
            data = response.json()
        except ValueError as e:
            logger.warning(f"Reverse geocode returned invalid JSON: {e}")
            return None

        if not isinstance(data, dict):
            logger.warning(f"Reverse geocode returned unexpected body: {type(data).__name__}")
            return None

        address = data.get("address") or {}
        country = address.get("country")
        if not country:
            return None

        city = (address.get("city") or address.get("town") or address.get("village")
                or address.get("state"))
        return PlaceInfo(country=country, city=city, region=address.get("state"))


class ReverseGeocoder:
    """Cached place naming; drop-in locator for ProgressEstimator."""

    def __init__(
        self,
        classifier: Optional[LocationClassifier] = None,
        lookup: Optional[RemoteLookup] = None,
        submit: Optional[Callable[[Callable[[], None]], None]] = None,
        max_entries: int = GEOCODE_CACHE_SIZE,
    ):
        """
        Args:
            classifier: Offline fallback; a default LocationClassifier if omitted
            lookup: Remote reverse geocoder; offline-only when None
            submit: Runs a job off the calling thread (e.g. ThreadScheduler.submit);
                without it remote lookups run inline
            max_entries: Cache capacity; entries never expire
        """
        self.classifier = classifier or LocationClassifier()
        self.lookup = lookup
        self.submit = submit
        self.cache: BoundedTTLCache[str, PlaceInfo] = BoundedTTLCache(
            max_entries=max_entries, name="geocode"
        )
        self._in_flight: Set[str] = set()
        self._lock = threading.Lock()

    @staticmethod
    def cache_key(coord: Coordinate) -> str:
        return f"{coord.latitude:.{CACHE_KEY_PRECISION}f},{coord.longitude:.{CACHE_KEY_PRECISION}f}"

    def describe(self, coord: Coordinate) -> PlaceInfo:
        key = self.cache_key(coord)
        cached = self.cache.get(key)
        if cached is not None:
            GEOCODE_LOOKUPS.labels(source="cache").inc()
            return cached

        if self.lookup is not None:
            if self.submit is None:
                remote = self._resolve(key, coord)
                if remote is not None:
                    return remote
            else:
                self._schedule(key, coord)

        GEOCODE_LOOKUPS.labels(source="classifier").inc()
        return self.classifier.describe(coord)

    def classify(self, coord: Coordinate) -> str:
        return self.describe(coord).display_name

    def _schedule(self, key: str, coord: Coordinate) -> None:
        with self._lock:
            if key in self._in_flight:
                return
            self._in_flight.add(key)
        self.submit(lambda: self._resolve(key, coord))

    def _resolve(self, key: str, coord: Coordinate) -> Optional[PlaceInfo]:
        try:
            info = self.lookup(coord)
        except Exception as e:
            logger.warning(f"Reverse geocode lookup failed for {key}: {e}")
            info = None
        finally:
            with self._lock:
                self._in_flight.discard(key)

        if info is None:
            # Cache the offline answer so a failing service is not retried for this key
            GEOCODE_LOOKUPS.labels(source="remote_failed").inc()
            self.cache.put(key, self.classifier.describe(coord))
            return None

        GEOCODE_LOOKUPS.labels(source="remote").inc()
        self.cache.put(key, info)
        return info
