"""
Telemetry feed: the only shared mutable state between the refresh job and
the recompute tick.

Holds the latest TelemetrySnapshot in a BoundedTTLCache and rejects
snapshots older than one already published, so readers never see
captured_at go backwards.
"""

import json
import logging
import os
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Optional, Protocol

from contracts.constants import SNAPSHOT_TTL_SECONDS
from contracts.validation import TelemetrySnapshot, validate_telemetry_snapshot
from tracking.cache import BoundedTTLCache
from tracking.errors import TransportError
from tracking.metrics import SNAPSHOT_REPORTS, SNAPSHOTS_REJECTED
from tracking.scheduler import utc_now

logger = logging.getLogger(__name__)

SNAPSHOT_KEY = "snapshot"
SNAPSHOT_CACHE_FILE = os.getenv("SNAPSHOT_CACHE_FILE")


class TelemetryClient(Protocol):
    def fetch_snapshot(self) -> TelemetrySnapshot:
        ...


class TelemetryFeed:
    """Caches the latest snapshot with out-of-order rejection and TTL expiry."""

    def __init__(
        self,
        client: Optional[TelemetryClient] = None,
        ttl_seconds: float = SNAPSHOT_TTL_SECONDS,
        clock: Callable[[], datetime] = utc_now,
        cache_file: Optional[str] = SNAPSHOT_CACHE_FILE,
    ):
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.cache_file = Path(cache_file) if cache_file else None
        self._cache: BoundedTTLCache[str, TelemetrySnapshot] = BoundedTTLCache(
            max_entries=1,
            default_ttl=ttl_seconds,
            clock=lambda: self.clock().timestamp(),
            name="telemetry",
        )
        self._lock = threading.Lock()
        self._high_watermark: Optional[datetime] = None

    def latest(self) -> Optional[TelemetrySnapshot]:
        """Latest unexpired snapshot, or None when stale or never fetched."""
        return self._cache.get(SNAPSHOT_KEY)

    def publish(self, snapshot: TelemetrySnapshot, ttl: Optional[float] = None) -> bool:
        """
        Publish a snapshot.

        Returns:
            True if accepted, False if rejected as older than the last one
        """
        with self._lock:
            if self._high_watermark is not None and snapshot.captured_at < self._high_watermark:
                SNAPSHOTS_REJECTED.labels(reason="out_of_order").inc()
                logger.debug(
                    f"Rejected out-of-order snapshot: "
                    f"cached={self._high_watermark.isoformat()}, received={snapshot.captured_at.isoformat()}"
                )
                return False

            self._high_watermark = snapshot.captured_at
            self._cache.put(SNAPSHOT_KEY, snapshot, ttl if ttl is not None else self.ttl_seconds)
            SNAPSHOT_REPORTS.set(len(snapshot.reports))

        if self.cache_file is not None:
            self._save(snapshot)
        return True

    def refresh(self) -> bool:
        """
        Fetch a new snapshot from the client and publish it.

        Transport errors are logged and swallowed; the previous snapshot keeps
        serving until its TTL runs out.

        Returns:
            True if a new snapshot was published
        """
        if self.client is None:
            return False

        try:
            snapshot = self.client.fetch_snapshot()
        except TransportError as e:
            cached = self.latest()
            if cached is not None:
                logger.warning(f"Telemetry refresh failed ({e.error_type}): {e}. "
                               f"Serving snapshot from {cached.captured_at.isoformat()}")
            else:
                logger.warning(f"Telemetry refresh failed ({e.error_type}): {e}. No cached snapshot")
            return False

        return self.publish(snapshot)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    # ============================================
    # Disk persistence
    # ============================================

    def _save(self, snapshot: TelemetrySnapshot) -> None:
        """Persist the snapshot with its expiry so a restart can reuse it."""
        expires_at = self.clock() + timedelta(seconds=self.ttl_seconds)
        record = {
            "expires_at": expires_at.isoformat(),
            "snapshot": snapshot.model_dump(mode="json"),
        }
        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.cache_file.with_suffix(self.cache_file.suffix + ".tmp")
            with open(tmp_path, "w") as f:
                json.dump(record, f)
            os.replace(tmp_path, self.cache_file)
        except OSError as e:
            logger.warning(f"Could not save snapshot cache: {e}")

    def load_cached(self) -> bool:
        """
        Load a persisted snapshot if it has not expired.

        Returns:
            True if a snapshot was loaded and published
        """
        if self.cache_file is None or not self.cache_file.exists():
            return False

        try:
            with open(self.cache_file) as f:
                record = json.load(f)
            expires_at = datetime.fromisoformat(record["expires_at"])
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Could not load snapshot cache: {e}")
            return False

        remaining = (expires_at - self.clock()).total_seconds()
        if remaining <= 0:
            logger.info("Snapshot cache expired, ignoring")
            return False

        is_valid, snapshot, error = validate_telemetry_snapshot(record.get("snapshot") or {})
        if not is_valid:
            logger.warning(f"Invalid snapshot cache: {error}")
            return False

        with self._lock:
            if self._high_watermark is not None and snapshot.captured_at < self._high_watermark:
                return False
            self._high_watermark = snapshot.captured_at
            self._cache.put(SNAPSHOT_KEY, snapshot, remaining)
            SNAPSHOT_REPORTS.set(len(snapshot.reports))

        logger.info(f"Loaded cached snapshot with {len(snapshot.reports)} reports "
                    f"({remaining:.0f}s until expiry)")
        return True
