"""
Error taxonomy for the tracking engine.

NoMatch and stale snapshots are normal outcomes and are reported as None,
not as exceptions.
"""


class TrackingError(Exception):
    """Base class for tracking engine errors."""


class DataError(TrackingError):
    """Schedule or report data cannot produce an estimate (e.g. zero-length route)."""


class TransportError(TrackingError):
    """Telemetry fetch failed; the last cached snapshot stays in use until it expires."""

    def __init__(self, message: str, error_type: str = "connection"):
        super().__init__(message)
        self.error_type = error_type
