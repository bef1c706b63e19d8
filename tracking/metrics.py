"""
Prometheus metrics for the tracking engine.
"""

from prometheus_client import Counter, Gauge, Histogram

# Telemetry ingestion
TELEMETRY_FETCHES = Counter(
    'tracking_telemetry_fetches_total',
    'Telemetry fetch attempts',
    ['status']
)

TELEMETRY_FETCH_LATENCY = Histogram(
    'tracking_telemetry_fetch_latency_seconds',
    'Telemetry fetch duration'
)

TOKEN_REFRESHES = Counter(
    'tracking_token_refreshes_total',
    'OAuth2 token refresh attempts',
    ['status']
)

SNAPSHOT_REPORTS = Gauge(
    'tracking_snapshot_reports',
    'Reports in the latest published snapshot'
)

SNAPSHOTS_REJECTED = Counter(
    'tracking_snapshots_rejected_total',
    'Snapshots rejected by the feed',
    ['reason']
)

STATES_DISCARDED = Counter(
    'tracking_states_discarded_total',
    'Provider state vectors that failed parsing'
)

# Matching and estimation
MATCH_OUTCOMES = Counter(
    'tracking_match_outcomes_total',
    'Telemetry match outcomes by strategy',
    ['strategy']
)

ESTIMATES_COMPUTED = Counter(
    'tracking_estimates_computed_total',
    'Progress estimates computed',
    ['mode']  # live, offline
)

DATA_ERRORS = Counter(
    'tracking_data_errors_total',
    'Ticks that produced no estimate because of bad schedule data'
)

SESSION_STATE = Gauge(
    'tracking_session_state',
    'Current tracking session state (1 for the active state)',
    ['state']
)

# Caches
CACHE_EVICTIONS = Counter(
    'tracking_cache_evictions_total',
    'Cache entries evicted',
    ['cache', 'reason']  # reason: expired, capacity
)

GEOCODE_LOOKUPS = Counter(
    'tracking_geocode_lookups_total',
    'Reverse geocode lookups',
    ['source']  # cache, classifier, remote, remote_failed
)
