"""
Prometheus metrics for the tracker core.
"""

from prometheus_client import Counter, Gauge, Histogram

CACHE_LOOKUPS = Counter(
    'tracker_cache_lookups_total',
    'Enrichment cache lookups',
    ['cache', 'result']  # hit, miss, coalesced
)

ENRICHMENT_FAILURES = Counter(
    'tracker_enrichment_failures_total',
    'Upstream lookups that raised and were cached as empty',
    ['cache']
)

NEW_FLIGHTS = Counter(
    'tracker_new_flights_total',
    'Aircraft that entered the query area after the first poll'
)

NOTIFICATIONS_SENT = Counter(
    'tracker_notifications_total',
    'Proximity notifications emitted',
    ['direction']
)

ERROR_ALERTS = Counter(
    'tracker_error_alerts_total',
    'Recoverable poll errors by alert outcome',
    ['outcome']  # sent, snoozed
)

SIGHTINGS_LOGGED = Counter(
    'tracker_sightings_logged_total',
    'Sightings appended to the log',
    ['status']
)

TRACKED_FLIGHTS = Gauge(
    'tracker_tracked_flights',
    'Aircraft in the most recent poll'
)

CYCLE_LATENCY = Histogram(
    'tracker_cycle_latency_seconds',
    'Poll cycle duration including enrichment',
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0]
)

LOG_WRITE_LATENCY = Histogram(
    'tracker_log_write_latency_seconds',
    'Sighting log write latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)
