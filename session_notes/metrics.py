"""Prometheus metrics for the session notes editor.

All metric objects are defined here so they can be imported from any module.
"""

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# Gateway metrics
# ---------------------------------------------------------------------------

GATEWAY_CALLS = Counter(
    "notes_gateway_calls_total",
    "Total number of notes backend calls",
    ["action", "status"],
)

GATEWAY_DURATION = Histogram(
    "notes_gateway_duration_seconds",
    "Duration of notes backend calls in seconds",
    ["action"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# ---------------------------------------------------------------------------
# Optimistic update metrics
# ---------------------------------------------------------------------------

OPTIMISTIC_ROLLBACKS = Counter(
    "notes_optimistic_rollbacks_total",
    "Optimistic local changes reverted after a failed backend call",
    ["action"],  # save, pin, tags, content
)

# ---------------------------------------------------------------------------
# Editor metrics
# ---------------------------------------------------------------------------

OPEN_EDITORS = Gauge(
    "notes_open_editors",
    "Number of open note editors",
)

THREAD_LOADS = Counter(
    "notes_thread_loads_total",
    "Background thread view loads",
    ["status"],
)

# ---------------------------------------------------------------------------
# HTTP request metrics
# ---------------------------------------------------------------------------

HTTP_REQUESTS = Counter(
    "notes_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

HTTP_DURATION = Histogram(
    "notes_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["endpoint"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 5.0),
)
