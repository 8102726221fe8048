"""Application metrics using the Prometheus client library.

All metrics live in this module so there is a single inventory of what
the service measures. Other modules import a metric and increment or
observe it at the point of action.

  COUNTER   only goes up: closures run, enrollments finalized.
  GAUGE     goes up and down: requests in flight.
  HISTOGRAM buckets observations so Prometheus can compute percentiles:
            request latency, class closure duration.

Prometheus scrapes GET /metrics; see api/metrics_endpoint.py.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Eligibility engine metrics
# ---------------------------------------------------------------------------

ENROLLMENTS_FINALIZED = Counter(
    "enrollments_finalized_total",
    "Enrollment statuses written by class closure",
    ["status"],  # "approved" or "rejected"
)

ENROLLMENT_FINALIZE_FAILURES = Counter(
    "enrollment_finalize_failures_total",
    "Enrollments whose final status could not be written after retries",
)

REPOSITORY_WRITE_RETRIES = Counter(
    "repository_write_retries_total",
    "Retried repository writes during closure",
)

CLASS_CLOSURES = Counter(
    "class_closures_total",
    "Class closure runs by outcome",
    ["outcome"],  # closed|partial|already_closed|reevaluated
)

PERIOD_CLOSURES = Counter(
    "period_closures_total",
    "Period closure runs by outcome",
    ["outcome"],  # closed|forced|incomplete|already_closed|aborted
)

CLASS_CLOSURE_DURATION = Histogram(
    "class_closure_duration_seconds",
    "Wall time of one class closure run",
    # Small classes close in milliseconds in memory; a large roster
    # against a remote database with retries can take seconds.
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

QUEUE_DEPTH = Gauge(
    "task_queue_depth",
    "Number of tasks waiting in a queue",
    ["queue_name"],  # "period_closure"
)
