"""Application metrics using the Prometheus client library.

All metrics are defined here so there is a single inventory of what
the service measures.  Other modules import a metric and increment or
observe it at the point of action.

  Counters only go up; dashboards use rate() over them.
  Gauges go up and down (in-flight requests).
  Histograms bucket observations so Prometheus can compute percentiles.

Prometheus pulls these values from GET /metrics.
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
    # Roster endpoints fan out into several store calls per student, so
    # the upper buckets matter more here than for single-row lookups.
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Application-specific metrics
# ---------------------------------------------------------------------------

STORE_ERRORS = Counter(
    "store_errors_total",
    "Database operations that failed, by store operation",
    ["operation"],
)

DEGRADED_RECORDS = Counter(
    "degraded_records_total",
    "Sub-fetch failures absorbed by degrading one record instead of the request",
    ["kind"],  # "enrollments", "course" or "progress"
)

AUDIT_WRITES = Counter(
    "audit_writes_total",
    "Audit log inserts by result",
    ["result"],  # "ok" or "failed"
)
