"""Application metrics using the Prometheus client library.

One inventory of everything the service measures.  Other modules import
the metric they own and increment it at the point of action.

Label values are always drawn from small closed sets (family names,
decision kinds, strategy names, bucket names).  Principal ids and paths
never become labels: they are unbounded and would explode the number of
time series.
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
    # Every approved request makes three or four upstream round trips
    # (identity, records, object store), so the interesting range sits
    # higher than a pure in-process API.
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Access engine metrics
# ---------------------------------------------------------------------------

ACCESS_DECISIONS = Counter(
    "access_decisions_total",
    "Authorization outcomes by resource family",
    # family: lesson_plan_export|research_document|research_submission|
    #         resource|none
    # decision: granted|forbidden|not_found|error
    ["family", "decision"],
)

ADMIN_DETECTION = Counter(
    "admin_detection_total",
    "Admin detector strategy outcomes",
    ["strategy", "result"],  # result: admin|not_admin|unavailable
)

SIGNED_URLS_ISSUED = Counter(
    "signed_urls_issued_total",
    "Signed URLs minted by the object store, by bucket",
    ["bucket"],
)

# Set by the worker process only.
AUDIT_QUEUE_DEPTH = Gauge(
    "audit_queue_depth",
    "Number of audit entries waiting to be persisted",
)

AUDIT_ENTRIES_ENQUEUED = Counter(
    "audit_entries_enqueued_total",
    "Audit entries handed to the task queue by the API, by action",
    ["action"],
)
