"""Application metrics using the Prometheus client library.

Every metric the service exposes is defined here so there is one
inventory to read.  Other modules import a metric and increment or
observe it at the point of action.

Counters only go up; tests assert on deltas against the global
registry rather than absolute values.
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
# Domain metrics
# ---------------------------------------------------------------------------

AUTHZ_DECISIONS = Counter(
    "authz_decisions_total",
    "Policy table decisions by matching rule and outcome",
    ["rule", "outcome"],  # outcome: allow|deny|delegate
)

HIERARCHY_MUTATIONS = Counter(
    "hierarchy_mutations_total",
    "Content tree mutations by operation and result",
    ["operation", "result"],  # result: ok or the error code
)

ENROLLMENT_TRANSITIONS = Counter(
    "enrollment_transitions_total",
    "Enrollment state machine transitions by result",
    ["transition", "result"],  # transition: enroll|unenroll|progress
)

STORE_TRANSACTIONS = Counter(
    "store_transactions_total",
    "Store transactions by outcome",
    ["result"],  # committed|rolled_back|timeout
)
