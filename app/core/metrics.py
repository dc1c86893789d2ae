"""Prometheus metric inventory for certification-service.

Every metric the service exports is declared here; the owning modules
import them and increment/observe at the point of action.  HTTP metrics
are filled in by MetricsMiddleware, engine metrics by the services.

Counters only go up, so rates and ratios are computed in PromQL, e.g.
the share of evaluations that end in a certificate-ready state:

  sum(rate(eligibility_evaluations_total{result="eligible"}[1h]))
    / sum(rate(eligibility_evaluations_total[1h]))
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (MetricsMiddleware)
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
# Engine metrics
# ---------------------------------------------------------------------------

MODULE_COMPLETIONS = Counter(
    "module_completions_total",
    "Module completions recorded (first completion only, repeats are no-ops)",
)

ELIGIBILITY_EVALUATIONS = Counter(
    "eligibility_evaluations_total",
    "Eligibility evaluations by result",
    ["result"],  # "eligible" or the ineligibility reason
)

CERTIFICATES_ISSUED = Counter(
    "certificates_issued_total",
    "Certificate issue calls by outcome",
    ["outcome"],  # created | existing | race
)

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Cache get operations by result",
    ["operation"],  # hit | miss
)

QUEUE_DEPTH = Gauge(
    "task_queue_depth",
    "Number of tasks waiting in a queue",
    ["queue_name"],
)
