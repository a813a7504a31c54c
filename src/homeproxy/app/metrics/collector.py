"""Prometheus metrics definitions.

Label values are low cardinality only; tenant identities go to logs.
"""

from prometheus_client import Counter, Gauge, Histogram

# Provisioning includes image pull + container start (100ms ~ 180s)
_BUCKETS_SLOW = (
    0.1, 0.2, 0.39, 0.77, 1.5,
    3, 6, 12, 23, 46,
    91, 180,
)  # 12 buckets

PROXY_REQUESTS_TOTAL = Counter(
    "homeproxy_proxy_requests_total",
    "Tenant requests by outcome",
    ["outcome"],  # forwarded, wait_page, provision_failed, upstream_error
)

PROVISION_TOTAL = Counter(
    "homeproxy_provision_total",
    "Provisioning attempts by result",
    ["result"],  # created, reused, failed
)

PROVISION_DURATION = Histogram(
    "homeproxy_provision_duration_seconds",
    "Duration of successful provisioning attempts",
    buckets=_BUCKETS_SLOW,
)

CULLED_TOTAL = Counter(
    "homeproxy_culled_total",
    "Workloads reclaimed by the culling passes",
    ["reason", "result"],  # reason: idle, orphan / result: success, failed
)

REGISTRY_ENTRIES = Gauge(
    "homeproxy_registry_entries",
    "Tenant registry entries by state",
    ["state"],
)

# API/proxy round trips including upstream time (5ms ~ 60s)
_BUCKETS_MEDIUM = (
    0.005, 0.01, 0.02, 0.04, 0.09,
    0.18, 0.36, 0.73, 1.5, 3,
    6.2, 12.7, 26, 53,
)  # 14 buckets

HTTP_REQUESTS_TOTAL = Counter(
    "homeproxy_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

HTTP_REQUEST_DURATION = Histogram(
    "homeproxy_http_request_duration_seconds",
    "HTTP request duration until response headers",
    ["method", "endpoint"],
    buckets=_BUCKETS_MEDIUM,
)
