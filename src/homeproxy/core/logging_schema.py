"""Logging field schema - v1.0

Standard fields (added to all logs):
- schema_version: Log schema version
- service: Service name (home-proxy)
- event: Event type (provision_started, workload_culled, etc.)
- trace_id: Request trace ID (X-Trace-ID)
- duration_ms: Duration in milliseconds

High cardinality fields (OK in logs, NOT in metric labels):
- tenant: Tenant identity (username)
- workload: Workload (container) name or ID
"""

from enum import StrEnum


class LogEvent(StrEnum):
    """Standard log event types.

    Use these event types in the 'event' extra field for consistent
    log filtering and analysis.
    """

    # Lifecycle events
    APP_STARTED = "app_started"
    APP_STOPPED = "app_stopped"
    STARTUP_FAILED = "startup_failed"

    # Request events
    REQUEST_RECEIVED = "request_received"
    REQUEST_COMPLETE = "request_complete"
    REQUEST_FAILED = "request_failed"
    REQUEST_SLOW = "request_slow"

    # Registry events
    TENANT_CLAIMED = "tenant_claimed"
    TENANT_READY = "tenant_ready"
    TENANT_EVICTED = "tenant_evicted"

    # Provisioning events
    PROVISION_STARTED = "provision_started"
    PROVISION_REUSED = "provision_reused"
    PROVISION_SUCCESS = "provision_success"
    PROVISION_FAILED = "provision_failed"
    MOUNT_SKIPPED = "mount_skipped"
    DIRECTORY_ERROR = "directory_error"

    # Proxy events
    UPSTREAM_RESPONSE = "upstream_response"
    UPSTREAM_ERROR = "upstream_error"

    # Docker events
    CONTAINER_CREATED = "container_created"
    CONTAINER_STARTED = "container_started"
    CONTAINER_STOPPED = "container_stopped"
    CONTAINER_REMOVED = "container_removed"
    NETWORK_CREATED = "network_created"
    RUNTIME_ERROR = "runtime_error"

    # Culling events
    CULL_COMPLETE = "cull_complete"
    WORKLOAD_CULLED = "workload_culled"
    CULL_FAILED = "cull_failed"
    JOB_FAILED = "job_failed"


class CullReason(StrEnum):
    """Why a workload was reclaimed (also used as a metric label)."""

    IDLE = "idle"
    ORPHAN = "orphan"
