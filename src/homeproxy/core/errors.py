"""Error handling module for home-proxy.

Two kinds of errors live here:

- HTTP errors (HomeProxyError subclasses) are rendered by the FastAPI
  exception handler. Their messages are generic and never carry internal
  detail.
- Internal errors (DirectoryResolutionError, WorkloadRuntimeError,
  ForwardingError, StartupFatalError) are raised between components and
  converted at the edge: into a 500, a wait page, or a failed startup.

Error Response Format:
{
    "error": {
        "code": "NOT_FOUND",
        "message": "Not found"
    }
}
"""

from enum import Enum

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Error codes."""

    NOT_FOUND = "NOT_FOUND"
    PROVISIONING_FAILED = "PROVISIONING_FAILED"


class ErrorDetail(BaseModel):
    """Error detail containing code and message."""

    code: str
    message: str


class ErrorResponse(BaseModel):
    """Error response format."""

    error: ErrorDetail


class HomeProxyError(Exception):
    """Base exception for errors that become HTTP responses.

    Attributes:
        code: The error code from ErrorCode enum
        message: Human-readable error message
        status_code: HTTP status code to return
    """

    def __init__(self, code: ErrorCode, message: str, status_code: int) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert exception to ErrorResponse model."""
        return ErrorResponse(
            error=ErrorDetail(code=self.code.value, message=self.message)
        )


class RoutingMiss(HomeProxyError):
    """404 Not Found - path is not /~<identity>[/...]."""

    def __init__(self, message: str = "Not found") -> None:
        super().__init__(ErrorCode.NOT_FOUND, message, 404)


class ProvisioningFailedError(HomeProxyError):
    """500 Internal Server Error - tenant workload could not be provisioned."""

    def __init__(self, message: str = "The site could not be started") -> None:
        super().__init__(ErrorCode.PROVISIONING_FAILED, message, 500)


# =============================================================================
# Internal errors
# =============================================================================


class DirectoryResolutionError(Exception):
    """Tenant identity cannot be resolved to mount directories."""

    def __init__(self, identity: str, reason: str) -> None:
        self.identity = identity
        self.reason = reason
        super().__init__(f"cannot resolve directories for {identity!r}: {reason}")


class WorkloadRuntimeError(Exception):
    """Failure talking to or executing against the container runtime.

    Attributes:
        operation: Runtime operation that failed (create, inspect, stop, ...)
        target: Workload/network name or ID the operation was about
    """

    def __init__(self, operation: str, target: str, reason: str) -> None:
        self.operation = operation
        self.target = target
        self.reason = reason
        super().__init__(f"{operation} {target}: {reason}")


class ForwardingError(Exception):
    """Backend unreachable or failed mid-response after being marked ready."""

    def __init__(self, identity: str, target_url: str, reason: str) -> None:
        self.identity = identity
        self.target_url = target_url
        self.reason = reason
        super().__init__(f"forwarding to {target_url} for {identity!r} failed: {reason}")


class StartupFatalError(Exception):
    """Runtime client or required network unavailable at process start."""
