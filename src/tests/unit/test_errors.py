"""Tests for error handling classes."""

from homeproxy.core.errors import (
    DirectoryResolutionError,
    ErrorCode,
    ForwardingError,
    HomeProxyError,
    ProvisioningFailedError,
    RoutingMiss,
    WorkloadRuntimeError,
)


class TestRoutingMiss:
    """Tests for RoutingMiss."""

    def test_inherits_homeproxy_error(self) -> None:
        assert isinstance(RoutingMiss(), HomeProxyError)

    def test_is_404(self) -> None:
        exc = RoutingMiss()
        assert exc.status_code == 404
        assert exc.code == ErrorCode.NOT_FOUND

    def test_to_response(self) -> None:
        """Response body matches the documented format."""
        response = RoutingMiss().to_response()
        assert response.model_dump() == {"error": {"code": "NOT_FOUND", "message": "Not found"}}


class TestProvisioningFailedError:
    """Tests for ProvisioningFailedError."""

    def test_is_500_with_generic_message(self) -> None:
        exc = ProvisioningFailedError()
        assert exc.status_code == 500
        assert exc.code == ErrorCode.PROVISIONING_FAILED
        assert exc.message == "The site could not be started"


class TestInternalErrors:
    """Internal errors are not rendered as HTTP responses."""

    def test_not_http_errors(self) -> None:
        for exc in (
            DirectoryResolutionError("alice", "no such local account"),
            WorkloadRuntimeError("create", "hrp-alice", "HTTP 500"),
            ForwardingError("alice", "http://172.18.0.5:80/~alice/", "connection refused"),
        ):
            assert not isinstance(exc, HomeProxyError)

    def test_runtime_error_fields(self) -> None:
        exc = WorkloadRuntimeError("stop", "abc123", "timed out")
        assert exc.operation == "stop"
        assert exc.target == "abc123"
        assert str(exc) == "stop abc123: timed out"
