"""Tests for JSON logging helpers."""

import json
import logging

from homeproxy.app.logging import (
    CustomJsonFormatter,
    RateLimitFilter,
    clear_trace_context,
    get_tenant,
    get_trace_id,
    set_trace_id,
)


def _record(msg: str = "hello", level: int = logging.INFO, lineno: int = 10) -> logging.LogRecord:
    return logging.LogRecord("homeproxy.test", level, __file__, lineno, msg, None, None)


class TestRateLimitFilter:
    """RateLimitFilter tests."""

    def test_allows_up_to_rate(self, clock):
        f = RateLimitFilter(rate_per_minute=3, clock=clock)

        assert all(f.filter(_record()) for _ in range(3))
        assert f.filter(_record()) is False

    def test_reports_suppressed_after_window(self, clock):
        f = RateLimitFilter(rate_per_minute=1, clock=clock)
        f.filter(_record())
        assert f.filter(_record()) is False
        assert f.filter(_record()) is False

        clock.advance(61)
        record = _record()

        assert f.filter(record) is True
        assert record.suppressed == 2

    def test_errors_bypass(self, clock):
        f = RateLimitFilter(rate_per_minute=1, clock=clock)
        f.filter(_record(level=logging.ERROR))

        assert all(f.filter(_record(level=logging.ERROR)) for _ in range(5))

    def test_separate_call_sites(self, clock):
        f = RateLimitFilter(rate_per_minute=1, clock=clock)
        f.filter(_record(lineno=1))

        assert f.filter(_record(lineno=1)) is False
        assert f.filter(_record(lineno=2)) is True


class TestTraceContext:
    """Request context helpers."""

    def test_set_and_clear(self):
        tid = set_trace_id(tenant="alice")
        assert get_trace_id() == tid
        assert get_tenant() == "alice"

        clear_trace_context()
        assert get_trace_id() is None
        assert get_tenant() == ""

    def test_explicit_trace_id(self):
        assert set_trace_id("abc") == "abc"
        clear_trace_context()


class TestCustomJsonFormatter:
    """CustomJsonFormatter tests."""

    def _format(self, record: logging.LogRecord) -> dict:
        return json.loads(CustomJsonFormatter().format(record))

    def test_standard_fields(self):
        record = _record("Provisioned workload")
        record.event = "provision_success"
        set_trace_id("trace-1", tenant="alice")
        try:
            data = self._format(record)
        finally:
            clear_trace_context()

        assert data["message"] == "Provisioned workload"
        assert data["level"] == "INFO"
        assert data["service"] == "home-proxy"
        assert data["schema_version"] == "1.0"
        assert data["source"].endswith(":10")
        assert data["trace_id"] == "trace-1"
        assert data["event"] == "provision_success"
        assert data["tenant"] == "alice"

    def test_explicit_tenant_wins(self):
        record = _record()
        record.tenant = "bob"
        set_trace_id("trace-2", tenant="alice")
        try:
            data = self._format(record)
        finally:
            clear_trace_context()

        assert data["tenant"] == "bob"

    def test_no_context_outside_requests(self):
        data = self._format(_record())

        assert "trace_id" not in data
        assert "tenant" not in data
