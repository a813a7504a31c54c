"""JSON logging for home-proxy.

Every record carries the service name, schema version and, while a request is
being handled, its trace id and tenant identity.
"""

import logging
import sys
import time
from collections import deque
from collections.abc import Callable
from contextvars import ContextVar
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pythonjsonlogger import jsonlogger

from homeproxy.app.config import get_settings


@dataclass(frozen=True)
class RequestContext:
    trace_id: str
    tenant: str = ""


_request_ctx: ContextVar[RequestContext | None] = ContextVar("request_ctx", default=None)

# Loggers whose output would duplicate our own forwarding/directory logs
_QUIET_LOGGERS = ("httpx", "httpcore", "ldap3")

# uvicorn.access is replaced by LoggingMiddleware
_SERVER_LOGGERS = ("uvicorn", "uvicorn.error")


def set_trace_id(trace_id: str | None = None, tenant: str = "") -> str:
    """Bind the current request to a trace id (generated when not given).

    Args:
        trace_id: Incoming X-Trace-ID value, if any.
        tenant: Identity addressed by the request path, "" for non-tenant paths.

    Returns:
        The trace id in effect.
    """
    ctx = RequestContext(trace_id=trace_id or uuid4().hex, tenant=tenant)
    _request_ctx.set(ctx)
    return ctx.trace_id


def get_trace_id() -> str | None:
    ctx = _request_ctx.get()
    return ctx.trace_id if ctx else None


def get_tenant() -> str:
    ctx = _request_ctx.get()
    return ctx.tenant if ctx else ""


def clear_trace_context() -> None:
    _request_ctx.set(None)


class RateLimitFilter(logging.Filter):
    """Drop repeats of the same call site beyond a per-window budget.

    ERROR and above always pass. Once a call site is back under budget, the
    next record it emits carries a ``suppressed`` count of what was dropped.
    """

    def __init__(
        self,
        rate_per_minute: int = 100,
        window: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__()
        self.rate_per_minute = rate_per_minute
        self._window = window
        self._clock = clock
        self._seen: dict[tuple[str, int], deque[float]] = {}
        self._dropped: dict[tuple[str, int], int] = {}

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= logging.ERROR:
            return True

        site = (record.name, record.lineno)
        now = self._clock()
        stamps = self._seen.setdefault(site, deque())
        while stamps and now - stamps[0] >= self._window:
            stamps.popleft()

        if len(stamps) >= self.rate_per_minute:
            self._dropped[site] = self._dropped.get(site, 0) + 1
            return False

        stamps.append(now)
        if dropped := self._dropped.pop(site, 0):
            record.suppressed = dropped
        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding service metadata and request context."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        config = get_settings().logging
        self._static = {
            "service": config.service_name,
            "schema_version": config.schema_version,
        }

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record.pop("color_message", None)

        log_record.update(
            timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            level=record.levelname,
            logger=record.name,
            source=f"{record.filename}:{record.lineno}",
            **self._static,
        )

        ctx = _request_ctx.get()
        if ctx is not None:
            log_record["trace_id"] = ctx.trace_id
            # An explicit tenant in extra= wins over the request's
            if ctx.tenant:
                log_record.setdefault("tenant", ctx.tenant)

        if record.exc_info and "exception" not in log_record:
            log_record["exception"] = self.formatException(record.exc_info)


def _resolve_level(level: int | None) -> int:
    settings = get_settings()
    if level is not None:
        return level
    if settings.server.debug:
        return logging.DEBUG
    resolved = logging.getLevelName(settings.logging.level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(level: int | None = None) -> None:
    """Send all logs to stdout as JSON.

    Args:
        level: Root level. Defaults to the configured level, or DEBUG when
            the server runs in debug mode.
    """
    settings = get_settings()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomJsonFormatter())
    handler.addFilter(RateLimitFilter(settings.logging.rate_limit_per_minute))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(_resolve_level(level))

    for name in _SERVER_LOGGERS:
        server_logger = logging.getLogger(name)
        server_logger.handlers[:] = [handler]
        server_logger.propagate = False
    logging.getLogger("uvicorn.access").disabled = True

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
