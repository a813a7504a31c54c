"""Request logging middleware: one canonical line per request."""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from homeproxy.app.config import get_settings
from homeproxy.app.logging import clear_trace_context, set_trace_id
from homeproxy.app.metrics import HTTP_REQUEST_DURATION, HTTP_REQUESTS_TOTAL
from homeproxy.core.domain.tenant import TENANT_PATH_RE, extract_identity
from homeproxy.core.logging_schema import LogEvent

logger = logging.getLogger(__name__)

# Scraping /metrics should not show up in its own counters
_UNTRACKED = frozenset({"/metrics"})


def _normalize_path(path: str) -> str:
    """Map a request path onto a bounded set of metric labels.

    Tenant identities never become label values.
    """
    if TENANT_PATH_RE.match(path):
        return "/~*"
    if path == "/ping":
        return path
    return "other"


class LoggingMiddleware(BaseHTTPMiddleware):
    """Bind trace context, log the request, record HTTP metrics.

    The trace id is taken from X-Trace-ID when the client sends one and is
    echoed back on the response. Duration covers the time until response
    headers; a streamed tenant body may take longer.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        trace_id = set_trace_id(
            request.headers.get("x-trace-id"), tenant=extract_identity(path)
        )
        fields = {"method": request.method, "path": path}

        start = time.monotonic()
        try:
            response = await call_next(request)
        except Exception:
            fields["duration_ms"] = round((time.monotonic() - start) * 1000, 2)
            logger.error(
                "Request failed", extra={"event": LogEvent.REQUEST_FAILED, **fields}
            )
            clear_trace_context()
            raise
        elapsed = time.monotonic() - start

        if path not in _UNTRACKED:
            self._record(request, response, path, elapsed, fields)

        clear_trace_context()
        response.headers["X-Trace-ID"] = trace_id
        return response

    @staticmethod
    def _record(
        request: Request,
        response: Response,
        path: str,
        elapsed: float,
        fields: dict,
    ) -> None:
        endpoint = _normalize_path(path)
        HTTP_REQUESTS_TOTAL.labels(
            method=request.method, endpoint=endpoint, status=str(response.status_code)
        ).inc()
        HTTP_REQUEST_DURATION.labels(method=request.method, endpoint=endpoint).observe(
            elapsed
        )

        fields.update(
            status=response.status_code,
            duration_ms=round(elapsed * 1000, 2),
        )
        logger.info(
            "Request completed",
            extra={
                "event": LogEvent.REQUEST_COMPLETE,
                "remote_addr": request.client.host if request.client else None,
                "referrer": request.headers.get("referer"),
                **fields,
            },
        )

        threshold_ms = get_settings().logging.slow_threshold_ms
        if fields["duration_ms"] > threshold_ms:
            logger.warning(
                "Slow request",
                extra={
                    "event": LogEvent.REQUEST_SLOW,
                    "threshold_ms": threshold_ms,
                    **fields,
                },
            )
