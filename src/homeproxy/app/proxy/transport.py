"""Reverse proxy factory - per-tenant HTTP forwarding.

ProxyFactory.build(backend_url) returns a forward handler that sends the
incoming request (same path and query) to the backend and streams the
response back. Transport failures (connect error, timeout, reset) are
handed to the factory's failure callback, which evicts the tenant and
answers with the wait page, so the next request re-provisions.
"""

import logging
import time
from collections.abc import AsyncGenerator, Awaitable, Callable

import httpx
from fastapi import Request
from fastapi.responses import Response, StreamingResponse

from homeproxy.app.metrics import PROXY_REQUESTS_TOTAL
from homeproxy.core.domain import extract_identity
from homeproxy.core.errors import ForwardingError
from homeproxy.core.logging_schema import LogEvent

from .client import filter_headers

logger = logging.getLogger(__name__)

PROXY_HEADER = "X-Proxy"
PROXY_HEADER_VALUE = "home-proxy"

# Methods whose request body is always streamed to the backend; other
# methods (WebDAV PROPFIND, LOCK, ...) send one when the request declares it
BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


def _has_body(request: Request) -> bool:
    if request.method in BODY_METHODS or "transfer-encoding" in request.headers:
        return True
    return request.headers.get("content-length", "0") != "0"

ForwardHandler = Callable[[Request], Awaitable[Response]]
FailureCallback = Callable[[Request, ForwardingError], Awaitable[Response]]


def _target_url(backend_url: str, request: Request) -> str:
    # raw_path keeps the client's percent-encoding intact
    raw_path = request.scope.get("raw_path")
    if raw_path:
        path = raw_path.split(b"?", 1)[0].decode("latin-1")
    else:
        path = request.url.path
    target = f"{backend_url}{path}"
    if request.url.query:
        target = f"{target}?{request.url.query}"
    return target


def _outbound_headers(request: Request) -> list[tuple[str, str]]:
    headers = filter_headers(request.headers.items())
    headers = [(k, v) for k, v in headers if not k.lower().startswith("x-forwarded-")]
    client_host = request.client.host if request.client else ""
    headers.extend(
        [
            (PROXY_HEADER, PROXY_HEADER_VALUE),
            ("X-Forwarded-For", client_host),
            ("X-Forwarded-Host", request.headers.get("host", "")),
            ("X-Forwarded-Proto", request.url.scheme),
        ]
    )
    return headers


class ProxyFactory:
    """Builds forward handlers sharing one httpx client and failure callback."""

    def __init__(self, client: httpx.AsyncClient, on_failure: FailureCallback) -> None:
        self._client = client
        self._on_failure = on_failure

    def build(self, backend_url: str) -> ForwardHandler:
        """Create the forward handler for one backend."""
        backend_url = backend_url.rstrip("/")

        async def forward(request: Request) -> Response:
            return await self._forward(backend_url, request)

        return forward

    async def _fail(
        self, request: Request, identity: str, target_url: str, exc: Exception
    ) -> Response:
        error = ForwardingError(identity, target_url, str(exc) or type(exc).__name__)
        PROXY_REQUESTS_TOTAL.labels(outcome="upstream_error").inc()
        logger.warning(
            "Forwarding to upstream failed",
            extra={
                "event": LogEvent.UPSTREAM_ERROR,
                "tenant": identity,
                "target_url": target_url,
                "error_type": type(exc).__name__,
                "error": error.reason,
            },
        )
        return await self._on_failure(request, error)

    async def _forward(self, backend_url: str, request: Request) -> Response:
        identity = extract_identity(request.url.path)
        target_url = _target_url(backend_url, request)
        content = request.stream() if _has_body(request) else None
        start = time.perf_counter()

        try:
            upstream_request = self._client.build_request(
                method=request.method,
                url=target_url,
                headers=_outbound_headers(request),
                content=content,
            )
            upstream_response = await self._client.send(upstream_request, stream=True)
        except httpx.TransportError as exc:
            return await self._fail(request, identity, target_url, exc)

        PROXY_REQUESTS_TOTAL.labels(outcome="forwarded").inc()

        async def stream_response() -> AsyncGenerator[bytes, None]:
            sent = 0
            try:
                # aiter_raw keeps the upstream Content-Encoding intact
                async for chunk in upstream_response.aiter_raw():
                    sent += len(chunk)
                    yield chunk
            except httpx.TransportError as exc:
                # Headers are already out; evict and end the response early
                await self._fail(request, identity, target_url, exc)
            finally:
                await upstream_response.aclose()
                logger.info(
                    "%s %s -> %d",
                    request.method,
                    target_url,
                    upstream_response.status_code,
                    extra={
                        "event": LogEvent.UPSTREAM_RESPONSE,
                        "tenant": identity,
                        "target_url": target_url,
                        "status": upstream_response.status_code,
                        "bytes": sent,
                        "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                    },
                )

        response = StreamingResponse(
            stream_response(),
            status_code=upstream_response.status_code,
        )
        response.raw_headers = [
            (k.lower().encode("latin-1"), v.encode("latin-1"))
            for k, v in filter_headers(upstream_response.headers.multi_items())
        ]
        return response
