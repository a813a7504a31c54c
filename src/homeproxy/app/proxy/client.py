"""HTTP client management for the tenant proxy.

Provides the shared httpx AsyncClient (connection pooling) and header filtering.
Configuration via ProxyConfig (PROXY_ env prefix).
"""

from collections.abc import Iterable

import httpx

from homeproxy.app.config import ProxyConfig, get_settings

# HTTP hop-by-hop headers to remove before forwarding (RFC 7230)
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
        "host",
    }
)

# Shared httpx client for connection pooling
_http_client: httpx.AsyncClient | None = None


def create_http_client(config: ProxyConfig) -> httpx.AsyncClient:
    """Build an httpx client with the proxy's timeouts and pool limits."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(
            timeout=config.timeout_total,
            connect=config.timeout_connect,
            read=config.timeout_total,
            write=config.timeout_total,
            pool=config.timeout_pool,
        ),
        limits=httpx.Limits(
            max_connections=config.max_connections,
            max_keepalive_connections=config.max_keepalive,
            keepalive_expiry=config.keepalive_expiry,
        ),
        follow_redirects=False,
    )


def get_http_client() -> httpx.AsyncClient:
    """Get or create shared httpx AsyncClient."""
    global _http_client
    if _http_client is None or _http_client.is_closed:
        _http_client = create_http_client(get_settings().proxy)
    return _http_client


async def close_http_client() -> None:
    """Close shared httpx client. Call on application shutdown."""
    global _http_client
    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None


def filter_headers(headers: Iterable[tuple[str, str]]) -> list[tuple[str, str]]:
    """Filter out hop-by-hop headers.

    Works on (name, value) pairs so repeated headers such as Set-Cookie
    survive.
    """
    return [(k, v) for k, v in headers if k.lower() not in HOP_BY_HOP_HEADERS]
