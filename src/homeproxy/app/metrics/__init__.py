"""Prometheus metrics module."""

from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest
from starlette.responses import Response

from homeproxy.app.metrics.collector import (
    CULLED_TOTAL,
    HTTP_REQUEST_DURATION,
    HTTP_REQUESTS_TOTAL,
    PROVISION_DURATION,
    PROVISION_TOTAL,
    PROXY_REQUESTS_TOTAL,
    REGISTRY_ENTRIES,
)

__all__ = [
    "CULLED_TOTAL",
    "HTTP_REQUEST_DURATION",
    "HTTP_REQUESTS_TOTAL",
    "PROVISION_DURATION",
    "PROVISION_TOTAL",
    "PROXY_REQUESTS_TOTAL",
    "REGISTRY_ENTRIES",
    "get_metrics_response",
]


def get_metrics_response() -> Response:
    """Render the default registry in Prometheus text format."""
    return Response(
        content=generate_latest(REGISTRY),
        media_type=CONTENT_TYPE_LATEST,
    )
