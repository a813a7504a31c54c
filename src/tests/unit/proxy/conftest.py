"""Fixtures for proxy tests: the ASGI app wired to a mock backend."""

from unittest.mock import AsyncMock

import httpx
import pytest

from homeproxy.app.main import app
from homeproxy.app.proxy import TenantRouter
from homeproxy.services.provisioner import ProvisionResult, WorkloadProvisioner
from homeproxy.services.registry import TenantRegistry

BACKEND_URL = "http://172.18.0.5:80"


class UpstreamBody(httpx.AsyncByteStream):
    """Response body that is read lazily, optionally breaking after the data."""

    def __init__(self, data: bytes, error: Exception | None = None) -> None:
        self._data = data
        self._error = error

    async def __aiter__(self):
        yield self._data
        if self._error is not None:
            raise self._error


class Upstream:
    """MockTransport handler standing in for tenant workloads.

    error: raised before any response is produced
    body_error: raised while the response body is being streamed
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.error: Exception | None = None
        self.body_error: Exception | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        body = b"<h1>hello from " + request.url.path.encode() + b"</h1>" + request.content
        return httpx.Response(
            200,
            headers=[
                ("content-type", "text/html"),
                ("set-cookie", "a=1"),
                ("set-cookie", "b=2"),
                ("connection", "close"),
            ],
            stream=UpstreamBody(body, self.body_error),
        )


@pytest.fixture
def upstream() -> Upstream:
    return Upstream()


@pytest.fixture
def mock_provisioner() -> AsyncMock:
    provisioner = AsyncMock(spec=WorkloadProvisioner)
    provisioner.provision = AsyncMock(
        return_value=ProvisionResult(backend_url=BACKEND_URL, workload_id="c1")
    )
    return provisioner


@pytest.fixture
def registry() -> TenantRegistry:
    return TenantRegistry()


@pytest.fixture
async def tenant_router(registry, mock_provisioner, upstream):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    yield TenantRouter(registry, mock_provisioner, http_client)
    await http_client.aclose()


@pytest.fixture
async def client(tenant_router):
    """Client for the application, without running its lifespan."""
    app.state.tenant_router = tenant_router
    transport = httpx.ASGITransport(app=app, client=("203.0.113.7", 51000))
    async with httpx.AsyncClient(transport=transport, base_url="http://proxy.test") as c:
        yield c
    del app.state.tenant_router
