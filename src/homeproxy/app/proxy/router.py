"""Tenant proxy routes.

Routes: /~{identity} and /~{identity}/* -> the tenant's workload
Every other path that reaches this router is a 404.

Per request:
- READY entry: count the access and forward
- no entry: claim it, provision, answer with the wait page
- PROVISIONING entry: answer with the wait page
"""

import asyncio
import logging
from typing import Annotated

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from homeproxy.app.metrics import PROXY_REQUESTS_TOTAL
from homeproxy.core.domain import extract_identity
from homeproxy.core.errors import ForwardingError, ProvisioningFailedError, RoutingMiss
from homeproxy.core.logging_schema import LogEvent
from homeproxy.services.provisioner import WorkloadProvisioner
from homeproxy.services.registry import TenantRegistry

from .pages import wait_page
from .transport import ProxyFactory

logger = logging.getLogger(__name__)

router = APIRouter(tags=["proxy"])

PROXY_METHODS = [
    "GET",
    "HEAD",
    "POST",
    "PUT",
    "PATCH",
    "DELETE",
    "OPTIONS",
    # WebDAV
    "PROPFIND",
    "PROPPATCH",
    "MKCOL",
    "COPY",
    "MOVE",
    "LOCK",
    "UNLOCK",
    "REPORT",
]


class TenantRouter:
    """Dispatch tenant requests: forward, wait, or provision.

    Provisioning runs in its own task and the request awaits it shielded,
    so a client that disconnects never leaves a claim behind.
    """

    def __init__(
        self,
        registry: TenantRegistry,
        provisioner: WorkloadProvisioner,
        http_client: httpx.AsyncClient,
    ) -> None:
        self._registry = registry
        self._provisioner = provisioner
        self._proxies = ProxyFactory(http_client, on_failure=self.handle_forward_failure)
        self._tasks: set[asyncio.Task] = set()

    @property
    def registry(self) -> TenantRegistry:
        return self._registry

    async def route(self, request: Request) -> Response:
        """Serve one inbound request.

        Raises:
            RoutingMiss: Path is not /~<identity>[/...]
            ProvisioningFailedError: The tenant's workload could not be started
        """
        identity = extract_identity(request.url.path)
        if not identity:
            raise RoutingMiss()

        logger.info(
            "url-request: %s",
            request.url.path,
            extra={
                "event": LogEvent.REQUEST_RECEIVED,
                "tenant": identity,
                "path": request.url.path,
                "remote_addr": request.client.host if request.client else None,
                "referrer": request.headers.get("referer"),
            },
        )

        entry = await self._registry.touch(identity)
        if entry is not None:
            request.state.workload_id = entry.workload_id
            return await entry.forward(request)

        if await self._registry.claim(identity):
            await asyncio.shield(self._start_provisioning(identity))
        else:
            logger.debug("Provisioning in flight for %s", identity)

        PROXY_REQUESTS_TOTAL.labels(outcome="wait_page").inc()
        return wait_page(identity)

    def _start_provisioning(self, identity: str) -> asyncio.Task:
        task = asyncio.create_task(self._provision(identity))
        self._tasks.add(task)
        task.add_done_callback(self._reap)
        return task

    async def aclose(self) -> None:
        """Cancel provisioning still in flight and wait for it to unwind."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            logger.info("Cancelling %d provisioning task(s)", len(tasks))
            await asyncio.gather(*tasks, return_exceptions=True)

    def _reap(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        # Failures are already logged; mark them retrieved
        if not task.cancelled():
            task.exception()

    async def _provision(self, identity: str) -> None:
        """Provision a claimed tenant and promote it; release the claim on failure."""
        try:
            result = await self._provisioner.provision(identity)
            forward = self._proxies.build(result.backend_url)
            await self._registry.promote(
                identity, result.backend_url, result.workload_id, forward
            )
        except Exception as exc:
            await self._registry.remove(identity)
            PROXY_REQUESTS_TOTAL.labels(outcome="provision_failed").inc()
            logger.error(
                "Releasing claim for %s after failed provisioning",
                identity,
                exc_info=exc,
                extra={"event": LogEvent.PROVISION_FAILED, "tenant": identity},
            )
            raise ProvisioningFailedError() from exc

    async def handle_forward_failure(
        self, request: Request, error: ForwardingError
    ) -> Response:
        """Evict the tenant whose backend failed and serve the wait page."""
        workload_id = getattr(request.state, "workload_id", None)
        await self._registry.remove(error.identity, workload_id=workload_id)
        return wait_page(error.identity)


def get_tenant_router(request: Request) -> TenantRouter:
    """TenantRouter created in the application lifespan."""
    return request.app.state.tenant_router


@router.api_route(
    "/{path:path}",
    methods=PROXY_METHODS,
    response_model=None,
    include_in_schema=False,
)
async def proxy_http(
    request: Request,
    tenant_router: Annotated[TenantRouter, Depends(get_tenant_router)],
) -> Response:
    """Proxy tenant requests; everything else is 404."""
    return await tenant_router.route(request)
