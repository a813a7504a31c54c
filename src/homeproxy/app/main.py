"""FastAPI application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from homeproxy import __version__
from homeproxy.adapters import DockerWorkloadRuntime, create_resolver
from homeproxy.app.config import get_settings
from homeproxy.app.logging import setup_logging
from homeproxy.app.metrics import REGISTRY_ENTRIES, get_metrics_response
from homeproxy.app.middleware import LoggingMiddleware
from homeproxy.app.proxy import TenantRouter
from homeproxy.app.proxy import router as proxy_router
from homeproxy.app.proxy.client import close_http_client, get_http_client
from homeproxy.control import CullingService, CullScheduler
from homeproxy.core.domain import ProxyState
from homeproxy.core.errors import (
    HomeProxyError,
    RoutingMiss,
    StartupFatalError,
    WorkloadRuntimeError,
)
from homeproxy.core.interfaces import WorkloadRuntime
from homeproxy.core.logging_schema import LogEvent
from homeproxy.infra import close_docker
from homeproxy.services.provisioner import WorkloadProvisioner
from homeproxy.services.registry import TenantRegistry

setup_logging()
logger = logging.getLogger(__name__)


async def _check_runtime(runtime: WorkloadRuntime) -> None:
    """Fail startup when the runtime or the tenant network is unusable."""
    network = get_settings().docker.network_name
    try:
        await runtime.ping()
        if network:
            await runtime.ensure_network(network)
    except WorkloadRuntimeError as e:
        logger.critical(
            "Container runtime unavailable: %s",
            e,
            extra={"event": LogEvent.STARTUP_FAILED, "network": network or "bridge"},
        )
        raise StartupFatalError(str(e)) from e


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()

    runtime = DockerWorkloadRuntime()
    try:
        await _check_runtime(runtime)
    except StartupFatalError:
        await close_docker()
        raise

    resolver = create_resolver(settings.directory)
    registry = TenantRegistry()
    provisioner = WorkloadProvisioner(runtime, resolver, settings.runtime, settings.docker)
    tenant_router = TenantRouter(registry, provisioner, get_http_client())
    app.state.tenant_router = tenant_router

    culling = CullingService(registry, runtime, settings.cull, settings.runtime)
    scheduler = CullScheduler(culling, settings.cull)
    scheduler_task = asyncio.create_task(scheduler.run())

    logger.info(
        "Starting application",
        extra={
            "event": LogEvent.APP_STARTED,
            "version": __version__,
            "directory_backend": settings.directory.backend,
            "network": settings.docker.network_name or "bridge",
        },
    )

    yield

    logger.info("Shutting down application", extra={"event": LogEvent.APP_STOPPED})
    scheduler.stop()
    scheduler_task.cancel()
    try:
        await scheduler_task
    except asyncio.CancelledError:
        pass

    # Provisioning uses the clients closed below
    await tenant_router.aclose()
    await close_http_client()
    await runtime.close()
    await close_docker()
    await resolver.close()


app = FastAPI(title="home-proxy", version=__version__, lifespan=lifespan)
app.add_middleware(LoggingMiddleware)


@app.exception_handler(HomeProxyError)
async def homeproxy_error_handler(request: Request, exc: HomeProxyError) -> JSONResponse:
    """Handle HomeProxyError exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(),
    )


@app.get("/ping", status_code=201)
async def ping() -> dict[str, str]:
    return {"message": "pong", "version": __version__}


def _update_registry_metrics(request: Request) -> None:
    tenant_router = getattr(request.app.state, "tenant_router", None)
    if tenant_router is None:
        return
    counts = tenant_router.registry.counts()
    for state in ProxyState:
        REGISTRY_ENTRIES.labels(state=state).set(counts.get(state, 0))


@app.get("/metrics", include_in_schema=False)
async def metrics(request: Request):
    """Prometheus metrics endpoint."""
    if not get_settings().metrics.enabled:
        raise RoutingMiss()
    _update_registry_metrics(request)
    return get_metrics_response()


# Catch-all tenant routes, must come last
app.include_router(proxy_router)


def run() -> None:
    """Console entry point."""
    settings = get_settings()
    uvicorn.run(
        "homeproxy.app.main:app",
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
