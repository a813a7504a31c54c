"""Docker workload runtime implementation."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx

from homeproxy.app.config import get_settings
from homeproxy.core.errors import WorkloadRuntimeError
from homeproxy.core.interfaces import WorkloadInfo, WorkloadRuntime, WorkloadSpec
from homeproxy.core.logging_schema import LogEvent
from homeproxy.infra import docker as docker_api
from homeproxy.infra.docker import (
    ContainerAPI,
    ContainerConfig,
    DockerClient,
    HostConfig,
    ImageAPI,
    NetworkAPI,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

MANAGED_LABEL = "home-proxy.tenant"


def _networks(data: dict) -> dict[str, str]:
    """Extract {network: ip} from list or inspect output."""
    networks = (data.get("NetworkSettings") or {}).get("Networks") or {}
    return {
        name: net["IPAddress"]
        for name, net in networks.items()
        if net and net.get("IPAddress")
    }


class DockerWorkloadRuntime(WorkloadRuntime):
    """Docker-based workload runtime using the Engine API.

    Every call is bounded by DockerConfig.api_timeout and every failure
    (HTTP error, transport error, timeout) surfaces as WorkloadRuntimeError.
    """

    def __init__(
        self,
        client: DockerClient | None = None,
        containers: ContainerAPI | None = None,
        networks: NetworkAPI | None = None,
        images: ImageAPI | None = None,
    ) -> None:
        settings = get_settings()
        self._runtime = settings.runtime
        self._docker = settings.docker
        self._client = client
        self._containers = containers or ContainerAPI(client)
        self._networks = networks or NetworkAPI(client)
        self._images = images or ImageAPI(client)

    async def _call(
        self,
        operation: str,
        target: str,
        fn: Callable[[], Awaitable[T]],
        timeout: float | None = None,
    ) -> T:
        try:
            async with asyncio.timeout(timeout or self._docker.api_timeout):
                return await fn()
        except TimeoutError as exc:
            raise WorkloadRuntimeError(operation, target, "timed out") from exc
        except httpx.HTTPStatusError as exc:
            raise WorkloadRuntimeError(
                operation, target, f"HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise WorkloadRuntimeError(operation, target, str(exc) or type(exc).__name__) from exc

    async def ping(self) -> None:
        await self._call("ping", "docker", lambda: docker_api.ping(self._client))

    async def list_workloads(self, prefix: str) -> list[WorkloadInfo]:
        """List all containers with given name prefix."""
        containers = await self._call(
            "list", prefix, lambda: self._containers.list(filters={"name": [prefix]})
        )

        results = []
        for container in containers:
            names = container.get("Names", [])
            name = names[0].lstrip("/") if names else ""
            # The name filter matches substrings anywhere in the name
            if not name.startswith(prefix):
                continue
            results.append(
                WorkloadInfo(
                    id=container["Id"],
                    name=name,
                    running=container.get("State") == "running",
                    network_addresses=_networks(container),
                )
            )
        return results

    async def inspect_workload(self, workload: str) -> WorkloadInfo | None:
        data = await self._call(
            "inspect", workload, lambda: self._containers.inspect(workload)
        )
        if not data:
            return None
        return WorkloadInfo(
            id=data["Id"],
            name=data.get("Name", "").lstrip("/"),
            running=bool(data.get("State", {}).get("Running", False)),
            network_addresses=_networks(data),
        )

    async def create_and_start(self, spec: WorkloadSpec) -> str:
        await self._call(
            "pull",
            spec.image,
            lambda: self._images.ensure(spec.image),
            timeout=self._docker.image_pull_timeout + self._docker.api_timeout,
        )

        port = self._runtime.container_port
        config = ContainerConfig(
            image=spec.image,
            name=spec.name,
            hostname=spec.hostname,
            env=[f"{key}={value}" for key, value in spec.env.items()],
            labels={MANAGED_LABEL: spec.hostname or spec.name},
            exposed_ports={f"{port}/tcp": {}},
            host_config=HostConfig(
                network_mode=spec.network or "bridge",
                binds=[mount.to_bind() for mount in spec.mounts],
            ),
        )

        container_id = await self._call(
            "create", spec.name, lambda: self._containers.create(config)
        )
        if container_id is None:
            # Name conflict: reuse whatever holds the name
            existing = await self.inspect_workload(spec.name)
            if existing is None:
                raise WorkloadRuntimeError("create", spec.name, "name conflict")
            container_id = existing.id

        await self._call("start", spec.name, lambda: self._containers.start(container_id))
        logger.info(
            "Created and started workload: %s",
            spec.name,
            extra={
                "event": LogEvent.CONTAINER_STARTED,
                "workload": spec.name,
                "container_id": container_id,
                "mounts": len(spec.mounts),
            },
        )
        return container_id

    async def stop(self, workload: str) -> None:
        await self._call(
            "stop",
            workload,
            lambda: self._containers.stop(workload),
            timeout=self._docker.stop_timeout + self._docker.api_timeout,
        )

    async def remove(self, workload: str) -> None:
        await self._call("remove", workload, lambda: self._containers.remove(workload))

    async def ensure_network(self, name: str) -> None:
        await self._call("ensure_network", name, lambda: self._networks.ensure(name))

    async def close(self) -> None:
        """Close is no-op (Docker client is singleton)."""
        pass
