"""Workload provisioner - ensure a tenant's workload runs and is reachable.

Flow (one attempt, no retries):
1. Reuse a running workload with the tenant's name (covers restarts)
2. Resolve directories (DirectoryResolver)
3. Plan mounts (primary + extras, missing paths skipped)
4. Create and start the workload on the configured network
5. Inspect it for its address inside that network

Runtime failures propagate as WorkloadRuntimeError. A workload that was
started but turned out unreachable is not cleaned up here; the orphan
cull reclaims it.
"""

import logging
import re
import time

from pydantic import BaseModel

from homeproxy.app.config import DockerConfig, RuntimeConfig
from homeproxy.app.metrics import PROVISION_DURATION, PROVISION_TOTAL
from homeproxy.core.domain import workload_name
from homeproxy.core.errors import DirectoryResolutionError, WorkloadRuntimeError
from homeproxy.core.interfaces import (
    DirectoryResolver,
    WorkloadInfo,
    WorkloadRuntime,
    WorkloadSpec,
)
from homeproxy.core.logging_schema import LogEvent
from homeproxy.services.mounts import plan_mounts

logger = logging.getLogger(__name__)

# Must also be a valid container name suffix
VALID_IDENTITY_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


class ProvisionResult(BaseModel):
    """Reachable backend of a tenant."""

    backend_url: str
    workload_id: str

    model_config = {"frozen": True}


class WorkloadProvisioner:
    """Idempotently provision tenant workloads."""

    def __init__(
        self,
        runtime: WorkloadRuntime,
        resolver: DirectoryResolver,
        runtime_config: RuntimeConfig,
        docker_config: DockerConfig,
    ) -> None:
        self._runtime = runtime
        self._resolver = resolver
        self._config = runtime_config
        self._network = docker_config.network_name or None

    def workload_name(self, identity: str) -> str:
        return workload_name(self._config.resource_prefix, identity)

    def _backend_url(self, info: WorkloadInfo) -> str:
        address = info.address(self._network)
        if address is None:
            raise WorkloadRuntimeError(
                "inspect", info.name, f"no address on network {self._network or 'bridge'}"
            )
        return f"http://{address}:{self._config.container_port}"

    async def provision(self, identity: str) -> ProvisionResult:
        """Ensure the tenant's workload exists and runs.

        Raises:
            DirectoryResolutionError: Tenant cannot be resolved
            WorkloadRuntimeError: Any runtime failure, including timeouts
        """
        start = time.perf_counter()
        try:
            result = await self._provision(identity)
        except (DirectoryResolutionError, WorkloadRuntimeError) as exc:
            PROVISION_TOTAL.labels(result="failed").inc()
            logger.warning(
                "Provisioning failed for %s: %s",
                identity,
                exc,
                extra={"event": LogEvent.PROVISION_FAILED, "tenant": identity},
            )
            raise
        PROVISION_DURATION.observe(time.perf_counter() - start)
        return result

    async def _provision(self, identity: str) -> ProvisionResult:
        if not VALID_IDENTITY_RE.match(identity):
            raise DirectoryResolutionError(identity, "invalid identity")

        name = self.workload_name(identity)

        existing = await self._runtime.inspect_workload(name)
        if existing is not None:
            if existing.running:
                result = ProvisionResult(
                    backend_url=self._backend_url(existing), workload_id=existing.id
                )
                PROVISION_TOTAL.labels(result="reused").inc()
                logger.info(
                    "Reusing running workload %s",
                    name,
                    extra={
                        "event": LogEvent.PROVISION_REUSED,
                        "tenant": identity,
                        "workload": name,
                        "backend_url": result.backend_url,
                    },
                )
                return result
            # Stopped leftover: recreate so mounts and image are current
            await self._runtime.remove(existing.id)

        logger.info(
            "Provisioning workload %s",
            name,
            extra={"event": LogEvent.PROVISION_STARTED, "tenant": identity, "workload": name},
        )

        directories = await self._resolver.resolve(identity)
        if not directories:
            raise DirectoryResolutionError(identity, "no directories")

        mounts = plan_mounts(
            identity, directories[0], directories[1:], self._config.home_target
        )

        workload_id = await self._runtime.create_and_start(
            WorkloadSpec(
                name=name,
                image=self._config.image,
                env={"USERNAME": identity},
                hostname=identity,
                mounts=mounts,
                network=self._network,
            )
        )

        info = await self._runtime.inspect_workload(workload_id)
        if info is None:
            raise WorkloadRuntimeError("inspect", name, "vanished after start")

        result = ProvisionResult(backend_url=self._backend_url(info), workload_id=workload_id)
        PROVISION_TOTAL.labels(result="created").inc()
        logger.info(
            "Provisioned workload %s",
            name,
            extra={
                "event": LogEvent.PROVISION_SUCCESS,
                "tenant": identity,
                "workload": name,
                "backend_url": result.backend_url,
                "mounts": len(mounts),
            },
        )
        return result
