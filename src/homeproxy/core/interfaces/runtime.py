"""Container runtime interface.

This is the single interface the orchestrator uses to manage tenant
workloads. Implementations raise WorkloadRuntimeError for every failure,
including timeouts.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel

from homeproxy.core.domain.mounts import MountSpec


class WorkloadInfo(BaseModel):
    """Observed state of one workload."""

    id: str
    name: str
    running: bool
    # network name -> IP address inside that network
    network_addresses: dict[str, str] = {}

    model_config = {"frozen": True}

    def address(self, network: str | None) -> str | None:
        """IP address in network, or the default bridge address if network is empty."""
        return self.network_addresses.get(network or "bridge") or None


class WorkloadSpec(BaseModel):
    """Everything needed to create and start a workload."""

    name: str
    image: str
    env: dict[str, str] = {}
    hostname: str | None = None
    mounts: list[MountSpec] = []
    network: str | None = None

    model_config = {"frozen": True}


class WorkloadRuntime(ABC):
    """Interface for workload orchestration.

    Implementations: DockerWorkloadRuntime
    """

    @abstractmethod
    async def ping(self) -> None:
        """Check the runtime is reachable."""
        ...

    @abstractmethod
    async def list_workloads(self, prefix: str) -> list[WorkloadInfo]:
        """List all workloads (running or not) whose name starts with prefix."""
        ...

    @abstractmethod
    async def inspect_workload(self, workload: str) -> WorkloadInfo | None:
        """Inspect a workload by name or ID. None if it does not exist."""
        ...

    @abstractmethod
    async def create_and_start(self, spec: WorkloadSpec) -> str:
        """Create and start a workload.

        Returns:
            Runtime-assigned workload ID
        """
        ...

    @abstractmethod
    async def stop(self, workload: str) -> None:
        """Stop a workload. Missing workloads are ignored."""
        ...

    @abstractmethod
    async def remove(self, workload: str) -> None:
        """Remove a workload. Missing workloads are ignored."""
        ...

    @abstractmethod
    async def ensure_network(self, name: str) -> None:
        """Create the network if it does not exist yet."""
        ...

    async def close(self) -> None:
        """Release connections held by the runtime client."""
