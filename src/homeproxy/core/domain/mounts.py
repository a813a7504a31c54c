"""Bind mount specification for tenant workloads."""

from pydantic import BaseModel


class MountSpec(BaseModel):
    """One host directory bind-mounted into a workload."""

    source: str
    target: str
    read_only: bool = False

    model_config = {"frozen": True}

    def to_bind(self) -> str:
        """Docker HostConfig.Binds format: source:target[:ro]."""
        bind = f"{self.source}:{self.target}"
        if self.read_only:
            bind += ":ro"
        return bind
