"""Domain models and enums."""

from homeproxy.core.domain.mounts import MountSpec
from homeproxy.core.domain.tenant import ProxyState, extract_identity, workload_name

__all__ = [
    "MountSpec",
    "ProxyState",
    "extract_identity",
    "workload_name",
]
