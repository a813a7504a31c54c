"""Core interfaces for external collaborators."""

from homeproxy.core.interfaces.directory import DirectoryResolver
from homeproxy.core.interfaces.runtime import WorkloadInfo, WorkloadRuntime, WorkloadSpec

__all__ = [
    # Directory resolution
    "DirectoryResolver",
    # Container runtime
    "WorkloadRuntime",
    "WorkloadInfo",
    "WorkloadSpec",
]
