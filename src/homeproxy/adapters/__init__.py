"""Adapters module - infrastructure implementations."""

from homeproxy.adapters.directory import (
    LdapDirectoryResolver,
    LocalAccountResolver,
    create_resolver,
)
from homeproxy.adapters.runtime import DockerWorkloadRuntime

__all__ = [
    "DockerWorkloadRuntime",
    "LdapDirectoryResolver",
    "LocalAccountResolver",
    "create_resolver",
]
