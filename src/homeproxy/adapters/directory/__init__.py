"""Directory resolver implementations, selected once at startup."""

from homeproxy.adapters.directory.ldap import LdapDirectoryResolver
from homeproxy.adapters.directory.local import LocalAccountResolver
from homeproxy.app.config import DirectoryConfig
from homeproxy.core.interfaces import DirectoryResolver

__all__ = [
    "LdapDirectoryResolver",
    "LocalAccountResolver",
    "create_resolver",
]


def create_resolver(config: DirectoryConfig) -> DirectoryResolver:
    """Build the resolver named by config.backend."""
    backend = config.backend.lower()
    if backend == "ldap":
        return LdapDirectoryResolver(config)
    if backend == "local":
        return LocalAccountResolver(config)
    raise ValueError(f"Unknown directory backend: {config.backend!r}")
