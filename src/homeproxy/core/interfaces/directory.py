"""Directory resolver interface.

Maps a tenant identity to the host directories its workload mounts.
Implementations: LdapDirectoryResolver, LocalAccountResolver
"""

from abc import ABC, abstractmethod


class DirectoryResolver(ABC):
    """Interface for tenant directory lookup."""

    @abstractmethod
    async def resolve(self, identity: str) -> list[str]:
        """Resolve mount sources for a tenant.

        Args:
            identity: Tenant identity (username)

        Returns:
            Ordered list of host paths. The first entry is the primary
            (read-write) home mount; later entries are "path" or "path::ro"
            extra mounts.

        Raises:
            DirectoryResolutionError: The tenant cannot be resolved
        """
        ...

    async def close(self) -> None:
        """Release resources held by the resolver."""
