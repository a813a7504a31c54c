"""Tenant registry - in-memory map of tenant identity to proxy entry.

The registry is the single source of truth for "who is running". All
access goes through claim/promote/touch/remove/get/snapshot; every
operation takes the same lock, so claim is the atomic gate that lets
exactly one request provision an unknown tenant.

Entries are mutated in place under the lock. Callers only ever receive
copies, so a copy can be read without holding the lock.
"""

import asyncio
import dataclasses
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from homeproxy.core.domain import ProxyState
from homeproxy.core.logging_schema import LogEvent

logger = logging.getLogger(__name__)

ForwardHandler = Callable[..., Awaitable[Any]]


@dataclass
class ProxyEntry:
    """Registry state of one tenant."""

    identity: str
    state: ProxyState = ProxyState.PROVISIONING
    backend_url: str = ""
    workload_id: str = ""
    forward: ForwardHandler | None = field(default=None, repr=False)
    created_at: float = 0.0
    last_access_at: float = 0.0
    access_count: int = 0

    @property
    def is_ready(self) -> bool:
        return self.state == ProxyState.READY


class TenantRegistry:
    """Lock-guarded map of TenantIdentity -> ProxyEntry.

    Usage:
        registry = TenantRegistry()

        if await registry.claim("alice"):
            ...provision...
            await registry.promote("alice", url, workload_id, forward)

        entry = await registry.touch("alice")
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._entries: dict[str, ProxyEntry] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    async def claim(self, identity: str) -> bool:
        """Create a PROVISIONING entry if none exists.

        Returns:
            True if this call created the entry (caller must provision),
            False if an entry already existed.
        """
        async with self._lock:
            if identity in self._entries:
                return False
            now = self._clock()
            self._entries[identity] = ProxyEntry(
                identity=identity, created_at=now, last_access_at=now
            )
        logger.info(
            "Claimed tenant %s",
            identity,
            extra={"event": LogEvent.TENANT_CLAIMED, "tenant": identity},
        )
        return True

    async def promote(
        self,
        identity: str,
        backend_url: str,
        workload_id: str,
        forward: ForwardHandler,
    ) -> ProxyEntry:
        """Mark a claimed entry READY.

        Raises:
            KeyError: The entry was removed while provisioning was in flight
        """
        async with self._lock:
            entry = self._entries[identity]
            entry.state = ProxyState.READY
            entry.backend_url = backend_url
            entry.workload_id = workload_id
            entry.forward = forward
            entry.last_access_at = self._clock()
            snapshot = dataclasses.replace(entry)
        logger.info(
            "Tenant %s ready at %s",
            identity,
            backend_url,
            extra={
                "event": LogEvent.TENANT_READY,
                "tenant": identity,
                "backend_url": backend_url,
                "workload": workload_id,
            },
        )
        return snapshot

    async def touch(self, identity: str) -> ProxyEntry | None:
        """Record one forwarded request for a READY entry.

        Returns:
            Copy of the updated entry, None if absent or not READY.
        """
        async with self._lock:
            entry = self._entries.get(identity)
            if entry is None or not entry.is_ready:
                return None
            entry.access_count += 1
            entry.last_access_at = max(entry.last_access_at, self._clock())
            return dataclasses.replace(entry)

    async def remove(self, identity: str, workload_id: str | None = None) -> ProxyEntry | None:
        """Remove an entry.

        Args:
            identity: Tenant identity
            workload_id: If given, only remove the entry while it still refers
                to this workload (a newer entry for the tenant is left alone).

        Returns:
            The removed entry, None if nothing was removed.
        """
        async with self._lock:
            entry = self._entries.get(identity)
            if entry is None:
                return None
            if workload_id is not None and entry.workload_id != workload_id:
                return None
            del self._entries[identity]
        logger.info(
            "Evicted tenant %s",
            identity,
            extra={
                "event": LogEvent.TENANT_EVICTED,
                "tenant": identity,
                "state": entry.state,
                "access_count": entry.access_count,
            },
        )
        return entry

    async def remove_if_idle(
        self, identity: str, workload_id: str, cutoff: float
    ) -> ProxyEntry | None:
        """Remove a READY entry last accessed before cutoff.

        Idleness is checked under the lock, so an access that lands between
        a snapshot and this call keeps the entry.

        Returns:
            The removed entry, None if it was accessed since, re-provisioned
            or is already gone.
        """
        async with self._lock:
            entry = self._entries.get(identity)
            if (
                entry is None
                or not entry.is_ready
                or entry.workload_id != workload_id
                or entry.last_access_at >= cutoff
            ):
                return None
            del self._entries[identity]
        logger.info(
            "Evicted idle tenant %s",
            identity,
            extra={
                "event": LogEvent.TENANT_EVICTED,
                "tenant": identity,
                "access_count": entry.access_count,
            },
        )
        return entry

    async def get(self, identity: str) -> ProxyEntry | None:
        """Copy of the entry for identity, None if absent."""
        async with self._lock:
            entry = self._entries.get(identity)
            return dataclasses.replace(entry) if entry is not None else None

    async def snapshot(self) -> list[ProxyEntry]:
        """Copies of all entries (for culling)."""
        async with self._lock:
            return [dataclasses.replace(e) for e in self._entries.values()]

    def counts(self) -> dict[ProxyState, int]:
        """Number of entries per state (for metrics; unlocked read)."""
        result = {state: 0 for state in ProxyState}
        for entry in list(self._entries.values()):
            result[entry.state] += 1
        return result

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, identity: object) -> bool:
        return identity in self._entries
