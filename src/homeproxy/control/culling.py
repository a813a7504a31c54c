"""Culling service - reclaim idle and orphaned tenant workloads.

Two independent passes, both safe to run next to request handling:

1. run_idle_cull(): READY registry entries not accessed for idle_timeout
   seconds are torn down and evicted. PROVISIONING entries are skipped
   (their provisioning may still be in flight).
2. run_orphan_cull(): workloads carrying the tenant naming prefix but
   without any registry entry are torn down. This reconciles containers
   left by a previous process or by a crash between start and promotion.

A failure for one tenant is logged and the pass continues with the rest.
"""

import logging
import time
from collections.abc import Callable

from homeproxy.app.config import CullConfig, RuntimeConfig
from homeproxy.app.metrics import CULLED_TOTAL
from homeproxy.core.domain.tenant import identity_from_workload
from homeproxy.core.errors import WorkloadRuntimeError
from homeproxy.core.interfaces import WorkloadRuntime
from homeproxy.core.logging_schema import CullReason, LogEvent
from homeproxy.services.registry import TenantRegistry

logger = logging.getLogger(__name__)


class CullingService:
    """Idle-timeout and orphan reconciliation passes."""

    def __init__(
        self,
        registry: TenantRegistry,
        runtime: WorkloadRuntime,
        cull_config: CullConfig,
        runtime_config: RuntimeConfig,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._registry = registry
        self._runtime = runtime
        self._idle_timeout = cull_config.idle_timeout
        self._prefix = runtime_config.resource_prefix
        self._clock = clock

    @property
    def name(self) -> str:
        return self.__class__.__name__

    async def _teardown(self, workload: str, identity: str, reason: CullReason) -> bool:
        """Stop and remove one workload. Returns False (logged) on failure."""
        try:
            await self._runtime.stop(workload)
            await self._runtime.remove(workload)
        except WorkloadRuntimeError as e:
            CULLED_TOTAL.labels(reason=reason, result="failed").inc()
            logger.warning(
                "[%s] Failed to tear down %s: %s",
                self.name,
                workload,
                e,
                extra={
                    "event": LogEvent.CULL_FAILED,
                    "tenant": identity,
                    "workload": workload,
                    "reason": reason,
                },
            )
            return False

        CULLED_TOTAL.labels(reason=reason, result="success").inc()
        logger.info(
            "[%s] Culled workload %s",
            self.name,
            workload,
            extra={
                "event": LogEvent.WORKLOAD_CULLED,
                "tenant": identity,
                "workload": workload,
                "reason": reason,
            },
        )
        return True

    async def run_idle_cull(self) -> int:
        """Evict READY tenants idle for longer than idle_timeout.

        Each candidate is re-checked when its turn comes, since earlier
        teardowns can take a while: a tenant accessed in the meantime is kept.
        The entry goes before the teardown and stays gone even when the
        teardown fails; the orphan pass picks up the leftover workload.

        Returns:
            Number of evicted tenants.
        """
        now = self._clock()
        cutoff = now - self._idle_timeout
        expired = [
            entry
            for entry in await self._registry.snapshot()
            if entry.is_ready and entry.last_access_at < cutoff
        ]
        if not expired:
            logger.debug("[%s] No idle tenants", self.name)
            return 0

        evicted = 0
        for candidate in expired:
            entry = await self._registry.remove_if_idle(
                candidate.identity, candidate.workload_id, cutoff
            )
            if entry is None:
                logger.debug(
                    "[%s] Tenant %s active again, kept", self.name, candidate.identity
                )
                continue
            logger.info(
                "[%s] Tenant %s idle for %ss",
                self.name,
                entry.identity,
                round(now - entry.last_access_at, 1),
                extra={"event": LogEvent.TENANT_EVICTED, "tenant": entry.identity},
            )
            evicted += 1
            await self._teardown(entry.workload_id, entry.identity, CullReason.IDLE)

        logger.info(
            "[%s] Idle cull evicted %d/%d tenants",
            self.name,
            evicted,
            len(expired),
            extra={"event": LogEvent.CULL_COMPLETE, "reason": CullReason.IDLE},
        )
        return evicted

    async def run_orphan_cull(self) -> int:
        """Tear down tenant workloads the registry does not know about.

        Workloads are listed before the registry is consulted, so a tenant
        claimed in between is seen as known and left alone.

        Returns:
            Number of orphans torn down.
        """
        try:
            workloads = await self._runtime.list_workloads(self._prefix)
        except WorkloadRuntimeError as e:
            logger.error(
                "[%s] Failed to list workloads, skipping orphan cull: %s",
                self.name,
                e,
                extra={"event": LogEvent.RUNTIME_ERROR},
            )
            return 0

        orphans = []
        for workload in workloads:
            identity = identity_from_workload(self._prefix, workload.name)
            if identity is not None and identity not in self._registry:
                orphans.append((workload, identity))

        if not orphans:
            logger.debug(
                "[%s] No orphans found (workloads=%d, registry=%d)",
                self.name,
                len(workloads),
                len(self._registry),
            )
            return 0

        removed = 0
        for workload, identity in orphans:
            # Claimed while an earlier orphan was being torn down
            if identity in self._registry:
                logger.debug(
                    "[%s] Tenant %s registered meanwhile, keeping %s",
                    self.name,
                    identity,
                    workload.name,
                )
                continue
            logger.warning(
                "[%s] Deleting orphan workload: %s",
                self.name,
                workload.name,
                extra={"event": LogEvent.WORKLOAD_CULLED, "tenant": identity},
            )
            if await self._teardown(workload.id, identity, CullReason.ORPHAN):
                removed += 1

        logger.info(
            "[%s] Orphan cull removed %d/%d workloads",
            self.name,
            removed,
            len(orphans),
            extra={"event": LogEvent.CULL_COMPLETE, "reason": CullReason.ORPHAN},
        )
        return removed
