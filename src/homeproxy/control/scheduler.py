"""Cull scheduler - background driver of the culling passes.

Background tasks:
- Idle cull: evict tenants idle longer than idle_timeout (every idle_interval)
- Orphan cull: tear down unregistered tenant workloads (every orphan_interval)

Both passes run from one loop; each keeps its own timer. A failing pass
is logged and retried on its next due tick.
"""

import asyncio
import logging
import time
from collections.abc import Callable

from homeproxy.app.config import CullConfig
from homeproxy.control.culling import CullingService
from homeproxy.core.logging_schema import LogEvent

logger = logging.getLogger(__name__)


class CullScheduler:
    """Run idle and orphan culls on independent timers.

    The loop wakes at the shorter of the enabled intervals and runs each
    pass whose interval has elapsed. The first tick runs nothing: a
    freshly started proxy has no idle tenants yet.
    """

    def __init__(
        self,
        culling: CullingService,
        config: CullConfig,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._culling = culling
        self._idle_enabled = config.enabled
        self._orphan_enabled = config.orphan_enabled
        self._idle_interval = config.idle_interval
        self._orphan_interval = config.orphan_interval
        self._running = False
        self._clock = clock

        now = clock()
        self._last_idle = now
        self._last_orphan = now

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @property
    def enabled(self) -> bool:
        return self._idle_enabled or self._orphan_enabled

    def _get_interval(self) -> float:
        intervals = []
        if self._idle_enabled:
            intervals.append(self._idle_interval)
        if self._orphan_enabled:
            intervals.append(self._orphan_interval)
        return min(intervals)

    async def tick(self) -> None:
        """Execute the passes that are due."""
        now = self._clock()

        if self._idle_enabled and now - self._last_idle >= self._idle_interval:
            self._last_idle = now
            await self._culling.run_idle_cull()

        if self._orphan_enabled and now - self._last_orphan >= self._orphan_interval:
            self._last_orphan = now
            await self._culling.run_orphan_cull()

    async def _execute_tick(self) -> None:
        try:
            await self.tick()
        except Exception as e:
            logger.exception(
                "[%s] Error in tick: %s", self.name, e, extra={"event": LogEvent.JOB_FAILED}
            )

    async def run(self) -> None:
        """Main scheduler loop. Ends on cancellation or stop()."""
        if not self.enabled:
            logger.info("[%s] Culling disabled", self.name)
            return

        self._running = True
        interval = self._get_interval()
        logger.info(
            "[%s] Starting",
            self.name,
            extra={
                "event": LogEvent.APP_STARTED,
                "idle_cull": self._idle_enabled,
                "orphan_cull": self._orphan_enabled,
                "interval": interval,
            },
        )
        try:
            while self._running:
                await asyncio.sleep(interval)
                await self._execute_tick()
        finally:
            logger.info("[%s] Stopped", self.name, extra={"event": LogEvent.APP_STOPPED})

    def stop(self) -> None:
        self._running = False
