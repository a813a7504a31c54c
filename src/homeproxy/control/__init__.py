"""Background control loops (culling)."""

from homeproxy.control.culling import CullingService
from homeproxy.control.scheduler import CullScheduler

__all__ = ["CullingService", "CullScheduler"]
