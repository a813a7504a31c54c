"""Tenant reverse proxy: routing, forwarding and wait page."""

from homeproxy.app.proxy.router import TenantRouter, router

__all__ = ["TenantRouter", "router"]
