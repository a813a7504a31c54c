"""home-proxy: per-user reverse proxy with on-demand web containers."""

__version__ = "0.3.0"
