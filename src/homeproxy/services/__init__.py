"""Core orchestration services."""
