"""Shared fixtures for home-proxy unit tests."""

from unittest.mock import AsyncMock

import pytest

from homeproxy.app.config import CullConfig, DockerConfig, RuntimeConfig
from homeproxy.core.interfaces import DirectoryResolver, WorkloadRuntime


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mock_runtime() -> AsyncMock:
    """WorkloadRuntime mock with no existing workloads."""
    runtime = AsyncMock(spec=WorkloadRuntime)
    runtime.inspect_workload = AsyncMock(return_value=None)
    runtime.list_workloads = AsyncMock(return_value=[])
    runtime.create_and_start = AsyncMock(return_value="c0ffee")
    return runtime


@pytest.fixture
def mock_resolver() -> AsyncMock:
    """DirectoryResolver mock."""
    resolver = AsyncMock(spec=DirectoryResolver)
    resolver.resolve = AsyncMock(return_value=[])
    return resolver


@pytest.fixture
def runtime_config() -> RuntimeConfig:
    return RuntimeConfig(
        resource_prefix="hrp-",
        image="userwebsite:latest",
        container_port=80,
        home_target="/users/{identity}/public_html",
    )


@pytest.fixture
def docker_config() -> DockerConfig:
    return DockerConfig(network_name="hrp-net")


@pytest.fixture
def cull_config() -> CullConfig:
    return CullConfig(
        enabled=True,
        idle_interval=60,
        idle_timeout=600,
        orphan_enabled=True,
        orphan_interval=900,
    )
