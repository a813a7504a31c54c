"""Unit tests for DockerWorkloadRuntime."""

import asyncio
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from homeproxy.adapters.runtime.docker import MANAGED_LABEL, DockerWorkloadRuntime
from homeproxy.core.domain import MountSpec
from homeproxy.core.errors import WorkloadRuntimeError
from homeproxy.core.interfaces import WorkloadSpec


def _container(name: str, state: str = "running", ip: str = "172.18.0.5") -> dict:
    return {
        "Id": f"id-{name}",
        "Names": [f"/{name}"],
        "State": state,
        "NetworkSettings": {"Networks": {"hrp-net": {"IPAddress": ip}}},
    }


def _http_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "http://localhost/containers/create")
    response = httpx.Response(status, request=request)
    return httpx.HTTPStatusError("error", request=request, response=response)


class TestDockerWorkloadRuntime:
    """DockerWorkloadRuntime tests."""

    @pytest.fixture
    def mock_containers(self) -> AsyncMock:
        """Mock ContainerAPI."""
        mock = AsyncMock()
        mock.list = AsyncMock(return_value=[])
        mock.inspect = AsyncMock(return_value=None)
        mock.create = AsyncMock(return_value="new-id")
        mock.start = AsyncMock()
        mock.stop = AsyncMock()
        mock.remove = AsyncMock()
        return mock

    @pytest.fixture
    def mock_networks(self) -> AsyncMock:
        """Mock NetworkAPI."""
        mock = AsyncMock()
        mock.ensure = AsyncMock()
        return mock

    @pytest.fixture
    def mock_images(self) -> AsyncMock:
        """Mock ImageAPI."""
        mock = AsyncMock()
        mock.ensure = AsyncMock()
        return mock

    @pytest.fixture
    def runtime(
        self, mock_containers: AsyncMock, mock_networks: AsyncMock, mock_images: AsyncMock
    ) -> DockerWorkloadRuntime:
        """DockerWorkloadRuntime with mocks."""
        with patch("homeproxy.adapters.runtime.docker.get_settings") as mock_settings:
            mock_settings.return_value.runtime.container_port = 80
            mock_settings.return_value.docker.api_timeout = 0.5
            mock_settings.return_value.docker.image_pull_timeout = 1.0
            mock_settings.return_value.docker.stop_timeout = 1
            return DockerWorkloadRuntime(
                containers=mock_containers, networks=mock_networks, images=mock_images
            )

    async def test_list_workloads(self, runtime, mock_containers: AsyncMock):
        """Only names starting with the prefix are returned."""
        mock_containers.list.return_value = [
            _container("hrp-alice"),
            _container("hrp-bob", state="exited"),
            _container("other-hrp-carol"),
        ]

        workloads = await runtime.list_workloads("hrp-")

        assert [w.name for w in workloads] == ["hrp-alice", "hrp-bob"]
        assert workloads[0].running is True
        assert workloads[1].running is False
        assert workloads[0].address("hrp-net") == "172.18.0.5"
        mock_containers.list.assert_awaited_once_with(filters={"name": ["hrp-"]})

    async def test_inspect_missing(self, runtime, mock_containers: AsyncMock):
        assert await runtime.inspect_workload("hrp-alice") is None

    async def test_inspect_running(self, runtime, mock_containers: AsyncMock):
        mock_containers.inspect.return_value = {
            "Id": "abc123",
            "Name": "/hrp-alice",
            "State": {"Running": True},
            "NetworkSettings": {
                "Networks": {"hrp-net": {"IPAddress": "172.18.0.5"}, "none": {"IPAddress": ""}}
            },
        }

        info = await runtime.inspect_workload("hrp-alice")

        assert info.id == "abc123"
        assert info.name == "hrp-alice"
        assert info.running is True
        assert info.network_addresses == {"hrp-net": "172.18.0.5"}

    async def test_create_and_start(
        self, runtime, mock_containers: AsyncMock, mock_images: AsyncMock
    ):
        spec = WorkloadSpec(
            name="hrp-alice",
            image="userwebsite:latest",
            env={"USERNAME": "alice"},
            hostname="alice",
            mounts=[
                MountSpec(source="/home/alice/public_html", target="/users/alice/public_html"),
                MountSpec(source="/data", target="/data", read_only=True),
            ],
            network="hrp-net",
        )

        workload_id = await runtime.create_and_start(spec)

        assert workload_id == "new-id"
        mock_images.ensure.assert_awaited_once_with("userwebsite:latest")
        config = mock_containers.create.await_args.args[0]
        assert config.name == "hrp-alice"
        assert config.hostname == "alice"
        assert config.env == ["USERNAME=alice"]
        assert config.labels == {MANAGED_LABEL: "alice"}
        assert config.exposed_ports == {"80/tcp": {}}
        assert config.host_config.network_mode == "hrp-net"
        assert config.host_config.binds == [
            "/home/alice/public_html:/users/alice/public_html",
            "/data:/data:ro",
        ]
        mock_containers.start.assert_awaited_once_with("new-id")

    async def test_create_default_network(self, runtime, mock_containers: AsyncMock):
        await runtime.create_and_start(WorkloadSpec(name="hrp-alice", image="img"))

        config = mock_containers.create.await_args.args[0]
        assert config.host_config.network_mode == "bridge"

    async def test_create_name_conflict_reuses_existing(
        self, runtime, mock_containers: AsyncMock
    ):
        mock_containers.create.return_value = None
        mock_containers.inspect.return_value = {"Id": "existing-id", "Name": "/hrp-alice"}

        workload_id = await runtime.create_and_start(WorkloadSpec(name="hrp-alice", image="img"))

        assert workload_id == "existing-id"
        mock_containers.start.assert_awaited_once_with("existing-id")

    async def test_http_error_becomes_runtime_error(self, runtime, mock_containers: AsyncMock):
        mock_containers.create.side_effect = _http_error(500)

        with pytest.raises(WorkloadRuntimeError) as exc_info:
            await runtime.create_and_start(WorkloadSpec(name="hrp-alice", image="img"))

        assert exc_info.value.operation == "create"
        assert exc_info.value.reason == "HTTP 500"
        mock_containers.start.assert_not_called()

    async def test_transport_error_becomes_runtime_error(
        self, runtime, mock_containers: AsyncMock
    ):
        mock_containers.list.side_effect = httpx.ConnectError("no such socket")

        with pytest.raises(WorkloadRuntimeError, match="no such socket"):
            await runtime.list_workloads("hrp-")

    async def test_timeout_becomes_runtime_error(self, runtime, mock_containers: AsyncMock):
        async def hang(*args, **kwargs):
            await asyncio.sleep(10)

        mock_containers.inspect.side_effect = hang

        with pytest.raises(WorkloadRuntimeError, match="timed out"):
            await runtime.inspect_workload("hrp-alice")

    async def test_stop_and_remove(self, runtime, mock_containers: AsyncMock):
        await runtime.stop("abc123")
        await runtime.remove("abc123")

        mock_containers.stop.assert_awaited_once_with("abc123")
        mock_containers.remove.assert_awaited_once_with("abc123")

    async def test_ensure_network(self, runtime, mock_networks: AsyncMock):
        await runtime.ensure_network("hrp-net")
        mock_networks.ensure.assert_awaited_once_with("hrp-net")
