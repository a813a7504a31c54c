"""Unit tests for the Docker Engine API client (httpx MockTransport)."""

import json

import httpx
import pytest

from homeproxy.infra.docker import (
    ContainerAPI,
    ContainerConfig,
    DockerClient,
    HostConfig,
    NetworkAPI,
    split_image_ref,
)


class FakeDaemon:
    """Records requests and answers from a route table."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], httpx.Response] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.routes.get((request.method, request.url.path), httpx.Response(404))


@pytest.fixture
def daemon() -> FakeDaemon:
    return FakeDaemon()


@pytest.fixture
async def docker(daemon: FakeDaemon):
    client = DockerClient("tcp://docker.test:2375")
    client._client = httpx.AsyncClient(
        transport=httpx.MockTransport(daemon), base_url="http://docker.test:2375"
    )
    yield client
    await client.close()


class TestSplitImageRef:
    """split_image_ref() tests."""

    @pytest.mark.parametrize(
        "ref, expected",
        [
            ("nginx", ("nginx", "latest")),
            ("nginx:1.25", ("nginx", "1.25")),
            ("registry.local:5000/site", ("registry.local:5000/site", "latest")),
            ("registry.local:5000/site:v2", ("registry.local:5000/site", "v2")),
        ],
    )
    def test_split(self, ref: str, expected: tuple[str, str]):
        assert split_image_ref(ref) == expected


class TestContainerAPI:
    """ContainerAPI tests."""

    async def test_list_includes_stopped(self, docker, daemon: FakeDaemon):
        daemon.routes[("GET", "/containers/json")] = httpx.Response(200, json=[])

        await ContainerAPI(docker).list(filters={"name": ["hrp-"]})

        params = daemon.requests[0].url.params
        assert params["all"] == "true"
        assert json.loads(params["filters"]) == {"name": ["hrp-"]}

    async def test_inspect_missing(self, docker):
        assert await ContainerAPI(docker).inspect("hrp-alice") is None

    async def test_create(self, docker, daemon: FakeDaemon):
        daemon.routes[("POST", "/containers/create")] = httpx.Response(201, json={"Id": "abc"})
        config = ContainerConfig(
            image="img",
            name="hrp-alice",
            hostname="alice",
            env=["USERNAME=alice"],
            host_config=HostConfig(network_mode="hrp-net", binds=["/a:/b:ro"]),
        )

        assert await ContainerAPI(docker).create(config) == "abc"

        body = json.loads(daemon.requests[0].content)
        assert daemon.requests[0].url.params["name"] == "hrp-alice"
        assert body["Hostname"] == "alice"
        assert body["Env"] == ["USERNAME=alice"]
        assert body["HostConfig"]["NetworkMode"] == "hrp-net"
        assert body["HostConfig"]["Binds"] == ["/a:/b:ro"]

    async def test_create_conflict(self, docker, daemon: FakeDaemon):
        daemon.routes[("POST", "/containers/create")] = httpx.Response(409)

        assert await ContainerAPI(docker).create(ContainerConfig(image="img", name="x")) is None

    async def test_stop_missing_is_ok(self, docker):
        await ContainerAPI(docker).stop("gone", timeout=1)

    async def test_remove_missing_is_ok(self, docker):
        await ContainerAPI(docker).remove("gone")

    async def test_start_failure_raises(self, docker, daemon: FakeDaemon):
        daemon.routes[("POST", "/containers/abc/start")] = httpx.Response(500)

        with pytest.raises(httpx.HTTPStatusError):
            await ContainerAPI(docker).start("abc")


class TestNetworkAPI:
    """NetworkAPI.ensure() tests."""

    async def test_existing_network(self, docker, daemon: FakeDaemon):
        daemon.routes[("GET", "/networks")] = httpx.Response(200, json=[{"Name": "hrp-net"}])

        await NetworkAPI(docker).ensure("hrp-net")

        assert [r.method for r in daemon.requests] == ["GET"]

    async def test_creates_on_substring_match_only(self, docker, daemon: FakeDaemon):
        daemon.routes[("GET", "/networks")] = httpx.Response(
            200, json=[{"Name": "hrp-net-old"}]
        )
        daemon.routes[("POST", "/networks/create")] = httpx.Response(201, json={"Id": "n1"})

        await NetworkAPI(docker).ensure("hrp-net")

        assert json.loads(daemon.requests[1].content)["Name"] == "hrp-net"
