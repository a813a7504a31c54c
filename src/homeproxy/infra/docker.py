"""Docker Engine API over httpx.

Only the calls home-proxy needs: daemon ping, container lifecycle, network
bootstrap and image presence. The daemon is reached through a Unix socket
(``unix://``) or TCP (``tcp://``/``http://``, e.g. a docker-socket-proxy).
"""

import json
import logging

import httpx
from pydantic import BaseModel, ConfigDict, Field

from homeproxy.app.config import DockerConfig, get_settings
from homeproxy.core.logging_schema import LogEvent

logger = logging.getLogger(__name__)


class HostConfig(BaseModel):
    """HostConfig section of a container create request."""

    model_config = ConfigDict(frozen=True)

    network_mode: str = Field(default="bridge", serialization_alias="NetworkMode")
    binds: list[str] = Field(default_factory=list, serialization_alias="Binds")
    restart_policy: dict[str, str] = Field(
        default_factory=lambda: {"Name": "no"}, serialization_alias="RestartPolicy"
    )


class ContainerConfig(BaseModel):
    """Body of POST /containers/create (the name goes in the query)."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(exclude=True)
    image: str = Field(serialization_alias="Image")
    hostname: str | None = Field(default=None, serialization_alias="Hostname")
    env: list[str] = Field(default_factory=list, serialization_alias="Env")
    labels: dict[str, str] = Field(default_factory=dict, serialization_alias="Labels")
    exposed_ports: dict[str, dict] = Field(
        default_factory=dict, serialization_alias="ExposedPorts"
    )
    host_config: HostConfig = Field(
        default_factory=HostConfig, serialization_alias="HostConfig"
    )

    def to_api(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


def _base_url(host: str) -> tuple[str, httpx.AsyncHTTPTransport | None]:
    if host.startswith("unix://"):
        return "http://localhost", httpx.AsyncHTTPTransport(uds=host[len("unix://") :])
    if host.startswith("tcp://"):
        return "http://" + host[len("tcp://") :], None
    return host, None


class DockerClient:
    """Lazily created httpx client bound to one daemon.

    The underlying client is recreated after close(), so one DockerClient
    can outlive an event loop (as in tests).
    """

    def __init__(
        self, docker_host: str | None = None, config: DockerConfig | None = None
    ) -> None:
        self.config = config or get_settings().docker
        self._host = docker_host or self.config.host
        self._client: httpx.AsyncClient | None = None

    async def get(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            base_url, transport = _base_url(self._host)
            self._client = httpx.AsyncClient(
                base_url=base_url, transport=transport, timeout=self.config.api_timeout
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None


_docker_client: DockerClient | None = None


def get_docker_client() -> DockerClient:
    """Process-wide DockerClient."""
    global _docker_client
    if _docker_client is None:
        _docker_client = DockerClient()
    return _docker_client


async def close_docker() -> None:
    global _docker_client
    if _docker_client is not None:
        await _docker_client.close()
        _docker_client = None


async def ping(client: DockerClient | None = None) -> None:
    """Raise if the daemon does not answer /_ping."""
    http = await (client or get_docker_client()).get()
    resp = await http.get("/_ping")
    resp.raise_for_status()


class _Resource:
    def __init__(self, client: DockerClient | None = None) -> None:
        self._docker = client or get_docker_client()

    async def _request(
        self,
        method: str,
        url: str,
        *,
        tolerate: tuple[int, ...] = (),
        **kwargs,
    ) -> httpx.Response:
        """Send a request; statuses in ``tolerate`` are returned, not raised."""
        client = await self._docker.get()
        resp = await client.request(method, url, **kwargs)
        if resp.status_code not in tolerate:
            resp.raise_for_status()
        return resp


def _filters(filters: dict | None) -> dict:
    return {"filters": json.dumps(filters)} if filters else {}


class ContainerAPI(_Resource):
    """/containers endpoints."""

    async def list(self, filters: dict | None = None) -> list[dict]:
        """List containers, stopped ones included.

        Args:
            filters: Docker filters, e.g. {"name": ["hrp-"]} (substring match)
        """
        resp = await self._request(
            "GET", "/containers/json", params={"all": "true", **_filters(filters)}
        )
        return resp.json()

    async def inspect(self, name: str) -> dict | None:
        """Container details by name or ID; None when it does not exist."""
        resp = await self._request("GET", f"/containers/{name}/json", tolerate=(404,))
        return None if resp.status_code == 404 else resp.json()

    async def create(self, config: ContainerConfig) -> str | None:
        """Create a container and return its ID.

        Returns None when the name is already taken (409).
        """
        resp = await self._request(
            "POST",
            "/containers/create",
            params={"name": config.name},
            json=config.to_api(),
            tolerate=(409,),
        )
        if resp.status_code == 409:
            logger.debug("Container name taken: %s", config.name)
            return None

        container_id = resp.json()["Id"]
        logger.info(
            "Created container %s",
            config.name,
            extra={
                "event": LogEvent.CONTAINER_CREATED,
                "workload": config.name,
                "container_id": container_id,
            },
        )
        return container_id

    async def start(self, name: str) -> None:
        # 304: already running
        await self._request("POST", f"/containers/{name}/start", tolerate=(304,))

    async def stop(self, name: str, timeout: int | None = None) -> None:
        """Stop a container; a missing or already stopped one is not an error.

        Args:
            name: Container name or ID
            timeout: Grace period in seconds before the daemon kills it
        """
        config = self._docker.config
        grace = config.stop_timeout if timeout is None else timeout
        # The HTTP call has to outlast the daemon's grace period
        resp = await self._request(
            "POST",
            f"/containers/{name}/stop",
            params={"t": str(grace)},
            timeout=grace + config.api_timeout,
            tolerate=(304, 404),
        )
        if resp.status_code != 404:
            logger.info(
                "Stopped container %s",
                name,
                extra={"event": LogEvent.CONTAINER_STOPPED, "workload": name},
            )

    async def remove(self, name: str, force: bool = True) -> None:
        resp = await self._request(
            "DELETE",
            f"/containers/{name}",
            params={"force": str(force).lower()},
            tolerate=(404,),
        )
        if resp.status_code != 404:
            logger.info(
                "Removed container %s",
                name,
                extra={"event": LogEvent.CONTAINER_REMOVED, "workload": name},
            )


class NetworkAPI(_Resource):
    """/networks endpoints."""

    async def list(self, filters: dict | None = None) -> list[dict]:
        resp = await self._request("GET", "/networks", params=_filters(filters))
        return resp.json()

    async def create(self, name: str, driver: str = "bridge") -> None:
        resp = await self._request(
            "POST",
            "/networks/create",
            json={"Name": name, "Driver": driver, "CheckDuplicate": True},
            tolerate=(409,),
        )
        if resp.status_code != 409:
            logger.info(
                "Created network %s",
                name,
                extra={"event": LogEvent.NETWORK_CREATED, "network": name},
            )

    async def ensure(self, name: str) -> None:
        """Create the network unless one with exactly this name exists."""
        # The name filter matches substrings
        existing = await self.list(filters={"name": [name]})
        if name not in {n.get("Name") for n in existing}:
            await self.create(name)


def split_image_ref(image_ref: str) -> tuple[str, str]:
    """Split "repo[:tag]" into (repo, tag); a registry port is not a tag."""
    repo, sep, tag = image_ref.rpartition(":")
    if not sep or "/" in tag:
        return image_ref, "latest"
    return repo, tag


class ImageAPI(_Resource):
    """/images endpoints."""

    async def exists(self, image_ref: str) -> bool:
        resp = await self._request("GET", f"/images/{image_ref}/json", tolerate=(404,))
        return resp.status_code == 200

    async def pull(self, image_ref: str) -> None:
        """Pull from the registry, reading the progress stream to the end."""
        repo, tag = split_image_ref(image_ref)
        logger.info("Pulling image %s:%s", repo, tag)
        await self._request(
            "POST",
            "/images/create",
            params={"fromImage": repo, "tag": tag},
            timeout=self._docker.config.image_pull_timeout,
        )
        logger.info("Pulled image %s:%s", repo, tag)

    async def ensure(self, image_ref: str) -> None:
        if not await self.exists(image_ref):
            await self.pull(image_ref)
