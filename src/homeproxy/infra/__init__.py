"""Infrastructure connections (Docker Engine API)."""

from homeproxy.infra.docker import (
    ContainerAPI,
    ContainerConfig,
    DockerClient,
    HostConfig,
    ImageAPI,
    NetworkAPI,
    close_docker,
    get_docker_client,
)

__all__ = [
    "DockerClient",
    "get_docker_client",
    "close_docker",
    "ContainerAPI",
    "ContainerConfig",
    "HostConfig",
    "ImageAPI",
    "NetworkAPI",
]
