from homeproxy.adapters.runtime.docker import DockerWorkloadRuntime

__all__ = ["DockerWorkloadRuntime"]
