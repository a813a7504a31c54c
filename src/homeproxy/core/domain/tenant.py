"""Tenant identity and proxy state.

A tenant is addressed as /~<identity> or /~<identity>/<rest>; the identity is
the text between "~" and the next "/" (or end of path).
"""

import re
from enum import StrEnum

TENANT_PATH_RE = re.compile(r"^/~([^/]+)(/.*)?$")


class ProxyState(StrEnum):
    """Registry state of a tenant.

    PROVISIONING: claimed, workload being started, no forwarder yet
    READY: backend reachable, requests are forwarded

    There is no terminal state; entries are removed instead.
    """

    PROVISIONING = "provisioning"
    READY = "ready"


def extract_identity(path: str) -> str:
    """Return the tenant identity embedded in path, or "" if there is none."""
    match = TENANT_PATH_RE.match(path)
    if match is None:
        return ""
    return match.group(1)


def workload_name(prefix: str, identity: str) -> str:
    """Deterministic workload (container) name for a tenant."""
    return f"{prefix}{identity}"


def identity_from_workload(prefix: str, name: str) -> str | None:
    """Inverse of workload_name(); None if name is not a tenant workload."""
    name = name.lstrip("/")
    if not name.startswith(prefix) or len(name) == len(prefix):
        return None
    return name[len(prefix) :]
