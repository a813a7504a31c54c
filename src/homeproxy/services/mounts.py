"""Mount planning for tenant workloads.

Turns resolved directories into bind mounts:
- primary directory: read-write, mounted at a target derived from the identity
- extra directories: "path" or "path::ro", mounted at their own path
Directories missing on the host are skipped with a warning.
"""

import logging
import os

from homeproxy.core.domain import MountSpec
from homeproxy.core.logging_schema import LogEvent

logger = logging.getLogger(__name__)

READ_ONLY_SUFFIX = "::ro"


def parse_mount_entry(entry: str) -> tuple[str, bool]:
    """Split "path[::ro]" into (path, read_only)."""
    if entry.endswith(READ_ONLY_SUFFIX):
        return entry[: -len(READ_ONLY_SUFFIX)], True
    return entry, False


def _available(identity: str, source: str) -> bool:
    if os.path.exists(source):
        return True
    logger.warning(
        "Skipping unavailable mount source %s",
        source,
        extra={"event": LogEvent.MOUNT_SKIPPED, "tenant": identity, "source": source},
    )
    return False


def plan_mounts(
    identity: str,
    primary: str,
    extras: list[str],
    target_template: str,
) -> list[MountSpec]:
    """Build the ordered mount list for one provisioning attempt.

    Args:
        identity: Tenant identity, substituted into target_template
        primary: Host path of the tenant's home mount
        extras: Additional "path" or "path::ro" entries
        target_template: Mount target of the primary, e.g. "/users/{identity}/public_html"
    """
    mounts = []
    if _available(identity, primary):
        mounts.append(
            MountSpec(
                source=primary,
                target=target_template.format(identity=identity),
                read_only=False,
            )
        )

    for entry in extras:
        source, read_only = parse_mount_entry(entry)
        if not source or not _available(identity, source):
            continue
        mounts.append(MountSpec(source=source, target=source, read_only=read_only))

    return mounts
