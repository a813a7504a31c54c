"""Local account directory resolver (passwd database)."""

import logging
import os
import pwd

from homeproxy.app.config import DirectoryConfig
from homeproxy.core.errors import DirectoryResolutionError
from homeproxy.core.interfaces import DirectoryResolver

logger = logging.getLogger(__name__)


class LocalAccountResolver(DirectoryResolver):
    """Resolve tenants against local user accounts.

    Primary mount: <pw_dir>/<public_dir>
    Extra mounts: DirectoryConfig.extra_dirs, "{identity}" is substituted
    """

    def __init__(self, config: DirectoryConfig) -> None:
        self._public_dir = config.public_dir
        self._extra_dirs = list(config.extra_dirs)

    async def resolve(self, identity: str) -> list[str]:
        try:
            entry = pwd.getpwnam(identity)
        except KeyError as exc:
            raise DirectoryResolutionError(identity, "no such local account") from exc

        home = os.path.join(entry.pw_dir, self._public_dir)
        extras = [d.format(identity=identity) for d in self._extra_dirs]
        logger.debug("Resolved %s -> %s (+%d extra)", identity, home, len(extras))
        return [home, *extras]
