"""LDAP directory resolver.

Looks up (uid=<identity>) below the configured base DN and reads:
- home attribute (default homeDirectory): primary mount is <home>/<public_dir>
- optional extra attribute (multi-valued): "path" or "path::ro" extra mounts

ldap3 is synchronous; lookups run in a worker thread.
"""

import asyncio
import logging
import os

from ldap3 import NONE, SUBTREE, Connection, Server
from ldap3.core.exceptions import LDAPException
from ldap3.utils.conv import escape_filter_chars

from homeproxy.app.config import DirectoryConfig
from homeproxy.core.errors import DirectoryResolutionError
from homeproxy.core.interfaces import DirectoryResolver
from homeproxy.core.logging_schema import LogEvent

logger = logging.getLogger(__name__)


class LdapDirectoryResolver(DirectoryResolver):
    """Resolve tenants against a directory service."""

    def __init__(self, config: DirectoryConfig) -> None:
        self._url = config.ldap_url
        self._base_dn = config.ldap_base_dn
        self._bind_dn = config.ldap_bind_dn
        self._bind_password = config.ldap_bind_password
        self._home_attr = config.ldap_home_attribute
        self._extra_attr = config.ldap_extra_attribute
        self._timeout = config.ldap_timeout
        self._public_dir = config.public_dir
        self._extra_dirs = list(config.extra_dirs)

    def _attributes(self) -> list[str]:
        attrs = [self._home_attr]
        if self._extra_attr:
            attrs.append(self._extra_attr)
        return attrs

    def _search(self, identity: str) -> dict[str, list]:
        """Blocking lookup; returns the attribute dict of the single match."""
        server = Server(self._url, get_info=NONE, connect_timeout=self._timeout)
        conn = Connection(
            server,
            user=self._bind_dn,
            password=self._bind_password,
            auto_bind=True,
            receive_timeout=self._timeout,
        )
        try:
            conn.search(
                self._base_dn,
                f"(uid={escape_filter_chars(identity)})",
                search_scope=SUBTREE,
                attributes=self._attributes(),
            )
            entries = list(conn.entries)
        finally:
            conn.unbind()

        if not entries:
            raise DirectoryResolutionError(identity, "no such directory entry")
        if len(entries) > 1:
            raise DirectoryResolutionError(identity, "ambiguous directory entry")
        return entries[0].entry_attributes_as_dict

    async def resolve(self, identity: str) -> list[str]:
        try:
            attrs = await asyncio.to_thread(self._search, identity)
        except LDAPException as exc:
            logger.warning(
                "LDAP lookup failed for %s: %s",
                identity,
                exc,
                extra={"event": LogEvent.DIRECTORY_ERROR, "tenant": identity},
            )
            raise DirectoryResolutionError(identity, "directory lookup failed") from exc

        homes = attrs.get(self._home_attr) or []
        if not homes:
            raise DirectoryResolutionError(identity, f"no {self._home_attr} attribute")

        primary = os.path.join(str(homes[0]), self._public_dir)
        extras = [str(v) for v in attrs.get(self._extra_attr, [])] if self._extra_attr else []
        extras.extend(d.format(identity=identity) for d in self._extra_dirs)
        logger.debug("Resolved %s -> %s (+%d extra)", identity, primary, len(extras))
        return [primary, *extras]
