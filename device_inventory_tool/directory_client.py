"""
LDAP client for computer accounts in on-premises Active Directory.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ldap3 import SUBTREE, Connection, Server
from ldap3.core.exceptions import LDAPException
from ldap3.utils.conv import escape_filter_chars

from .config import DirectoryAuth
from .models import DirectoryComputer

COMPUTER_ATTRIBUTES = ["name", "distinguishedName", "dNSHostName", "operatingSystem", "whenChanged"]

# LDAP_SERVER_TREE_DELETE_OID; computer objects often carry leaf children
TREE_DELETE_CONTROL = ("1.2.840.113556.1.4.805", True, None)


class DirectoryError(Exception):
    """Raised when the directory cannot be reached or rejects an operation."""


def _first(attributes: Dict[str, Any], key: str) -> Optional[str]:
    value = attributes.get(key)
    if isinstance(value, list):
        value = value[0] if value else None
    if value is None or value == "":
        return None
    return str(value)


class DirectoryClient:
    """
    Client responsible for searching and deleting AD computer accounts.
    """

    def __init__(
        self,
        auth: Optional[DirectoryAuth] = None,
        logger: Optional[logging.Logger] = None,
        *,
        connection: Optional[Any] = None,
        timeout: int = 30,
    ):
        self.auth = (auth or DirectoryAuth()).from_env()
        self.logger = logger or logging.getLogger(__name__)
        self.timeout = timeout
        self._connection = connection

        if connection is None and not self.auth.server:
            raise DirectoryError("AD_SERVER is required to query the on-premises directory.")
        if not self.auth.search_base:
            raise DirectoryError("AD_SEARCH_BASE is required (e.g. DC=corp,DC=example,DC=com).")

    def connect(self) -> None:
        """Bind once; the connection is reused for every search and delete."""
        if self._connection is not None:
            return
        try:
            server = Server(self.auth.server, use_ssl=self.auth.use_ssl, connect_timeout=self.timeout)
            self._connection = Connection(
                server,
                user=self.auth.user,
                password=self.auth.password,
                auto_bind=True,
                receive_timeout=self.timeout,
            )
        except LDAPException as exc:
            raise DirectoryError(f"Failed to bind to {self.auth.server}: {exc}") from exc
        self.logger.debug("Bound to directory server %s", self.auth.server)

    @property
    def connection(self) -> Any:
        if self._connection is None:
            self.connect()
        return self._connection

    def close(self) -> None:
        if self._connection is not None:
            try:
                self._connection.unbind()
            except LDAPException as exc:
                self.logger.debug("Unbind failed: %s", exc)
            self._connection = None

    def find_computers(self, name: str) -> List[DirectoryComputer]:
        """Substring match on the computer name (name=*<name>*)."""
        search_filter = f"(&(objectCategory=computer)(name=*{escape_filter_chars(name)}*))"
        self.logger.debug("LDAP search base=%s filter=%s", self.auth.search_base, search_filter)
        try:
            self.connection.search(
                self.auth.search_base,
                search_filter,
                search_scope=SUBTREE,
                attributes=COMPUTER_ATTRIBUTES,
            )
        except LDAPException as exc:
            raise DirectoryError(f"LDAP search failed for '{name}': {exc}") from exc

        # search() returns False on failure without raising; 0 is success
        result = self.connection.result or {}
        if result.get("result", 0) != 0:
            raise DirectoryError(
                f"LDAP search failed for '{name}': "
                f"{result.get('description') or result.get('result')} {result.get('message') or ''}".rstrip()
            )

        results: List[DirectoryComputer] = []
        for entry in self.connection.entries:
            attributes = entry.entry_attributes_as_dict
            results.append(
                DirectoryComputer(
                    distinguished_name=entry.entry_dn,
                    name=_first(attributes, "name") or entry.entry_dn,
                    dns_host_name=_first(attributes, "dNSHostName"),
                    operating_system=_first(attributes, "operatingSystem"),
                    when_changed=_first(attributes, "whenChanged"),
                )
            )
        return results

    def delete_computer(self, distinguished_name: str) -> None:
        try:
            ok = self.connection.delete(distinguished_name, controls=[TREE_DELETE_CONTROL])
        except LDAPException as exc:
            raise DirectoryError(f"LDAP delete failed for {distinguished_name}: {exc}") from exc
        if not ok:
            result = self.connection.result or {}
            raise DirectoryError(
                f"LDAP delete rejected for {distinguished_name}: "
                f"{result.get('description', 'unknown')} {result.get('message', '')}".strip()
            )
        self.logger.info("Deleted directory computer %s", distinguished_name)
