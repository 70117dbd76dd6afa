"""
Authenticated backend handles shared by every adapter for one invocation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .config import Config
from .directory_client import DirectoryClient, DirectoryError
from .graph_client import GraphApiError, GraphClient, GraphRequestError


class SessionError(Exception):
    """Raised when a backend session cannot be established."""


@dataclass
class Session:
    graph: GraphClient
    directory: Optional[DirectoryClient] = None

    def close(self) -> None:
        if self.directory is not None:
            self.directory.close()


def open_session(
    config: Config,
    logger: Optional[logging.Logger] = None,
    *,
    need_directory: bool = True,
    debug_api: bool = False,
) -> Session:
    """
    Build and authenticate the Graph client (and the directory connection when
    required). Any failure here is fatal and happens before device processing.
    """
    log = logger or logging.getLogger(__name__)
    try:
        graph = GraphClient(config.graph, logger=log, timeout=config.request_timeout, debug_api=debug_api)
        graph.authenticate()
    except (GraphRequestError, GraphApiError) as exc:
        raise SessionError(f"Microsoft Graph session failed: {exc}") from exc

    directory: Optional[DirectoryClient] = None
    if need_directory:
        try:
            directory = DirectoryClient(config.directory, logger=log, timeout=config.request_timeout)
            directory.connect()
        except DirectoryError as exc:
            raise SessionError(f"Directory session failed: {exc}") from exc

    log.debug("Session established (directory: %s)", "yes" if directory else "no")
    return Session(graph=graph, directory=directory)
