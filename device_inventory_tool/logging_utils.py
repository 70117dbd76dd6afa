"""
Logging helpers for Device Inventory Tool.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LIBRARY_LOGGERS = ("msal", "urllib3", "ldap3")


def setup_logging(
    verbose: bool = False,
    quiet: bool = False,
    logger_name: Optional[str] = None,
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Configure root logger or a named logger based on verbosity flags.

    Parameters
    ----------
    verbose: bool
        When True, set console level to DEBUG.
    quiet: bool
        When True, set console level to WARNING.
    logger_name: Optional[str]
        Name of a specific logger; defaults to root.
    log_file: Optional[Path]
        Also append every DEBUG-and-above record here, regardless of the
        console level. Used to keep an audit trail of delete runs.
    """
    if verbose and quiet:
        level = logging.INFO
    elif verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    logging.basicConfig(level=level, format=LOG_FORMAT)
    logger = logging.getLogger(logger_name)
    logger.setLevel(level)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(logging.DEBUG)
        # Console handlers keep the requested verbosity
        for existing in logging.getLogger().handlers:
            if not isinstance(existing, logging.FileHandler):
                existing.setLevel(level)

    for name in LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)
    return logger
