"""Logging setup for MailMate modules.

Only the ``mailmate`` package logger is configured; the root logger and any
handlers installed by uvicorn are left alone.
"""

from __future__ import annotations

import logging
from typing import Final

from mailmate import config

PACKAGE_LOGGER: Final[str] = "mailmate"
_FORMAT: Final[str] = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"


def _level() -> int:
    level = logging.getLevelName(config.LOG_LEVEL.upper())
    return level if isinstance(level, int) else logging.INFO


def _configure_package_logger() -> logging.Logger:
    package = logging.getLogger(PACKAGE_LOGGER)
    if not package.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%H:%M:%S"))
        package.addHandler(handler)
        package.propagate = False
    package.setLevel(_level())
    return package


def get_logger(name: str) -> logging.Logger:
    """Logger for ``name``, nested under the ``mailmate`` package logger."""
    package = _configure_package_logger()
    if name == PACKAGE_LOGGER or name.startswith(f"{PACKAGE_LOGGER}."):
        return logging.getLogger(name)
    return package.getChild(name)
