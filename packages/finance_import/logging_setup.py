"""Logging for ``finance_import``.

Every module logs through ``get_logger("finance_import.<module>")`` with
``key=value`` messages and never installs handlers of its own. Entry points
(the CLI) call :func:`configure_logging` once; until then the package logger
only carries a ``NullHandler`` so embedding applications see nothing they did
not ask for.

Level resolution order: the explicit ``level`` argument, then
``FINANCE_IMPORT_LOG_LEVEL``, then ``INFO``.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

PACKAGE_LOGGER = "finance_import"
LEVEL_ENV_VAR = "FINANCE_IMPORT_LOG_LEVEL"
DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_configured = False


def resolve_level(level: int | str | None = None) -> int:
    """Turn a level name, number or ``None`` into a ``logging`` level."""

    if level is None:
        level = os.getenv(LEVEL_ENV_VAR) or logging.INFO
    if isinstance(level, int):
        return level
    text = level.strip()
    if text.isdigit():
        return int(text)
    named = logging.getLevelName(text.upper())
    # getLevelName returns "Level X" for unknown names.
    return named if isinstance(named, int) else logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """Send package logs to ``stream`` (stderr by default). Later calls are no-ops."""

    global _configured
    logger = logging.getLogger(PACKAGE_LOGGER)
    if _configured:
        return logger

    for handler in [h for h in logger.handlers if isinstance(h, logging.NullHandler)]:
        logger.removeHandler(handler)

    resolved = resolve_level(level)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))
    handler.setLevel(resolved)
    logger.addHandler(handler)
    logger.setLevel(resolved)
    # Records stop here; the root logger would print them a second time.
    logger.propagate = False

    _configured = True
    return logger


def get_logger(name: str) -> logging.Logger:
    package = logging.getLogger(PACKAGE_LOGGER)
    if not _configured and not package.handlers:
        package.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "resolve_level"]
