"""Stderr logging for the capsule CLI and the MCP server.

Modules log through ``logging.getLogger(__name__)``; everything lands under
the ``mindcapsule`` logger configured here. Output always goes to stderr so
the MCP stdio transport and ``--json`` output on stdout stay clean.

MINDCAPSULE_LOG_LEVEL picks the level (default WARNING). Directory scans
and index rebuilds log at DEBUG, workspace and vertex mutations at INFO.
"""

import logging
import os
import sys

PACKAGE_LOGGER = "mindcapsule"
LOG_LEVEL_ENV = "MINDCAPSULE_LOG_LEVEL"
DEFAULT_LEVEL = logging.WARNING


def level_from_env() -> int:
    """Resolve MINDCAPSULE_LOG_LEVEL to a logging level; unknown names give WARNING."""
    name = os.environ.get(LOG_LEVEL_ENV, "").strip().upper()
    if not name:
        return DEFAULT_LEVEL
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else DEFAULT_LEVEL


def configure_logging(level: int | None = None) -> logging.Logger:
    """Attach the stderr handler to the package logger once per process.

    Later calls only adjust the level when one is passed explicitly.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    if level is None and logger.handlers:
        return logger

    resolved = level if level is not None else level_from_env()
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
        logger.addHandler(handler)
        logger.propagate = False

    _apply_level(logger, resolved)
    return logger


def set_quiet_mode(quiet: bool) -> None:
    """Only let errors through when quiet is set; otherwise restore the env level."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    _apply_level(logger, logging.ERROR if quiet else level_from_env())


def _apply_level(logger: logging.Logger, level: int) -> None:
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)
