"""Logging for the request-orchestration layer.

Every module logs through a named logger from `get_logger`. Tokens and
identifiers are only ever logged through `short_id`.

Usage example:
    from backend_bridge.observability.logging import get_logger, short_id

    logger = get_logger("backend_bridge.application.sessions")
    logger.info("Using client id %s", short_id(client_id))
"""

from __future__ import annotations

import logging
import time

ROOT_LOGGER_NAME = "backend_bridge"

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"
_SHORT_ID_LENGTH = 8


def get_logger(name: str) -> logging.Logger:
    """Return the logger for `name`, attaching a UTC stream handler on first use.

    Args:
        name: Stable module-qualified name, e.g. `backend_bridge.application.gateway`.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger
    formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt=_LOG_DATE_FORMAT)
    formatter.converter = time.gmtime
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    return logger


def set_level(level: int) -> None:
    """Apply `level` to every package logger created so far."""
    for name, candidate in logging.Logger.manager.loggerDict.items():
        if not isinstance(candidate, logging.Logger):
            continue
        if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
            candidate.setLevel(level)


def short_id(value: str | None) -> str:
    """Return a log-safe prefix of an identifier or token."""
    if not value:
        return "<none>"
    if len(value) <= _SHORT_ID_LENGTH:
        return value
    return f"{value[:_SHORT_ID_LENGTH]}..."
