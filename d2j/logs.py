"""Logging setup for the ``d2j`` logger tree."""

from __future__ import annotations

import logging

_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def parse_level(name: str) -> int:
    """Translate a configured level name; unknown names mean debug."""

    return _LEVELS.get(name.strip().lower(), logging.DEBUG)


def configure_logging(level: str, *, handler: logging.Handler | None = None) -> logging.Logger:
    """Route the ``d2j`` logger to *handler* (stderr by default) and return it."""

    logger = logging.getLogger("d2j")
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
    handler = handler or logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(parse_level(level))
    logger.propagate = False
    return logger


__all__ = ["configure_logging", "parse_level"]
