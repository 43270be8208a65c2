"""Logging setup using Loguru."""

from __future__ import annotations

import sys

from loguru import logger

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


def setup_logging(level: str = "INFO", *, sink: object = None) -> None:
    """Replace Loguru's default handler with one coloured stderr sink."""

    logger.remove()
    logger.add(sink or sys.stderr, level=level.upper(), format=_FORMAT, colorize=sink is None)
    logger.debug("Logger initialised | level={}", level.upper())
