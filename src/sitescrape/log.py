"""Logging setup for the command line."""

from __future__ import annotations

import logging
import sys

DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def setup_logging(level: int | str = logging.INFO, fmt: str = DEFAULT_FORMAT) -> logging.Logger:
    """
    Configure the ``sitescrape`` logger with a single stderr handler.

    Calling it again replaces the handler instead of adding another one.

    Args:
        level: Logging level name or number
        fmt: Log record format

    Returns:
        The package logger
    """
    logger = logging.getLogger("sitescrape")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(fmt))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
