"""Logging configuration for the cloud poller."""

import logging
import sys

from cloud_poller.core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging() -> logging.Logger:
    """Set up console logging for the ``cloud_poller`` package."""
    logger = logging.getLogger("cloud_poller")
    level = logging.getLevelName((settings.LOG_LEVEL or "INFO").upper())
    if not isinstance(level, int):
        level = logging.INFO
    logger.setLevel(level)

    # Clear any existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    logger.addHandler(handler)

    # Request logs from httpx would echo provider URLs on every poll.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return logger
