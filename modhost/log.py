"""Logging setup for the modhost command line and embedding applications."""

import logging
import sys

from modhost.config.schema import DEFAULT_LOG_FORMAT

ROOT_LOGGER = "modhost"


class HostLogHandler(logging.StreamHandler):
    """Stream handler installed by configure_logging."""


def configure_logging(level: str = "INFO", fmt: str = DEFAULT_LOG_FORMAT) -> logging.Logger:
    """
    Send modhost log records to stderr.

    Calling this again replaces the handler installed by a previous call.

    Args:
        level: Level name for the modhost logger
        fmt: logging format string

    Returns:
        The modhost logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        if isinstance(handler, HostLogHandler):
            logger.removeHandler(handler)

    handler = HostLogHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(fmt))
    logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return logger
