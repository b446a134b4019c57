"""Logging setup for the haulbook package."""

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def configure_logging(level: str = "INFO") -> logging.Logger:
    """
    Install a single stream handler on the ``haulbook`` logger.

    Safe to call more than once; later calls only change the level.
    """
    global _configured

    logger = logging.getLogger("haulbook")
    logger.setLevel(level.upper())

    if not _configured:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False
        _configured = True

    return logger


def reset_logging() -> None:
    """Remove handlers installed by configure_logging (used by tests)."""
    global _configured

    logger = logging.getLogger("haulbook")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    _configured = False
