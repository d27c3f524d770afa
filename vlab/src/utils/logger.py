"""
Virtual Lab Assistant - Logging
================================
Named loggers that write ``time | level | module | message`` lines to
stdout.

The level comes from ``settings.LOG_LEVEL`` when it is set, otherwise
from ``settings.ENV`` (``dev`` → DEBUG, ``prod`` → WARNING).  Scripts
and the API server call ``get_logger(__name__)`` at import time.
"""

import logging
import sys

from vlab.config.settings import settings

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_level(env: str, log_level: str | None = None) -> int:
    """Map the configured ``LOG_LEVEL`` / ``ENV`` pair to a ``logging`` level."""
    if log_level:
        return logging.getLevelName(log_level.upper())
    return logging.DEBUG if env == "dev" else logging.WARNING


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT))
    return handler


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Return the logger called *name*, attaching the stdout handler on first use.

    An explicit *level* is applied on every call, so a script can turn
    an already-configured module logger up or down.
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        logger.addHandler(_console_handler())
        logger.propagate = False
        if level is None:
            logger.setLevel(resolve_level(settings.ENV, settings.LOG_LEVEL))

    if level is not None:
        logger.setLevel(level)
    return logger
