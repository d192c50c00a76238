from __future__ import annotations

import sys

from loguru import logger

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <7} | {message}"


def configure_logging(level: str = "WARNING") -> None:
    """
    Route the package's log records to stderr at ``level``.

    The package is silent until this is called.
    """
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=LOG_FORMAT, backtrace=False, diagnose=False)
    logger.enable("sched_trace")
