"""
Logging setup.

Chronus logs through loguru and stays silent until configure_logging() is
called (the package disables its own logger on import, as a library should).
"""
from __future__ import annotations

import sys
from typing import Any, Optional

from loguru import logger

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function} | {message}"

_handler_id: Optional[int] = None


def configure_logging(level: str = "WARNING", sink: Any = None) -> int:
    """
    Route chronus logs to ``sink`` (default stderr) at ``level``.

    Replaces the handler installed by a previous call. Returns the loguru
    handler id.
    """
    global _handler_id
    if _handler_id is not None:
        try:
            logger.remove(_handler_id)
        except ValueError:
            pass
    else:
        logger.remove()

    _handler_id = logger.add(
        sink if sink is not None else sys.stderr,
        level=level.upper(),
        format=LOG_FORMAT,
        backtrace=False,
        diagnose=False,
    )
    logger.enable("chronus")
    return _handler_id
