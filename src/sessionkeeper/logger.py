"""
Logging setup built on loguru.

Modules obtain a bound logger with ``get_logger(__name__)``; the CLI calls
``setup_logging`` once at startup.
"""

import os
import sys
from typing import Optional

from loguru import logger as _logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> - <level>{message}</level>"
)

_logger.configure(extra={"name": "sessionkeeper"})


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """
    Configure loguru sinks.

    Args:
        level: Minimum level for the stderr sink (falls back to LOGURU_LEVEL, then INFO)
        log_file: Optional path of a rotating file sink
    """
    level = (level or os.getenv("LOGURU_LEVEL") or "INFO").upper()

    _logger.remove()
    _logger.add(sys.stderr, level=level, format=LOG_FORMAT, colorize=None)

    if log_file:
        _logger.add(
            log_file,
            level="DEBUG",
            format=LOG_FORMAT,
            rotation="10 MB",
            retention=5,
            encoding="utf-8",
        )


def get_logger(name: str):
    """Return a logger bound to the given module name."""
    return _logger.bind(name=name)
