"""
PYXM Utils Package
==================

Logging utilities.
"""

from taggedpyxm.utils.logger import (
    JsonFormatter,
    Logger,
    LogLevel,
    MemoryHandler,
    StreamHandler,
    TextFormatter,
    configure_logging,
    get_logger,
)

__all__ = [
    "JsonFormatter",
    "Logger",
    "LogLevel",
    "MemoryHandler",
    "StreamHandler",
    "TextFormatter",
    "configure_logging",
    "get_logger",
]
