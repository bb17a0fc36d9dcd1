"""
PYXM Logger
===========

Structured logging with pluggable handlers.

Loggers form a dotted hierarchy below "taggedpyxm". A child logger
without its own handlers or level uses those of its nearest ancestor,
so ``configure_logging()`` on the root controls the whole engine.
"""

from __future__ import annotations

import logging
import sys
import traceback
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Any, Dict, List, Optional, Union

import orjson

ROOT_LOGGER = "taggedpyxm"


class LogLevel(IntEnum):
    """Log levels."""

    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL

    @classmethod
    def parse(cls, value: Union[str, int, "LogLevel"]) -> "LogLevel":
        """Accept a level name ("debug") or number."""
        if isinstance(value, str):
            try:
                return cls[value.upper()]
            except KeyError:
                raise ValueError(f"Unknown log level: {value!r}") from None
        return cls(value)


@dataclass
class LogRecord:
    """
    Structured log record.

    Attributes:
        level: Log level
        message: Log message
        timestamp: Record timestamp
        context: Additional context
        exception: Exception info
    """

    level: LogLevel
    message: str
    timestamp: datetime = field(default_factory=datetime.now)
    context: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[BaseException] = None
    logger_name: str = ROOT_LOGGER

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        data: Dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level.name,
            "message": self.message,
            "logger": self.logger_name,
        }

        if self.context:
            data["context"] = self.context

        if self.exception:
            data["exception"] = {
                "type": type(self.exception).__name__,
                "message": str(self.exception),
                "traceback": traceback.format_exception(
                    type(self.exception),
                    self.exception,
                    self.exception.__traceback__,
                ),
            }

        return data

    def to_json(self, pretty: bool = False) -> str:
        """Convert to JSON string."""
        option = orjson.OPT_INDENT_2 if pretty else 0
        return orjson.dumps(self.to_dict(), default=str, option=option).decode("utf-8")


class LogFormatter:
    """Base log formatter."""

    def format(self, record: LogRecord) -> str:
        """Format log record."""
        raise NotImplementedError


class TextFormatter(LogFormatter):
    """
    Plain text formatter.

    Example output:
        2024-01-15 10:30:45 [DEBUG] Compiled template template=page.pyxm elapsed_ms=1.42
    """

    COLORS = {
        LogLevel.DEBUG: "\033[36m",    # Cyan
        LogLevel.INFO: "\033[32m",     # Green
        LogLevel.WARNING: "\033[33m",  # Yellow
        LogLevel.ERROR: "\033[31m",    # Red
        LogLevel.CRITICAL: "\033[35m", # Magenta
    }
    RESET = "\033[0m"

    def __init__(
        self,
        format_string: Optional[str] = None,
        date_format: str = "%Y-%m-%d %H:%M:%S",
        colors: bool = True,
    ):
        self.format_string = format_string or "{timestamp} [{level}] {message}"
        self.date_format = date_format
        self.colors = colors and sys.stderr.isatty()

    def format(self, record: LogRecord) -> str:
        """Format as text."""
        level = record.level.name
        if self.colors:
            level = f"{self.COLORS.get(record.level, '')}{level}{self.RESET}"

        # Add context as key=value pairs
        message = record.message
        if record.context:
            pairs = " ".join(f"{k}={v}" for k, v in record.context.items())
            message = f"{message} {pairs}"

        output = self.format_string.format(
            timestamp=record.timestamp.strftime(self.date_format),
            level=level,
            message=message,
            logger=record.logger_name,
        )

        if record.exception:
            output += "\n" + "".join(
                traceback.format_exception(
                    type(record.exception),
                    record.exception,
                    record.exception.__traceback__,
                )
            ).rstrip()

        return output


class JsonFormatter(LogFormatter):
    """
    JSON formatter for structured logging.

    Example output:
        {"timestamp":"2024-01-15T10:30:45","level":"INFO","message":"Compiled template"}
    """

    def __init__(self, pretty: bool = False):
        self.pretty = pretty

    def format(self, record: LogRecord) -> str:
        """Format as JSON."""
        return record.to_json(pretty=self.pretty)


class LogHandler:
    """Base log handler."""

    def __init__(
        self,
        formatter: Optional[LogFormatter] = None,
        level: LogLevel = LogLevel.DEBUG,
    ):
        self.formatter = formatter or TextFormatter()
        self.level = level

    def handle(self, record: LogRecord) -> None:
        """Handle log record."""
        if record.level >= self.level:
            self.emit(record)

    def emit(self, record: LogRecord) -> None:
        """Emit formatted record."""
        raise NotImplementedError


class StreamHandler(LogHandler):
    """Stream output handler."""

    def __init__(
        self,
        stream: Any = None,
        formatter: Optional[LogFormatter] = None,
        level: LogLevel = LogLevel.DEBUG,
    ):
        super().__init__(formatter, level)
        self.stream = stream

    def emit(self, record: LogRecord) -> None:
        """Write to stream."""
        # resolved per call so redirected stderr is honoured
        stream = self.stream or sys.stderr
        stream.write(self.formatter.format(record) + "\n")
        stream.flush()


class MemoryHandler(LogHandler):
    """Keeps records in a list. Useful for tests and tooling."""

    def __init__(self, level: LogLevel = LogLevel.DEBUG):
        super().__init__(level=level)
        self.records: List[LogRecord] = []

    def emit(self, record: LogRecord) -> None:
        self.records.append(record)


class Logger:
    """
    Structured logger.

    Example:
        logger = get_logger("taggedpyxm.engine")

        logger.info("Template compiled", template="page.pyxm")
        logger.error("Syntax error", exception=e)

        # With context
        logger = logger.with_context(template="page.pyxm")
        logger.debug("Parsing")
    """

    def __init__(
        self,
        name: str = ROOT_LOGGER,
        level: Optional[LogLevel] = None,
        handlers: Optional[List[LogHandler]] = None,
        parent: Optional["Logger"] = None,
    ):
        """
        Initialize logger.

        Args:
            name: Logger name
            level: Minimum log level (inherited from parent if None)
            handlers: Log handlers (inherited from parent if empty)
            parent: Parent logger in the hierarchy
        """
        self.name = name
        self.level = level
        self.parent = parent
        self._handlers: List[LogHandler] = handlers if handlers is not None else []
        self._context: Dict[str, Any] = {}

    @property
    def effective_level(self) -> LogLevel:
        if self.level is not None:
            return self.level
        if self.parent is not None:
            return self.parent.effective_level
        return LogLevel.INFO

    @property
    def handlers(self) -> List[LogHandler]:
        if self._handlers or self.parent is None:
            return self._handlers
        return self.parent.handlers

    def add_handler(self, handler: LogHandler) -> "Logger":
        """Add log handler."""
        self._handlers.append(handler)
        return self

    def remove_handler(self, handler: LogHandler) -> "Logger":
        """Remove log handler."""
        self._handlers.remove(handler)
        return self

    def set_handlers(self, handlers: List[LogHandler]) -> "Logger":
        # in place, so bound loggers from with_context() follow
        self._handlers[:] = handlers
        return self

    def is_enabled_for(self, level: LogLevel) -> bool:
        return level >= self.effective_level

    def with_context(self, **context: Any) -> "Logger":
        """
        Create logger with additional context.

        Args:
            **context: Context key-values

        Returns:
            New logger with context
        """
        new_logger = Logger(
            name=self.name,
            level=self.level,
            handlers=self._handlers,
            parent=self.parent,
        )
        new_logger._context = {**self._context, **context}
        return new_logger

    def _log(
        self,
        level: LogLevel,
        message: str,
        exception: Optional[BaseException] = None,
        **context: Any,
    ) -> None:
        """Internal log method."""
        if not self.is_enabled_for(level):
            return

        record = LogRecord(
            level=level,
            message=message,
            context={**self._context, **context},
            exception=exception,
            logger_name=self.name,
        )

        for handler in self.handlers:
            try:
                handler.handle(record)
            except (OSError, ValueError) as e:
                # a broken handler must not break template compilation
                sys.stderr.write(f"Logging error in {type(handler).__name__}: {e}\n")

    def debug(self, message: str, **context: Any) -> None:
        """Log debug message."""
        self._log(LogLevel.DEBUG, message, **context)

    def info(self, message: str, **context: Any) -> None:
        """Log info message."""
        self._log(LogLevel.INFO, message, **context)

    def warning(self, message: str, **context: Any) -> None:
        """Log warning message."""
        self._log(LogLevel.WARNING, message, **context)

    def error(
        self,
        message: str,
        exception: Optional[BaseException] = None,
        **context: Any,
    ) -> None:
        """Log error message."""
        self._log(LogLevel.ERROR, message, exception, **context)

    def critical(
        self,
        message: str,
        exception: Optional[BaseException] = None,
        **context: Any,
    ) -> None:
        """Log critical message."""
        self._log(LogLevel.CRITICAL, message, exception, **context)

    def exception(self, message: str, **context: Any) -> None:
        """Log current exception."""
        self._log(LogLevel.ERROR, message, sys.exc_info()[1], **context)


# Global logger registry
_loggers: Dict[str, Logger] = {}


def get_logger(name: str = ROOT_LOGGER, level: Optional[LogLevel] = None) -> Logger:
    """
    Get or create logger.

    Args:
        name: Dotted logger name
        level: Log level (inherited from the parent when omitted)

    Returns:
        Logger instance
    """
    if name not in _loggers:
        if name == ROOT_LOGGER:
            _loggers[name] = Logger(name=name, level=level or LogLevel.INFO, handlers=[StreamHandler()])
        else:
            parent_name = name.rpartition(".")[0] if "." in name else ROOT_LOGGER
            _loggers[name] = Logger(name=name, level=level, parent=get_logger(parent_name))
    elif level is not None:
        _loggers[name].level = level

    return _loggers[name]


def configure_logging(
    level: Union[str, LogLevel] = LogLevel.INFO,
    format: str = "text",
    colors: bool = True,
    stream: Any = None,
) -> Logger:
    """
    Configure engine logging.

    Args:
        level: Log level (name or LogLevel)
        format: Output format ("text" or "json")
        colors: Enable colored text output
        stream: Output stream (stderr by default)

    Returns:
        The configured root logger
    """
    if format == "json":
        formatter: LogFormatter = JsonFormatter()
    elif format == "text":
        formatter = TextFormatter(colors=colors)
    else:
        raise ValueError(f"Unknown log format: {format!r}")

    logger = get_logger(ROOT_LOGGER)
    logger.level = LogLevel.parse(level)
    logger.set_handlers([StreamHandler(stream=stream, formatter=formatter)])
    return logger
