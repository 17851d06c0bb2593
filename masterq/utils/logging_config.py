"""Logging configuration for masterq.

Console output goes through Rich, optional log files use plain or structured
JSON records, and every record carries a correlation ID so the log lines of
one fetch can be told apart from another running concurrently.
"""

from __future__ import annotations

import json
import logging
import logging.config
import sys
import time
import uuid
from contextvars import ContextVar
from pathlib import Path
from typing import TYPE_CHECKING, Any, cast

from rich.console import Console
from rich.logging import RichHandler
from rich.text import Text

if TYPE_CHECKING:  # pragma: no cover
    from masterq.models import ObservabilityConfig

correlation_id: ContextVar[str | None] = cast(
    "ContextVar[str | None]",
    ContextVar("correlation_id", default=None),
)


class CorrelationFilter(logging.Filter):
    """Filter to add correlation ID to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Add correlation ID to log record."""
        record.correlation_id = correlation_id.get() or "no-correlation-id"
        return True


class StructuredFormatter(logging.Formatter):
    """Structured JSON formatter for logs."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON."""
        log_entry: dict[str, Any] = {
            "timestamp": time.time(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if hasattr(record, "correlation_id"):
            log_entry["correlation_id"] = record.correlation_id

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        context = getattr(record, "context", None)
        if context:
            log_entry["context"] = context

        return json.dumps(log_entry, default=str)


class FileFormatter(logging.Formatter):
    """Formatter for file output that strips Rich markup."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record, stripping Rich markup for file output."""
        formatted = super().format(record)
        try:
            return Text.from_markup(formatted).plain
        except Exception:
            # Not valid markup (e.g. a literal "[" in an address list)
            return formatted


def create_rich_handler(
    console: Console | None = None,
    level: int | str = logging.INFO,
    show_path: bool = False,
    rich_tracebacks: bool = True,
) -> logging.Handler:
    """Create a RichHandler writing to stderr.

    Log output stays on stderr so that command output written to stdout can
    be piped without interleaved log lines.
    """
    if console is None:
        console = Console(file=sys.stderr, markup=True)

    handler = RichHandler(
        console=console,
        level=level,
        show_path=show_path,
        rich_tracebacks=rich_tracebacks,
        markup=False,
    )
    handler.addFilter(CorrelationFilter())
    return handler


def setup_logging(config: ObservabilityConfig) -> None:
    """Set up logging configuration with Rich console output."""
    level = config.log_level.value

    logging_config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structured": {
                "()": StructuredFormatter,
            },
            "simple": {
                "()": FileFormatter,
                "format": "%(asctime)s %(levelname)s %(correlation_id)s %(name)s.%(funcName)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "filters": {
            "correlation": {
                "()": CorrelationFilter,
            },
        },
        "handlers": {},
        "loggers": {
            "masterq": {
                "level": level,
                "handlers": [],
                "propagate": False,
            },
        },
    }

    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logging_config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": level,
            "formatter": "structured" if config.structured_logging else "simple",
            "filters": ["correlation"],
            "filename": str(log_path),
            "maxBytes": 10 * 1024 * 1024,  # 10MB
            "backupCount": 5,
        }
        logging_config["loggers"]["masterq"]["handlers"].append("file")

    logging.config.dictConfig(logging_config)

    masterq_logger = logging.getLogger("masterq")
    masterq_logger.addHandler(create_rich_handler(level=level))

    if config.log_correlation_id:
        correlation_id.set(str(uuid.uuid4()))


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the masterq namespace."""
    if name == "masterq" or name.startswith("masterq."):
        return logging.getLogger(name)
    return logging.getLogger(f"masterq.{name}")


def set_correlation_id(corr_id: str | None = None) -> str:
    """Set correlation ID for the current context."""
    if corr_id is None:
        corr_id = str(uuid.uuid4())
    correlation_id.set(corr_id)
    return corr_id


def get_correlation_id() -> str | None:
    """Get the current correlation ID."""
    return correlation_id.get()


class LoggingContext:
    """Context manager logging the start, duration and outcome of an operation.

    Works with both ``with`` and ``async with`` so it can wrap coroutines
    without an extra helper.
    """

    def __init__(
        self,
        operation: str,
        log_level: int = logging.DEBUG,
        slow_threshold: float = 1.0,
        **kwargs: Any,
    ):
        """Initialize operation context manager.

        Args:
            operation: Name of the operation
            log_level: Level for the start/finish lines
            slow_threshold: Duration in seconds above which completion is logged at INFO
            **kwargs: Fields stored under ``context`` on every record

        """
        self.operation = operation
        self.kwargs = kwargs
        self.logger = get_logger(self.__class__.__module__)
        self.start_time: float | None = None
        self.log_level = log_level
        self.slow_threshold = slow_threshold

    def __enter__(self) -> LoggingContext:
        """Enter the context manager."""
        self.start_time = time.time()
        set_correlation_id()
        self.logger.log(
            self.log_level,
            "Starting %s",
            self.operation,
            extra={"context": self.kwargs},
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        """Exit the context manager."""
        duration = time.time() - self.start_time if self.start_time else 0.0

        if exc_type is None:
            level = self.log_level
            if duration >= self.slow_threshold:
                level = max(level, logging.INFO)
            self.logger.log(
                level,
                "Completed %s in %.3fs",
                self.operation,
                duration,
                extra={"context": self.kwargs},
            )
        else:
            self.logger.error(
                "Failed %s in %.3fs: %s",
                self.operation,
                duration,
                exc_val,
                extra={"context": self.kwargs},
            )

        return False

    async def __aenter__(self) -> LoggingContext:
        """Enter the context manager from a coroutine."""
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        """Exit the context manager from a coroutine."""
        return self.__exit__(exc_type, exc_val, exc_tb)
