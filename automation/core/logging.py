"""Logging configuration for the automation engine."""

import logging
import sys
import threading
import json
import traceback
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Optional, Dict, Any, List
from pathlib import Path

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(threadName)s] - %(message)s"

# Third-party loggers that are too chatty at INFO.
LIBRARY_LEVELS = {
    "uvicorn": logging.INFO,
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "sqlalchemy.pool": logging.WARNING,
    "urllib3": logging.WARNING,
    "openai": logging.WARNING,
    "httpx": logging.WARNING,
}


class StructuredFormatter(logging.Formatter):
    """Formatter emitting one JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info)
            }

        log_entry.update(getattr(record, "extra_fields", {}))
        return json.dumps(log_entry, default=str)


class ExecutionContextFilter(logging.Filter):
    """Filter attaching the current execution context (workflow id, request id) to records.

    Context is per thread, so concurrent executions do not see each other's values.
    """

    def __init__(self):
        super().__init__()
        self._local = threading.local()

    @property
    def _context(self) -> Dict[str, Any]:
        if not hasattr(self._local, "context"):
            self._local.context = {}
        return self._local.context

    def set_context(self, **kwargs):
        self._context.update(kwargs)

    def clear_context(self):
        self._context.clear()

    def filter(self, record: logging.LogRecord) -> bool:
        record.extra_fields = {**self._context, **getattr(record, "extra_fields", {})}
        return True


_context_filter = ExecutionContextFilter()


def _build_handlers(formatter: logging.Formatter, log_file: Optional[str],
                    max_size: int, backup_count: int) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(log_file, maxBytes=max_size, backupCount=backup_count))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(_context_filter)
    return handlers


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    structured: bool = False,
    max_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5
) -> logging.Logger:
    """
    Configure process logging for the automation engine.

    Replaces any handlers already on the root logger, so calling it twice
    does not duplicate output.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path; rotated at ``max_size`` bytes
        log_format: Format string for plain-text output
        structured: Emit JSON lines instead of plain text
        max_size: Maximum log file size in bytes before rotation
        backup_count: Number of rotated files to keep

    Returns:
        Root logger instance
    """
    if structured:
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(fmt=log_format or DEFAULT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    numeric_level = getattr(logging, level.upper())
    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in _build_handlers(formatter, log_file, max_size, backup_count):
        root_logger.addHandler(handler)

    for name, library_level in LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(library_level)
    logging.getLogger("automation").setLevel(numeric_level)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for the given name."""
    return logging.getLogger(name)


def set_logging_context(**kwargs):
    """Attach fields to every record logged from the current thread."""
    _context_filter.set_context(**kwargs)


def clear_logging_context():
    _context_filter.clear_context()


def log_with_context(logger: logging.Logger, level: int, message: str, **context):
    """Log a message with additional structured fields."""
    logger.log(level, message, extra={"extra_fields": context})


class RetryLogger:
    """Reports the attempts of one retried operation."""

    def __init__(self, operation: str):
        self.operation = operation
        self.logger = get_logger(f"automation.retry.{operation}")

    def attempt_failed(self, error: Exception, attempt: int, max_attempts: int):
        log_with_context(
            self.logger, logging.WARNING,
            f"Attempt {attempt}/{max_attempts} of {self.operation} failed: {error}",
            operation=self.operation,
            error_type=type(error).__name__,
            attempt=attempt,
            max_attempts=max_attempts
        )

    def recovered(self, attempts_used: int):
        log_with_context(
            self.logger, logging.INFO,
            f"{self.operation} succeeded after {attempts_used} attempts",
            operation=self.operation,
            attempts_used=attempts_used,
            retry_status="recovered"
        )

    def gave_up(self, error: Exception, attempts_used: int):
        log_with_context(
            self.logger, logging.ERROR,
            f"{self.operation} failed after {attempts_used} attempts: {error}",
            operation=self.operation,
            error_type=type(error).__name__,
            attempts_used=attempts_used,
            retry_status="exhausted"
        )
