"""
Structured logging configuration.

This module provides logging with support for:
- Correlation ID tracking for HTTP requests
- Contextual fields (viewer id, endpoint, ...)
- Human-readable or JSON console output
- JSON error log file
"""

import json
import logging
import sys
from contextvars import ContextVar
from typing import Any

from imagecast.constants import MAX_LOG_RECORD_SIZE_BYTES
from imagecast.settings import app_settings

# Context variables for storing request-specific logging context
log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})

_RECORD_ATTRIBUTES = frozenset(
    [
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "exc_info",
        "exc_text",
        "stack_info",
        "taskName",
        "correlation_id",
    ]
)


def get_correlation_id() -> str:
    """
    Get correlation ID from context, safe wrapper for logging.

    Returns:
        Correlation ID or empty string if not available.
    """
    try:
        from imagecast.middlewares.correlation_id import (
            get_correlation_id as _get_cid,
        )

        return _get_cid()
    except (ImportError, AttributeError, RuntimeError):
        # ImportError: Module not available
        # AttributeError: Function not found
        # RuntimeError: Correlation ID context not initialized
        return ""


def set_log_context(**kwargs: Any) -> None:
    """
    Set contextual fields for structured logging.

    Args:
        **kwargs: Key-value pairs to add to log context.

    Example:
        >>> set_log_context(viewer_id="3f2a", endpoint="/ws")
        >>> logger.info("Viewer joined")  # Will include viewer_id and endpoint
    """
    current = dict(log_context.get())
    current.update(kwargs)
    log_context.set(current)


def get_log_context() -> dict[str, Any]:
    """
    Get current log context.

    Returns:
        Dictionary of contextual log fields.
    """
    return log_context.get()


def clear_log_context() -> None:
    """Clear the log context (useful at end of request)."""
    log_context.set({})


class StructuredJSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    This formatter outputs logs in JSON format with:
    - Standard fields: timestamp, level, logger, message
    - Correlation ID from request context
    - Additional contextual fields from log_context
    - Exception information when present
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record as JSON.

        Args:
            record: The log record to format.

        Returns:
            JSON string with structured log data.
        """
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        correlation_id = get_correlation_id()
        if correlation_id:
            log_data["request_id"] = correlation_id

        context = get_log_context()
        if context:
            log_data.update(context)

        log_data["environment"] = app_settings.ENV.value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Extra fields passed via logger.x(..., extra={...})
        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRIBUTES:
                continue
            try:
                json.dumps(value)
                log_data[key] = value
            except (TypeError, ValueError):
                log_data[key] = str(value)

        json_str = json.dumps(log_data)
        if len(json_str) > MAX_LOG_RECORD_SIZE_BYTES:
            message = log_data.get("message", "")
            if isinstance(message, str):
                log_data["message"] = (
                    message[: MAX_LOG_RECORD_SIZE_BYTES - 1000]
                    + "... [TRUNCATED]"
                )
            json_str = json.dumps(log_data)

        return json_str


class HumanReadableFormatter(logging.Formatter):
    """
    Human-readable formatter for console output (non-JSON).

    Uses different format strings based on log level for better readability
    during development.
    """

    INFO_FMT = "%(asctime)s - [%(correlation_id)s] %(levelname)s: %(message)s"
    ERROR_FMT = "%(asctime)s - [%(correlation_id)s] %(levelname)s: %(module)s.%(funcName)s:%(lineno)d - %(message)s"

    def __init__(self, *args: Any, **kwargs: Any):
        """Initialize the formatter."""
        super().__init__(*args, **kwargs)
        self._formatters = {
            logging.INFO: logging.Formatter(
                self.INFO_FMT, datefmt="%Y-%m-%d %H:%M:%S"
            ),
            logging.WARNING: logging.Formatter(
                self.ERROR_FMT, datefmt="%Y-%m-%d %H:%M:%S"
            ),
            logging.ERROR: logging.Formatter(
                self.ERROR_FMT, datefmt="%Y-%m-%d %H:%M:%S"
            ),
            logging.DEBUG: logging.Formatter(
                self.ERROR_FMT, datefmt="%Y-%m-%d %H:%M:%S"
            ),
        }

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record with correlation ID.

        Args:
            record: The log record to format.

        Returns:
            Formatted log string.
        """
        record.correlation_id = get_correlation_id() or "-"

        formatter = self._formatters.get(
            record.levelno, self._formatters[logging.INFO]
        )
        return formatter.format(record)


def setup_logging() -> logging.Logger:
    """
    Configure logging for the relay.

    This function sets up:
    - Console handler, human-readable or JSON depending on LOG_CONSOLE_FORMAT
    - File handler for errors (JSON format)

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger()
    logger.setLevel(getattr(logging, app_settings.LOG_LEVEL.upper()))

    # Clear existing handlers to avoid duplicates
    logger.handlers.clear()

    # 'json' for log shippers scraping stdout, 'human' for development
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG)
    if app_settings.LOG_CONSOLE_FORMAT.lower() == "human":
        console_handler.setFormatter(HumanReadableFormatter())
    else:
        console_handler.setFormatter(StructuredJSONFormatter())
    logger.addHandler(console_handler)

    try:
        file_handler = logging.FileHandler(app_settings.LOG_FILE_PATH)
        file_handler.setLevel(logging.ERROR)
        file_handler.setFormatter(StructuredJSONFormatter())
        logger.addHandler(file_handler)
    except (OSError, PermissionError) as e:
        # OSError: File system errors (path doesn't exist, disk full)
        # PermissionError: No write permission for log directory
        logger.warning(f"Could not create file handler: {e}")

    # Disable logging during pytest runs
    if sys.argv[0].split("/")[-1] in ["pytest"]:
        logging.disable(logging.ERROR)

    return logger


# Create default logger instance
logger = setup_logging()
