"""
Logging utilities for the GCP bucket helper.

Provides structured logging with entry/exit decorators, JSON formatting,
correlation IDs, and consistent formatting across the upload pipeline.

Features:
    - Structured JSON logging for production environments
    - Correlation ID tracking across concurrent uploads
    - Entry/exit decorators with timing (sync and async functions)
    - Colorized console output for development

Example usage:
    >>> from gcp_bucket.utils.logging import get_logger, log_function_call
    >>>
    >>> logger = get_logger(__name__)
    >>> set_correlation_id("upsert-12345")
    >>>
    >>> @log_function_call
    >>> async def upsert(file) -> list:
    >>>     logger.info("Upserting", extra={"file": file.file_name})
    >>>     return []
"""

import functools
import inspect
import json
import logging
import os
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, TypeVar, cast

import coloredlogs

F = TypeVar("F", bound=Callable[..., Any])

# Context variable for correlation ID (safe across asyncio tasks)
_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Reprs longer than this are cut in entry/exit logs (byte payloads)
MAX_REPR_LENGTH = 200

_STANDARD_RECORD_FIELDS = frozenset(
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
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
        "getMessage",
    ]
)


# ============================================================================
# Correlation ID Management
# ============================================================================

def get_correlation_id() -> str:
    """
    Get current correlation ID or generate new one.

    Returns:
        Current correlation ID (generates UUID if not set)
    """
    corr_id = _correlation_id.get()
    if corr_id is None:
        corr_id = str(uuid.uuid4())
        _correlation_id.set(corr_id)
    return corr_id


def set_correlation_id(corr_id: str) -> None:
    """
    Set correlation ID for current context.

    Args:
        corr_id: Correlation ID to set
    """
    _correlation_id.set(corr_id)


def clear_correlation_id() -> None:
    """Clear correlation ID for current context."""
    _correlation_id.set(None)


def _json_format_enabled() -> bool:
    return os.getenv("LOG_FORMAT", "text").lower() == "json"


def _short_repr(value: Any) -> str:
    text = repr(value)
    if len(text) > MAX_REPR_LENGTH:
        return f"{text[:MAX_REPR_LENGTH]}...<{len(text)} chars>"
    return text


# ============================================================================
# JSON Formatter
# ============================================================================

class JSONFormatter(logging.Formatter):
    """
    JSON log formatter for structured logging.

    Example output:
        {
            "timestamp": "2026-01-04T10:30:15.123456Z",
            "level": "INFO",
            "logger": "gcp_bucket.uploader.uploader",
            "message": "Upload finished: avatars/cat.jpg",
            "correlation_id": "upsert-12345",
            "extra": {"file_path": "avatars/cat.jpg", "total_bytes": 2048}
        }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": get_correlation_id(),
            "source": {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            },
        }

        extra_fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _STANDARD_RECORD_FIELDS
        }
        if extra_fields:
            log_data["extra"] = extra_fields

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        log_data["environment"] = {
            "hostname": os.getenv("HOSTNAME", "unknown"),
            "pod_name": os.getenv("POD_NAME", ""),
        }

        return json.dumps(log_data, default=str)


def setup_logging(level: str = "INFO", enable_colors: bool = True) -> None:
    """
    Configure global logging settings for the application.

    Sets up structured JSON logging when LOG_FORMAT=json, colorized text
    otherwise (or plain text when colors are disabled).

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        enable_colors: Whether to enable colorized console output

    Example:
        >>> os.environ["LOG_FORMAT"] = "json"
        >>> setup_logging(level="INFO")
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()

    if _json_format_enabled():
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)
        console_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(console_handler)
    elif enable_colors:
        coloredlogs.install(
            level=log_level,
            fmt=LOG_FORMAT,
            datefmt=LOG_DATE_FORMAT,
            logger=root_logger,
        )
    else:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        root_logger.addHandler(console_handler)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the specified name.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)


def log_function_call(func: F) -> F:
    """
    Decorator that logs function entry and exit with parameters and return values.

    Works on plain functions and on coroutine functions. Logs entry with
    argument reprs, exit with return value and duration, and errors with
    full traceback before re-raising. Long reprs are truncated.

    Args:
        func: Function to be decorated

    Returns:
        Wrapped function with logging

    Example:
        >>> @log_function_call
        >>> async def delete_file(path: str) -> None:
        >>>     ...
        >>>
        >>> # 2026-01-04 10:30:15 - module - INFO - ENTER delete_file(path='a/b.png')
        >>> # 2026-01-04 10:30:16 - module - INFO - EXIT delete_file -> None (0.12s)
    """
    logger = get_logger(func.__module__)
    signature = inspect.signature(func)

    def _describe_args(args: Any, kwargs: Any) -> str:
        try:
            bound = signature.bind_partial(*args, **kwargs)
        except TypeError:
            return ", ".join([_short_repr(a) for a in args] + [f"{k}={_short_repr(v)}" for k, v in kwargs.items()])
        return ", ".join(
            f"{name}={_short_repr(value)}"
            for name, value in bound.arguments.items()
            if name != "self"
        )

    def _log_entry(args: Any, kwargs: Any) -> str:
        correlation_id = get_correlation_id()
        all_args = _describe_args(args, kwargs)
        logger.info(
            f"ENTER {func.__name__}({all_args})",
            extra={
                "function": func.__name__,
                "arguments": all_args,
                "correlation_id": correlation_id,
                "event": "function_entry",
            },
        )
        return correlation_id

    def _log_exit(result: Any, start_time: datetime, correlation_id: str) -> None:
        execution_time = (datetime.now() - start_time).total_seconds()
        result_repr = _short_repr(result)
        logger.info(
            f"EXIT {func.__name__} -> {result_repr} ({execution_time:.2f}s)",
            extra={
                "function": func.__name__,
                "duration_seconds": execution_time,
                "return_value": result_repr,
                "correlation_id": correlation_id,
                "event": "function_exit",
                "status": "success",
            },
        )

    def _log_error(error: Exception, start_time: datetime, correlation_id: str) -> None:
        execution_time = (datetime.now() - start_time).total_seconds()
        logger.error(
            f"ERROR {func.__name__} raised {type(error).__name__}: {error}",
            extra={
                "function": func.__name__,
                "duration_seconds": execution_time,
                "correlation_id": correlation_id,
                "event": "function_error",
                "status": "error",
                "error_type": type(error).__name__,
                "error_message": str(error),
            },
            exc_info=True,
        )

    if inspect.iscoroutinefunction(func):

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            correlation_id = _log_entry(args, kwargs)
            start_time = datetime.now()
            try:
                result = await func(*args, **kwargs)
            except Exception as error:
                _log_error(error, start_time, correlation_id)
                raise
            _log_exit(result, start_time, correlation_id)
            return result

        return cast(F, async_wrapper)

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        correlation_id = _log_entry(args, kwargs)
        start_time = datetime.now()
        try:
            result = func(*args, **kwargs)
        except Exception as error:
            _log_error(error, start_time, correlation_id)
            raise
        _log_exit(result, start_time, correlation_id)
        return result

    return cast(F, wrapper)
