"""
Structured logging and error classification utilities for the Qwen SDK.

Loggers are built per client and handed to every component explicitly; nothing
here mutates structlog's global configuration.

Features:
- Leveled structlog loggers with console or JSON-file rendering
- Context-carrying logger wrapper shared across a client's components
- Operation logging decorator for sync and async methods
- Exception classification for log records
"""

from __future__ import annotations

import functools
import inspect
import logging
import sys
import time
from collections.abc import Callable
from typing import Any, ParamSpec, TextIO, TypeVar

import httpx
import structlog
from pydantic import ValidationError

from .exceptions import QwenAPIError, QwenResponseFormatError, QwenTransportError

P = ParamSpec("P")
T = TypeVar("T")

DEFAULT_LEVEL = "INFO"


def parse_level(level: str | None) -> tuple[int, bool]:
    """
    Resolve a level name such as "DEBUG" or "warning".

    Returns:
        Tuple of (numeric_level, recognised). Unrecognised names resolve to INFO.
    """
    if not level or not level.strip():
        return logging.INFO, True
    value = logging.getLevelName(level.strip().upper())
    if isinstance(value, int):
        return value, True
    return logging.INFO, False


def build_logger(
    level: str | None = DEFAULT_LEVEL,
    log_stream: TextIO | None = None,
    **context: Any,
) -> Any:
    """
    Build a standalone structlog logger.

    Args:
        level: Minimum level name; unknown names fall back to INFO with a warning
        log_stream: Open text stream receiving JSON lines instead of stderr.
            The caller owns it; events logged after it is closed are dropped.
        context: Key/value pairs bound to every event

    Returns:
        A filtering bound logger
    """
    numeric_level, recognised = parse_level(level)

    processors: list[Any] = [
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if log_stream is not None:
        def drop_when_closed(_logger: Any, _method: str, event_dict: Any) -> Any:
            if log_stream.closed:
                raise structlog.DropEvent
            return event_dict

        processors.insert(0, drop_when_closed)
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
        sink = structlog.WriteLogger(log_stream)
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
        sink = structlog.PrintLogger(file=sys.stderr)

    logger = structlog.wrap_logger(
        sink,
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        cache_logger_on_first_use=False,
    ).bind(**context)

    if not recognised:
        logger.warning(
            "Invalid logging level, defaulting to INFO", requested_level=level
        )
    return logger


def classify_error(error: BaseException) -> str:
    """Map an exception onto a log category."""
    if isinstance(error, QwenAPIError):
        return "api_error"
    if isinstance(error, httpx.TimeoutException | TimeoutError):
        return "timeout_error"
    if isinstance(error, QwenTransportError | httpx.TransportError | OSError):
        return "transport_error"
    if isinstance(error, QwenResponseFormatError | ValidationError):
        return "parse_error"
    if isinstance(error, ValueError | TypeError):
        return "parameter_error"
    return "unknown_error"


class ContextualLogger:
    """Logger that maintains context across related operations."""

    def __init__(
        self,
        base_context: dict[str, Any] | None = None,
        logger: Any | None = None,
    ):
        self.base_context = base_context or {}
        self._root = logger if logger is not None else build_logger()
        self._logger = self._root.bind(**self.base_context)

    def bind(self, **context: Any) -> ContextualLogger:
        """Create a new logger with additional context."""
        merged_context = {**self.base_context, **context}
        return ContextualLogger(merged_context, logger=self._root)

    def debug(self, message: str, **context: Any) -> None:
        self._logger.debug(message, **context)

    def info(self, message: str, **context: Any) -> None:
        self._logger.info(message, **context)

    def warning(self, message: str, **context: Any) -> None:
        self._logger.warning(message, **context)

    def error(self, message: str, **context: Any) -> None:
        self._logger.error(message, **context)

    def exception(self, message: str, **context: Any) -> None:
        """Log at error level with the active exception attached."""
        self._logger.exception(message, **context)


def _resolve_logger(args: tuple[Any, ...]) -> ContextualLogger:
    owner_logger = getattr(args[0], "logger", None) if args else None
    if isinstance(owner_logger, ContextualLogger):
        return owner_logger
    return ContextualLogger()


def log_operation(
    operation: str,
    *,
    log_args: bool = False,
    log_timing: bool = True,
    context: dict[str, Any] | None = None,
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """
    Decorator for logging sync or async methods with structured context.

    The logger is taken from the bound instance's ``logger`` attribute.

    Args:
        operation: Description of the operation being performed
        log_args: Whether to log function arguments
        log_timing: Whether to log execution timing
        context: Additional context to include in logs

    Returns:
        Decorated function with logging
    """
    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        def start(args: tuple[Any, ...], kwargs: dict[str, Any]) -> ContextualLogger:
            operation_logger = _resolve_logger(args).bind(
                operation=operation,
                function=func.__name__,
                **(context or {}),
            )
            log_data: dict[str, Any] = {}
            if log_args:
                log_data["args"] = args[1:]
                log_data["kwargs"] = kwargs
            operation_logger.debug("Operation started", **log_data)
            return operation_logger

        def elapsed(start_time: float | None) -> dict[str, Any]:
            if not log_timing or start_time is None:
                return {}
            return {"duration_ms": round((time.perf_counter() - start_time) * 1000, 2)}

        def failed(operation_logger: ContextualLogger, error: Exception,
                   start_time: float | None) -> None:
            operation_logger.error(
                "Operation failed",
                error_type=type(error).__name__,
                error_category=classify_error(error),
                error_message=str(error),
                **elapsed(start_time),
            )

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
                operation_logger = start(args, kwargs)
                start_time = time.perf_counter() if log_timing else None
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    failed(operation_logger, e, start_time)
                    raise
                operation_logger.info(
                    "Operation completed successfully", **elapsed(start_time)
                )
                return result

            return async_wrapper  # type: ignore[return-value]

        @functools.wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            operation_logger = start(args, kwargs)
            start_time = time.perf_counter() if log_timing else None
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                failed(operation_logger, e, start_time)
                raise
            operation_logger.info(
                "Operation completed successfully", **elapsed(start_time)
            )
            return result

        return wrapper
    return decorator
