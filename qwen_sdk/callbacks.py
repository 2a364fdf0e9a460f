"""Callback sinks used by the asynchronous operations."""

from __future__ import annotations

import inspect
from collections.abc import Callable
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from .exceptions import QwenError
from .logging_utils import ContextualLogger

T = TypeVar("T")
T_contra = TypeVar("T_contra", contravariant=True)


@runtime_checkable
class QwenCallback(Protocol[T_contra]):
    """Receives a result or a failure. Either method may be a coroutine."""

    def on_success(self, response: T_contra) -> Any: ...

    def on_failure(self, error: QwenError) -> Any: ...


class FunctionCallback(Generic[T]):
    """Adapts plain functions to the QwenCallback protocol."""

    def __init__(
        self,
        on_success: Callable[[T], Any] | None = None,
        on_failure: Callable[[QwenError], Any] | None = None,
    ):
        self._on_success = on_success
        self._on_failure = on_failure

    def on_success(self, response: T) -> Any:
        if self._on_success is not None:
            return self._on_success(response)
        return None

    def on_failure(self, error: QwenError) -> Any:
        if self._on_failure is not None:
            return self._on_failure(error)
        return None


async def invoke_callback(
    method: Callable[[Any], Any],
    argument: Any,
    logger: ContextualLogger,
) -> None:
    """Call a sink method, awaiting it when it returns an awaitable."""
    try:
        result = method(argument)
        if inspect.isawaitable(result):
            await result
    except Exception:
        logger.exception(
            "Callback raised an exception",
            callback=getattr(method, "__qualname__", repr(method)),
        )
