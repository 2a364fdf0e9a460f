"""
Push-style SSE transport over ``httpx.AsyncClient``.

A producer task reads the response and places raw events in a bounded queue;
a single consumer task hands them to the listener in arrival order. Exactly
one terminal event (closed or failure) reaches the listener per source.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Protocol

import httpx

from ..exceptions import StreamCancelledError
from ..logging_utils import ContextualLogger
from .iterator import TRANSPORT_ERRORS
from .models import SSEEventKind, SSEFrame
from .parser import SSEFrameDecoder

DEFAULT_QUEUE_SIZE = 64
TERMINAL_KINDS = (SSEEventKind.CLOSED, SSEEventKind.FAILURE)
_WAKEUP = (SSEEventKind.EVENT, None)


class EventSourceListener(Protocol):
    """Receives raw SSE events from an AsyncEventSource."""

    async def on_open(self, source: AsyncEventSource, response: httpx.Response) -> None: ...

    async def on_event(
        self,
        source: AsyncEventSource,
        event_id: str | None,
        event_type: str | None,
        data: str,
    ) -> None: ...

    async def on_closed(self, source: AsyncEventSource) -> None: ...

    async def on_failure(
        self,
        source: AsyncEventSource,
        error: BaseException | None,
        response: httpx.Response | None,
    ) -> None: ...


class AsyncEventSource:
    """One streaming request delivered to a listener."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        request: httpx.Request,
        listener: EventSourceListener,
        *,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        logger: ContextualLogger | None = None,
    ):
        if queue_size < 1:
            raise ValueError("queue_size must be at least 1")
        self.client = client
        self.request = request
        self.listener = listener
        self.logger = logger if logger is not None else ContextualLogger()
        self._queue: asyncio.Queue[tuple[SSEEventKind, Any]] = asyncio.Queue(
            maxsize=queue_size
        )
        self._producer: asyncio.Task[None] | None = None
        self._consumer: asyncio.Task[None] | None = None
        self._terminal_sent = False
        self._cancelled = False

    def start(self) -> AsyncEventSource:
        """Schedule the producer and consumer tasks on the running loop."""
        if self._producer is not None:
            raise RuntimeError("Event source already started")
        self._consumer = asyncio.create_task(self._dispatch())
        self._producer = asyncio.create_task(self._read())
        return self

    @property
    def done(self) -> bool:
        return self._consumer is not None and self._consumer.done()

    async def wait(self) -> None:
        """Wait until the listener has received its terminal event."""
        if self._consumer is None:
            raise RuntimeError("Event source not started")
        await self._consumer

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def cancel(self) -> None:
        """
        Stop reading; the listener receives a StreamCancelledError failure
        unless it has already received its terminal event.

        Events still queued are discarded. May be called from a listener
        callback, in which case it returns without waiting.
        """
        if self._producer is None:
            raise RuntimeError("Event source not started")
        if not self.done:
            self._request_stop()
            self._producer.cancel()
        if asyncio.current_task() is self._consumer:
            return
        await asyncio.wait({self._producer})
        await self.wait()

    async def __aenter__(self) -> AsyncEventSource:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.cancel()

    def _request_stop(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        # wakes a consumer blocked on an empty queue; a full queue never blocks it
        with contextlib.suppress(asyncio.QueueFull):
            self._queue.put_nowait(_WAKEUP)

    async def _emit(self, kind: SSEEventKind, payload: Any) -> None:
        if self._terminal_sent:
            return
        if kind in TERMINAL_KINDS:
            self._terminal_sent = True
        await self._queue.put((kind, payload))

    async def _read(self) -> None:
        response: httpx.Response | None = None
        try:
            response = await self.client.send(self.request, stream=True)
            if not response.is_success:
                try:
                    await response.aread()
                except TRANSPORT_ERRORS as e:
                    await self._emit(SSEEventKind.FAILURE, (e, response))
                    return
                await self._emit(SSEEventKind.FAILURE, (None, response))
                return

            await self._emit(SSEEventKind.OPEN, response)
            frames = SSEFrameDecoder(self.logger)
            async for line in response.aiter_lines():
                frame = frames.feed(line)
                if frame is not None:
                    await self._emit(SSEEventKind.EVENT, frame)
            await self._emit(SSEEventKind.CLOSED, None)

        except asyncio.CancelledError:
            self._request_stop()
            raise
        except Exception as e:
            await self._emit(SSEEventKind.FAILURE, (e, None))
        finally:
            if response is not None:
                await response.aclose()

    async def _dispatch(self) -> None:
        while not self._cancelled:
            kind, payload = await self._queue.get()
            if self._cancelled:
                break
            await self._deliver_logged(kind, payload)
            if kind in TERMINAL_KINDS:
                return
        await self._deliver_logged(SSEEventKind.FAILURE, (StreamCancelledError(), None))

    async def _deliver_logged(self, kind: SSEEventKind, payload: Any) -> None:
        try:
            await self._deliver(kind, payload)
        except Exception:
            self.logger.exception("SSE listener raised", event_kind=kind.value)

    async def _deliver(self, kind: SSEEventKind, payload: Any) -> None:
        if kind is SSEEventKind.OPEN:
            await self.listener.on_open(self, payload)
        elif kind is SSEEventKind.EVENT:
            frame: SSEFrame = payload
            await self.listener.on_event(self, frame.event_id, frame.event_type, frame.data)
        elif kind is SSEEventKind.CLOSED:
            await self.listener.on_closed(self)
        else:
            error, response = payload
            await self.listener.on_failure(self, error, response)
