"""
Pull-mode chunk streams.

ChunkStream and AsyncChunkStream expose decoded chunks as a forward-only,
single-pass iterator over one streaming response. Each owns the response it
was handed and releases it exactly once: at the sentinel, at end of input,
on a transport error, or when the consumer closes it early.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterable, Awaitable, Callable, Iterable
from typing import Any

import httpx

from ..exceptions import QwenTransportError
from ..logging_utils import ContextualLogger
from ..models import ChatResponseChunk
from .models import SSEFrame, StreamOutcome, StreamState
from .parser import ChunkDecoder, SSEFrameDecoder

TRANSPORT_ERRORS = (httpx.TransportError, httpx.StreamError, OSError)


class _ChunkCursor(ABC):
    """State shared by the sync and async streams: one buffered chunk slot."""

    def __init__(
        self,
        decoder: ChunkDecoder | None,
        logger: ContextualLogger | None,
    ):
        self.logger = logger if logger is not None else ContextualLogger()
        self.frames = SSEFrameDecoder(self.logger)
        self.decoder = decoder if decoder is not None else ChunkDecoder(self.logger)
        self.state = StreamState.READING
        self.outcome: StreamOutcome | None = None
        self._next_chunk: ChatResponseChunk | None = None
        self._failure: BaseException | None = None
        self._released = False

    @property
    def stats(self) -> dict[str, int]:
        return self.decoder.get_stats()

    def _accept(self, line: str) -> bool:
        """
        Feed one line. Returns True once has_next() has an answer: either a
        chunk was buffered or the sentinel ended the stream.
        """
        frame: SSEFrame | None = self.frames.feed(line)
        if frame is None:
            return False
        if frame.is_sentinel:
            self.logger.debug("SSE sentinel received")
            self._finish(StreamOutcome.COMPLETED)
            return True
        chunk = self.decoder.decode(frame.data)
        if chunk is None:
            return False
        self._next_chunk = chunk
        self.state = StreamState.CHUNK_READY
        return True

    def _record_failure(self, error: BaseException) -> None:
        self.logger.error(
            "Transport error reading SSE stream",
            error_type=type(error).__name__,
            error_message=str(error),
        )
        self._failure = error
        self._finish(StreamOutcome.FAILED)

    def _take(self) -> ChatResponseChunk:
        chunk = self._next_chunk
        self._next_chunk = None
        if chunk is None:
            raise RuntimeError("No chunk buffered; call has_next() first")
        self.state = StreamState.READING
        return chunk

    def _pop_failure(self) -> QwenTransportError | None:
        if self._failure is None:
            return None
        cause, self._failure = self._failure, None
        error = QwenTransportError(f"Transport error while reading SSE stream: {cause}")
        error.__cause__ = cause
        return error

    def _finish(self, outcome: StreamOutcome) -> None:
        if self.state is StreamState.FINISHED:
            return
        self.state = StreamState.FINISHED
        self.outcome = outcome
        self._next_chunk = None
        self.logger.info("SSE stream finished", outcome=outcome.value, **self.stats)
        self._release()

    @abstractmethod
    def _release(self) -> None:
        """Release the underlying response."""


class ChunkStream(_ChunkCursor):
    """
    Blocking iterator of chunks read from a live SSE response.

    Use as a context manager so early abandonment still releases the
    connection::

        with client.chat.create_stream(request) as stream:
            for chunk in stream:
                ...
    """

    def __init__(
        self,
        lines: Iterable[str],
        close: Callable[[], Any],
        *,
        decoder: ChunkDecoder | None = None,
        logger: ContextualLogger | None = None,
    ):
        super().__init__(decoder, logger)
        self._lines = iter(lines)
        self._close = close

    def has_next(self) -> bool:
        """Look ahead for another chunk, reading from the stream as needed."""
        if self.state is StreamState.FINISHED:
            return False
        if self.state is StreamState.CHUNK_READY:
            return True
        try:
            for line in self._lines:
                if self._accept(line):
                    return self.state is StreamState.CHUNK_READY
        except TRANSPORT_ERRORS as e:
            self._record_failure(e)
            return False
        self._finish(StreamOutcome.COMPLETED)
        return False

    def __iter__(self) -> ChunkStream:
        return self

    def __next__(self) -> ChatResponseChunk:
        if not self.has_next():
            error = self._pop_failure()
            if error is not None:
                raise error
            raise StopIteration
        return self._take()

    def close(self) -> None:
        """Stop reading and release the response; safe to call repeatedly."""
        if self.state is not StreamState.FINISHED:
            self._finish(StreamOutcome.CANCELLED)

    def __enter__(self) -> ChunkStream:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _release(self) -> None:
        if self._released:
            return
        self._released = True
        try:
            self._close()
        except TRANSPORT_ERRORS as e:
            self.logger.warning("Error closing SSE stream", error_message=str(e))


class AsyncChunkStream(_ChunkCursor):
    """Async counterpart of ChunkStream for ``async for`` consumption."""

    def __init__(
        self,
        lines: AsyncIterable[str],
        aclose: Callable[[], Awaitable[Any]],
        *,
        decoder: ChunkDecoder | None = None,
        logger: ContextualLogger | None = None,
    ):
        super().__init__(decoder, logger)
        self._lines = aiter(lines)
        self._aclose = aclose
        self._release_pending = False

    async def has_next(self) -> bool:
        """Look ahead for another chunk, awaiting stream reads as needed."""
        if self.state is StreamState.FINISHED:
            await self._release_async()
            return False
        if self.state is StreamState.CHUNK_READY:
            return True
        try:
            async for line in self._lines:
                if self._accept(line):
                    break
            else:
                self._finish(StreamOutcome.COMPLETED)
        except TRANSPORT_ERRORS as e:
            self._record_failure(e)
        await self._release_async()
        return self.state is StreamState.CHUNK_READY

    def __aiter__(self) -> AsyncChunkStream:
        return self

    async def __anext__(self) -> ChatResponseChunk:
        if not await self.has_next():
            error = self._pop_failure()
            if error is not None:
                raise error
            raise StopAsyncIteration
        return self._take()

    async def aclose(self) -> None:
        """Stop reading and release the response; safe to call repeatedly."""
        if self.state is not StreamState.FINISHED:
            self._finish(StreamOutcome.CANCELLED)
        await self._release_async()

    async def __aenter__(self) -> AsyncChunkStream:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    def _release(self) -> None:
        # closing a response is a coroutine here; _release_async performs it
        self._release_pending = True

    async def _release_async(self) -> None:
        if not self._release_pending or self._released:
            return
        self._released = True
        try:
            await self._aclose()
        except TRANSPORT_ERRORS as e:
            self.logger.warning("Error closing SSE stream", error_message=str(e))
