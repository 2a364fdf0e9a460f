"""
Push-mode chunk delivery.

ChunkStreamListener sits on an AsyncEventSource and turns raw SSE events into
decoded chunks for one sink and a single terminal notification for another.
"""

from __future__ import annotations

import httpx

from ..callbacks import QwenCallback, invoke_callback
from ..exceptions import QwenAPIError, QwenError, QwenTransportError
from ..logging_utils import ContextualLogger
from ..models import ChatResponseChunk
from .event_source import AsyncEventSource
from .iterator import TRANSPORT_ERRORS
from .models import is_sentinel
from .parser import ChunkDecoder


class ChunkStreamListener:
    """
    Event source listener feeding chunk and completion callbacks.

    The completion sink fires exactly once per stream; events arriving after
    it has fired are dropped.
    """

    def __init__(
        self,
        chunk_callback: QwenCallback[ChatResponseChunk],
        completion_callback: QwenCallback[None],
        *,
        decoder: ChunkDecoder | None = None,
        logger: ContextualLogger | None = None,
    ):
        if chunk_callback is None:
            raise ValueError("chunk_callback cannot be None for asynchronous streaming.")
        if completion_callback is None:
            raise ValueError("completion_callback cannot be None for asynchronous streaming.")
        self.chunk_callback = chunk_callback
        self.completion_callback = completion_callback
        self.logger = logger if logger is not None else ContextualLogger()
        self.decoder = decoder if decoder is not None else ChunkDecoder(self.logger)
        self._completed = False

    @property
    def completed(self) -> bool:
        return self._completed

    def _mark_completed(self) -> bool:
        """Set the one-shot completion flag; False if it was already set."""
        if self._completed:
            return False
        self._completed = True
        return True

    async def on_open(self, source: AsyncEventSource, response: httpx.Response) -> None:
        self.logger.info("SSE connection opened", status_code=response.status_code)

    async def on_event(
        self,
        source: AsyncEventSource,
        event_id: str | None,
        event_type: str | None,
        data: str,
    ) -> None:
        if self._completed:
            self.logger.debug("Dropping SSE event after completion", event_id=event_id)
            return
        self.logger.debug("SSE event", event_id=event_id, event_type=event_type, data=data)
        if is_sentinel(data):
            # termination arrives through the transport's close
            return
        chunk = self.decoder.decode(data)
        if chunk is None:
            return
        await invoke_callback(self.chunk_callback.on_success, chunk, self.logger)

    async def on_closed(self, source: AsyncEventSource) -> None:
        if not self._mark_completed():
            return
        self.logger.info("SSE connection closed by server", **self.decoder.get_stats())
        await invoke_callback(self.completion_callback.on_success, None, self.logger)

    async def on_failure(
        self,
        source: AsyncEventSource,
        error: BaseException | None,
        response: httpx.Response | None,
    ) -> None:
        try:
            failure = await self._describe_failure(error, response)
        finally:
            if response is not None:
                await response.aclose()

        if not self._mark_completed():
            return
        await invoke_callback(self.completion_callback.on_failure, failure, self.logger)

    async def _describe_failure(
        self,
        error: BaseException | None,
        response: httpx.Response | None,
    ) -> QwenError:
        if isinstance(error, QwenError):
            self.logger.warning("SSE stream ended", error_type=type(error).__name__,
                                error_message=str(error))
            return error

        message = "SSE connection failed"
        if error is not None:
            message += f": {error}"

        if response is None:
            self.logger.error(
                "SSE network failure",
                error_type=type(error).__name__,
                error_message=str(error),
            )
            failure = QwenTransportError(
                message + (f" Cause: {error!r}" if error is not None else "")
            )
            failure.__cause__ = error
            return failure

        status_code = response.status_code
        message += f" (status code: {status_code})"
        body = ""
        try:
            await response.aread()
            body = response.text
        except TRANSPORT_ERRORS as e:
            self.logger.warning("Error reading error response body in SSE failure",
                                error_message=str(e))
        self.logger.error("SSE failure", status_code=status_code, has_body=bool(body))
        failure = QwenAPIError(message, status_code=status_code, detail=body)
        failure.__cause__ = error
        return failure
