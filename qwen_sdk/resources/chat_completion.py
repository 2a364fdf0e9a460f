"""
Chat completion operations.

Blocking and async single-shot completions, pull-mode streams (sync and
async) and push-mode streams delivered through callbacks.
"""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from ..callbacks import QwenCallback, invoke_callback
from ..exceptions import (
    QwenAPIError,
    QwenEmptyResponseError,
    QwenError,
    QwenResponseFormatError,
    QwenTransportError,
)
from ..logging_utils import log_operation
from ..models import ChatRequest, ChatResponse, ChatResponseChunk
from ..request_builder import build_payload
from ..streaming.event_source import AsyncEventSource
from ..streaming.iterator import TRANSPORT_ERRORS, AsyncChunkStream, ChunkStream
from ..streaming.listener import ChunkStreamListener

if TYPE_CHECKING:                                        # pragma: no cover
    from ..client import QwenClient

COMPLETIONS_PATH = "/v1/chat/completions"
ACCEPT_JSON = "application/json"
ACCEPT_EVENT_STREAM = "text/event-stream"


class ChatCompletion:
    """Chat completion resource bound to one QwenClient."""

    def __init__(self, client: QwenClient):
        if client is None:
            raise ValueError("QwenClient cannot be None.")
        self.client = client
        self.logger = client.logger.bind(resource="chat_completion")
        self.completions_url = client.base_url + COMPLETIONS_PATH

    # ------------------------------------------------------------------ #
    # Request preparation                                                #
    # ------------------------------------------------------------------ #

    def _encode(self, request: ChatRequest, *, stream: bool) -> bytes:
        if request is None:
            raise ValueError("ChatRequest cannot be None.")
        request.stream = stream
        body = json.dumps(build_payload(request, self.client.default_model))
        self.logger.debug("Request JSON", body=body)
        return body.encode("utf-8")

    def _build_request(
        self,
        http: httpx.Client | httpx.AsyncClient,
        body: bytes,
        accept: str,
        *,
        no_cache: bool = False,
    ) -> httpx.Request:
        headers = self.client.auth.headers(accept)
        if no_cache:
            headers["Cache-Control"] = "no-cache"
        return http.build_request("POST", self.completions_url, content=body, headers=headers)

    def _parse_response(self, response: httpx.Response) -> ChatResponse:
        if not response.is_success:
            body = response.text
            self.logger.error("API error", status_code=response.status_code, body=body)
            raise QwenAPIError.from_response(response.status_code, body)
        if not response.content:
            raise QwenEmptyResponseError(response.status_code)

        self.logger.debug("Response JSON", body=response.text)
        try:
            return ChatResponse.model_validate_json(response.content)
        except ValidationError as e:
            raise QwenResponseFormatError(
                f"Failed to process API response: {e}",
                status_code=response.status_code,
                detail=response.text,
            ) from e

    def _stream_error(self, response: httpx.Response, body: str) -> QwenAPIError:
        self.logger.error("API error for stream", status_code=response.status_code, body=body)
        return QwenAPIError.from_response(
            response.status_code, body, context="API stream request"
        )

    # ------------------------------------------------------------------ #
    # Non-streaming                                                      #
    # ------------------------------------------------------------------ #

    @log_operation("chat_completion.create")
    def create(self, request: ChatRequest) -> ChatResponse:
        """
        Create a non-streaming chat completion.

        Raises:
            QwenAPIError: On a non-2xx status or an empty body
            QwenTransportError: When the request could not be completed
            ValueError: If request is None
        """
        body = self._encode(request, stream=False)
        http = self.client.http_client
        try:
            response = http.send(self._build_request(http, body, ACCEPT_JSON))
        except httpx.TransportError as e:
            raise QwenTransportError(f"Transport error during API request: {e}") from e
        return self._parse_response(response)

    @log_operation("chat_completion.acreate")
    async def acreate(self, request: ChatRequest) -> ChatResponse:
        """Async equivalent of :meth:`create`."""
        return await self._asend(self._encode(request, stream=False))

    async def _asend(self, body: bytes) -> ChatResponse:
        http = self.client.async_http_client
        try:
            response = await http.send(self._build_request(http, body, ACCEPT_JSON))
        except httpx.TransportError as e:
            raise QwenTransportError(f"Transport error during API request: {e}") from e
        return self._parse_response(response)

    def create_async(
        self, request: ChatRequest, callback: QwenCallback[ChatResponse]
    ) -> asyncio.Task[None]:
        """
        Schedule a non-streaming completion whose result goes to ``callback``.

        Must be called from a running event loop. Argument errors are raised
        here; request errors are delivered to ``callback.on_failure``.
        """
        if callback is None:
            raise ValueError("Callback cannot be None for asynchronous operations.")
        body = self._encode(request, stream=False)
        return asyncio.get_running_loop().create_task(self._deliver(body, callback))

    async def _deliver(self, body: bytes, callback: QwenCallback[ChatResponse]) -> None:
        try:
            response = await self._asend(body)
        except QwenError as e:
            self.logger.error(
                "Asynchronous chat completion failed",
                error_type=type(e).__name__,
                status_code=e.status_code,
            )
            await invoke_callback(callback.on_failure, e, self.logger)
            return
        await invoke_callback(callback.on_success, response, self.logger)

    # ------------------------------------------------------------------ #
    # Pull-mode streaming                                                #
    # ------------------------------------------------------------------ #

    @log_operation("chat_completion.create_stream")
    def create_stream(self, request: ChatRequest) -> ChunkStream:
        """
        Open a streaming completion and return a blocking chunk iterator.

        The initial request blocks; each iteration step may block on the next
        read. The returned stream owns the connection: exhaust it or close it
        (``with`` block) to release it.

        Raises:
            QwenAPIError: If the initial response is not 2xx
            QwenTransportError: When the request could not be sent
        """
        body = self._encode(request, stream=True)
        http = self.client.http_client
        try:
            response = http.send(
                self._build_request(http, body, ACCEPT_EVENT_STREAM), stream=True
            )
        except httpx.TransportError as e:
            raise QwenTransportError(f"Transport error during API stream request: {e}") from e

        if not response.is_success:
            try:
                response.read()
                error_body = response.text
            except TRANSPORT_ERRORS as e:
                raise QwenTransportError(
                    f"Transport error reading stream error body: {e}"
                ) from e
            finally:
                response.close()
            raise self._stream_error(response, error_body)

        return ChunkStream(
            response.iter_lines(),
            response.close,
            logger=self.logger.bind(stream_mode="pull"),
        )

    @log_operation("chat_completion.acreate_stream")
    async def acreate_stream(self, request: ChatRequest) -> AsyncChunkStream:
        """Async equivalent of :meth:`create_stream`, consumed with ``async for``."""
        body = self._encode(request, stream=True)
        http = self.client.async_http_client
        try:
            response = await http.send(
                self._build_request(http, body, ACCEPT_EVENT_STREAM), stream=True
            )
        except httpx.TransportError as e:
            raise QwenTransportError(f"Transport error during API stream request: {e}") from e

        if not response.is_success:
            try:
                await response.aread()
                error_body = response.text
            except TRANSPORT_ERRORS as e:
                raise QwenTransportError(
                    f"Transport error reading stream error body: {e}"
                ) from e
            finally:
                await response.aclose()
            raise self._stream_error(response, error_body)

        return AsyncChunkStream(
            response.aiter_lines(),
            response.aclose,
            logger=self.logger.bind(stream_mode="async_pull"),
        )

    # ------------------------------------------------------------------ #
    # Push-mode streaming                                                #
    # ------------------------------------------------------------------ #

    def create_stream_async(
        self,
        request: ChatRequest,
        chunk_callback: QwenCallback[ChatResponseChunk],
        completion_callback: QwenCallback[None],
    ) -> AsyncEventSource:
        """
        Start a streaming completion delivered through callbacks.

        Each decoded chunk goes to ``chunk_callback.on_success``; the end of
        the stream is reported once through ``completion_callback``. Must be
        called from a running event loop. The returned source can be awaited
        with ``wait()`` or stopped with ``cancel()``.
        """
        if request is None:
            raise ValueError("ChatRequest cannot be None.")
        if chunk_callback is None:
            raise ValueError("chunk_callback cannot be None for asynchronous streaming.")
        if completion_callback is None:
            raise ValueError("completion_callback cannot be None for asynchronous streaming.")

        body = self._encode(request, stream=True)
        http = self.client.async_http_client
        stream_logger = self.logger.bind(stream_mode="push")
        listener = ChunkStreamListener(
            chunk_callback, completion_callback, logger=stream_logger
        )
        source = AsyncEventSource(
            http,
            self._build_request(http, body, ACCEPT_EVENT_STREAM, no_cache=True),
            listener,
            queue_size=self.client.stream_queue_size,
            logger=stream_logger,
        ).start()
        self.logger.info("Async SSE request initiated")
        return source
