#!/usr/bin/env python3
"""
Tests for the async pull stream (AsyncChunkStream and acreate_stream).
"""

import json

import httpx
import pytest

from qwen_sdk import ChatMessage, ChatRequest, QwenAPIError, QwenClient, QwenTransportError, Role
from qwen_sdk.streaming import AsyncChunkStream, StreamOutcome


def sse_body(*texts: str, done: bool = True) -> bytes:
    frames = [
        "data: " + json.dumps({"choices": [{"delta": {"content": text}}]}) for text in texts
    ]
    if done:
        frames.append("data: [DONE]")
    return ("\n\n".join(frames) + "\n\n").encode()


class AsyncTrackingStream(httpx.AsyncByteStream):
    """Async response body that records how often it was closed."""

    def __init__(self, chunks, error: Exception | None = None):
        self.chunks = chunks
        self.error = error
        self.close_calls = 0

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error

    async def aclose(self):
        self.close_calls += 1


async def async_lines(lines):
    for line in lines:
        yield line


class AsyncCloseCounter:
    def __init__(self):
        self.calls = 0

    async def __call__(self):
        self.calls += 1


def make_client(handler) -> QwenClient:
    return QwenClient("test-key", "session=abc", async_transport=httpx.MockTransport(handler))


def make_request() -> ChatRequest:
    return ChatRequest(model="qwen-turbo", messages=[ChatMessage.from_text(Role.USER, "Hi")])


class TestAsyncChunkStream:
    """Test the async iterator directly over line sources."""

    @pytest.mark.asyncio
    async def test_iterates_until_sentinel(self):
        close = AsyncCloseCounter()
        lines = sse_body("a", "b").decode().split("\n")
        stream = AsyncChunkStream(async_lines(lines), close)

        texts = [chunk.delta_text async for chunk in stream]

        assert texts == ["a", "b"]
        assert stream.outcome is StreamOutcome.COMPLETED
        assert close.calls == 1
        assert await stream.has_next() is False
        assert close.calls == 1

    @pytest.mark.asyncio
    async def test_async_with_closes_on_early_exit(self):
        close = AsyncCloseCounter()
        lines = sse_body("a", "b", "c").decode().split("\n")

        async with AsyncChunkStream(async_lines(lines), close) as stream:
            async for chunk in stream:
                assert chunk.delta_text == "a"
                break

        assert close.calls == 1
        assert stream.outcome is StreamOutcome.CANCELLED
        await stream.aclose()
        assert close.calls == 1

    @pytest.mark.asyncio
    async def test_transport_error_raised_once(self):
        close = AsyncCloseCounter()

        async def lines():
            yield 'data: {"choices": [{"delta": {"content": "a"}}]}'
            yield ""
            raise httpx.ReadError("connection reset")

        stream = AsyncChunkStream(lines(), close)

        assert (await stream.__anext__()).delta_text == "a"
        with pytest.raises(QwenTransportError):
            await stream.__anext__()
        assert close.calls == 1
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()


class TestACreateStream:
    """Test async pull streaming through the client."""

    @pytest.mark.asyncio
    async def test_stream_through_client(self):
        body = AsyncTrackingStream([sse_body("Hel", "lo")])
        client = make_client(lambda request: httpx.Response(200, stream=body))

        request = make_request()
        async with await client.chat.acreate_stream(request) as stream:
            texts = [chunk.delta_text async for chunk in stream]

        assert texts == ["Hel", "lo"]
        assert request.stream is True
        assert body.close_calls == 1
        await client.aclose()

    @pytest.mark.asyncio
    async def test_error_status(self):
        body = AsyncTrackingStream([b"rate limited"])
        client = make_client(lambda request: httpx.Response(429, stream=body))

        with pytest.raises(QwenAPIError) as exc_info:
            await client.chat.acreate_stream(make_request())

        assert exc_info.value.status_code == 429
        assert exc_info.value.detail == "rate limited"
        assert body.close_calls == 1
        await client.aclose()
