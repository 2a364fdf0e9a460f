#!/usr/bin/env python3
"""
Tests for SSE frame decoding, chunk decoding and the pull-mode ChunkStream.
"""

import httpx
import pytest

from qwen_sdk.exceptions import QwenTransportError
from qwen_sdk.streaming import (
    ChunkDecoder,
    ChunkStream,
    SSEFrame,
    SSEFrameDecoder,
    StreamOutcome,
    StreamState,
    is_sentinel,
)
from qwen_sdk.streaming.iterator import _ChunkCursor


def chunk_json(text: str, chunk_id: str = "c1") -> str:
    return (
        '{"id": "%s", "model": "qwen-turbo", '
        '"choices": [{"index": 0, "delta": {"content": "%s"}}]}' % (chunk_id, text)
    )


def sse_lines(*payloads: str) -> list[str]:
    lines: list[str] = []
    for payload in payloads:
        lines += [f"data: {payload}", ""]
    return lines


class CloseCounter:
    """Stands in for a response's close method."""

    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1


class TestSSEFrameDecoder:
    """Test incremental frame decoding."""

    def test_single_frame(self):
        decoder = SSEFrameDecoder()
        assert decoder.feed("data: {\"a\": 1}") is None
        assert decoder.feed("") == SSEFrame(data='{"a": 1}')

    def test_multi_line_data_concatenates(self):
        decoder = SSEFrameDecoder()
        frames = list(decoder.iter_frames(['data: {"a":', "data: 1}", ""]))
        assert frames == [SSEFrame(data='{"a":1}')]

    def test_blank_line_without_data_emits_nothing(self):
        decoder = SSEFrameDecoder()
        assert list(decoder.iter_frames(["", "", ": keep-alive", ""])) == []

    def test_event_and_id_fields_attach_to_frame(self):
        decoder = SSEFrameDecoder()
        frames = list(decoder.iter_frames(["id: 7", "event: delta", "data: x", ""]))
        assert frames == [SSEFrame(data="x", event_type="delta", event_id="7")]

        # fields reset after each frame
        assert list(decoder.iter_frames(["data: y", ""])) == [SSEFrame(data="y")]

    def test_trailing_carriage_return_is_stripped(self):
        decoder = SSEFrameDecoder()
        frames = list(decoder.iter_frames(["data: hi\r\n", "\r\n"]))
        assert frames == [SSEFrame(data="hi")]

    def test_unterminated_frame_is_not_flushed(self):
        decoder = SSEFrameDecoder()
        assert list(decoder.iter_frames(["data: partial"])) == []
        assert decoder.pending

    @pytest.mark.parametrize("data", ["[DONE]", "[done]", "  [Done]  "])
    def test_sentinel_detection(self, data):
        assert is_sentinel(data)

    def test_non_sentinel(self):
        assert not is_sentinel('{"done": true}')
        assert not is_sentinel(None)


class TestChunkDecoder:
    """Test chunk decoding and statistics."""

    def test_decodes_delta_chunk(self):
        decoder = ChunkDecoder()
        chunk = decoder.decode(chunk_json("Hel"))

        assert chunk is not None
        assert chunk.id == "c1"
        assert chunk.delta_text == "Hel"

    def test_malformed_payload_returns_none_and_counts(self):
        decoder = ChunkDecoder()

        assert decoder.decode("{not json") is None
        assert decoder.decode('{"choices": "nope"}') is None

        stats = decoder.get_stats()
        assert stats["total_frames"] == 2
        assert stats["error_frames"] == 2
        assert stats["decoded_chunks"] == 0

    def test_decoding_is_idempotent(self):
        decoder = ChunkDecoder()
        assert decoder.decode(chunk_json("x")) == decoder.decode(chunk_json("x"))

    def test_role_only_delta_is_valid(self):
        chunk = ChunkDecoder().decode('{"choices": [{"delta": {"role": "assistant"}}]}')
        assert chunk is not None
        assert chunk.delta_text is None

    def test_unknown_role_keeps_content(self):
        chunk = ChunkDecoder().decode('{"choices": [{"delta": {"role": "tool", "content": "Hi"}}]}')
        assert chunk is not None
        assert chunk.delta_text == "Hi"
        assert chunk.choices[0].delta.role is None

    def test_reset_stats(self):
        decoder = ChunkDecoder()
        decoder.decode(chunk_json("x"))
        decoder.reset_stats()
        assert decoder.get_stats() == {"total_frames": 0, "decoded_chunks": 0, "error_frames": 0}


class TestChunkStream:
    """Test the pull-mode iterator state machine."""

    def test_yields_chunks_then_stops_at_sentinel(self):
        close = CloseCounter()
        lines = sse_lines(chunk_json("a"), chunk_json("b"), chunk_json("c"), "[DONE]")
        lines += ["data: never read", ""]
        stream = ChunkStream(lines, close)

        texts = [chunk.delta_text for chunk in stream]

        assert texts == ["a", "b", "c"]
        assert stream.outcome is StreamOutcome.COMPLETED
        assert stream.state is StreamState.FINISHED
        assert close.calls == 1
        assert stream.has_next() is False
        with pytest.raises(StopIteration):
            next(stream)
        assert close.calls == 1

    def test_malformed_frame_is_skipped(self):
        close = CloseCounter()
        stream = ChunkStream(
            sse_lines(chunk_json("a"), "{broken", chunk_json("b"), "[DONE]"), close
        )

        assert [chunk.delta_text for chunk in stream] == ["a", "b"]
        assert stream.stats["error_frames"] == 1
        assert close.calls == 1

    def test_empty_stream(self):
        close = CloseCounter()
        stream = ChunkStream([], close)

        assert stream.has_next() is False
        assert list(stream) == []
        assert stream.outcome is StreamOutcome.COMPLETED
        assert close.calls == 1

    def test_take_without_buffered_chunk_raises(self):
        stream = ChunkStream([], CloseCounter())
        with pytest.raises(RuntimeError, match="No chunk buffered"):
            stream._take()

    def test_cursor_requires_release(self):
        class NoRelease(_ChunkCursor):
            pass

        with pytest.raises(TypeError):
            NoRelease(None, None)

    def test_end_of_input_without_sentinel_completes(self):
        close = CloseCounter()
        stream = ChunkStream(sse_lines(chunk_json("a")), close)

        assert [chunk.delta_text for chunk in stream] == ["a"]
        assert stream.outcome is StreamOutcome.COMPLETED
        assert close.calls == 1

    def test_has_next_is_repeatable(self):
        stream = ChunkStream(sse_lines(chunk_json("a"), "[DONE]"), CloseCounter())

        assert stream.has_next() is True
        assert stream.has_next() is True
        assert next(stream).delta_text == "a"
        assert stream.has_next() is False

    def test_close_after_one_chunk_releases_once(self):
        close = CloseCounter()
        stream = ChunkStream(
            sse_lines(chunk_json("a"), chunk_json("b"), chunk_json("c")), close
        )

        with stream:
            assert next(stream).delta_text == "a"

        assert close.calls == 1
        assert stream.outcome is StreamOutcome.CANCELLED
        assert stream.has_next() is False
        stream.close()
        assert close.calls == 1

    def test_transport_error_releases_then_raises_once(self):
        close = CloseCounter()

        def lines():
            yield from sse_lines(chunk_json("a"))
            raise httpx.ReadError("connection reset")

        stream = ChunkStream(lines(), close)

        assert next(stream).delta_text == "a"
        with pytest.raises(QwenTransportError) as exc_info:
            next(stream)

        assert close.calls == 1
        assert exc_info.value.status_code == 0
        assert isinstance(exc_info.value.__cause__, httpx.ReadError)
        assert stream.outcome is StreamOutcome.FAILED
        with pytest.raises(StopIteration):
            next(stream)

    def test_transport_error_via_has_next_reports_false(self):
        close = CloseCounter()

        def lines():
            raise httpx.ReadError("connection reset")
            yield  # pragma: no cover

        stream = ChunkStream(lines(), close)

        assert stream.has_next() is False
        assert close.calls == 1

    def test_close_error_is_not_raised(self):
        def failing_close():
            raise httpx.ReadError("already gone")

        stream = ChunkStream(sse_lines(chunk_json("a")), failing_close)
        stream.close()
        assert stream.state is StreamState.FINISHED
