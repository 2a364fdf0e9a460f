"""
SSE frame decoding and chunk decoding.

SSEFrameDecoder turns text lines into complete frames; ChunkDecoder turns one
frame's JSON payload into a typed chunk. Neither performs I/O, so both the
pull iterators and the push event source share them.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from pydantic import ValidationError

from ..logging_utils import ContextualLogger
from ..models import ChatResponseChunk
from .models import SSEFrame

DATA_PREFIX = "data:"
EVENT_PREFIX = "event:"
ID_PREFIX = "id:"


class SSEFrameDecoder:
    """
    Incremental SSE line decoder.

    ``data:`` lines accumulate into a buffer; a blank line flushes a non-empty
    buffer as one frame. End of input flushes nothing.
    """

    def __init__(self, logger: ContextualLogger | None = None):
        self.logger = logger
        self._buffer: list[str] = []
        self._event_type: str | None = None
        self._event_id: str | None = None

    def feed(self, line: str) -> SSEFrame | None:
        """Consume one line; return a frame when the line completes one."""
        line = line.rstrip("\r\n")
        if self.logger is not None:
            self.logger.debug("SSE line", line=line)

        if line.startswith(DATA_PREFIX):
            self._buffer.append(line[len(DATA_PREFIX):].strip())
            return None
        if line.startswith(EVENT_PREFIX):
            self._event_type = line[len(EVENT_PREFIX):].strip() or None
            return None
        if line.startswith(ID_PREFIX):
            self._event_id = line[len(ID_PREFIX):].strip() or None
            return None
        if line.strip():
            # comments (":") and unknown fields
            return None

        if not self._buffer or not "".join(self._buffer):
            self._reset()
            return None

        frame = SSEFrame(
            data="".join(self._buffer),
            event_type=self._event_type,
            event_id=self._event_id,
        )
        self._reset()
        return frame

    def iter_frames(self, lines: Iterable[str]) -> Iterator[SSEFrame]:
        """Yield every complete frame found in ``lines``."""
        for line in lines:
            frame = self.feed(line)
            if frame is not None:
                yield frame

    @property
    def pending(self) -> bool:
        """Whether unflushed data is buffered."""
        return bool(self._buffer)

    def _reset(self) -> None:
        self._buffer = []
        self._event_type = None
        self._event_id = None


class ChunkDecoder:
    """Decodes frame payloads into chunks, skipping malformed ones."""

    def __init__(self, logger: ContextualLogger | None = None):
        self.logger = logger
        self.stats = {
            'total_frames': 0,
            'decoded_chunks': 0,
            'error_frames': 0,
        }

    def decode(self, data: str) -> ChatResponseChunk | None:
        """
        Parse one frame's JSON payload.

        Returns:
            The decoded chunk, or None when the payload is not a valid chunk
        """
        self.stats['total_frames'] += 1
        if self.logger is not None:
            self.logger.debug("SSE data JSON", data=data)

        try:
            chunk = ChatResponseChunk.model_validate_json(data)
        except ValidationError as e:
            self.stats['error_frames'] += 1
            if self.logger is not None:
                self.logger.warning(
                    "Failed to parse SSE JSON",
                    data=data,
                    error_count=e.error_count(),
                    error_message=str(e),
                )
            return None

        self.stats['decoded_chunks'] += 1
        return chunk

    def get_stats(self) -> dict[str, int]:
        """Get decoding statistics for monitoring."""
        return self.stats.copy()

    def reset_stats(self) -> None:
        """Reset statistics counters."""
        self.stats = {
            'total_frames': 0,
            'decoded_chunks': 0,
            'error_frames': 0,
        }
