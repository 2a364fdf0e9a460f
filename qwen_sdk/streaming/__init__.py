"""
Streaming support for chat completions.

- SSE frame and chunk decoding
- Pull iterators (sync and async) with deterministic resource release
- Push delivery through an event source and chunk listener
"""

from .event_source import AsyncEventSource, EventSourceListener
from .iterator import AsyncChunkStream, ChunkStream
from .listener import ChunkStreamListener
from .models import DONE_SENTINEL, SSEFrame, StreamOutcome, StreamState, is_sentinel
from .parser import ChunkDecoder, SSEFrameDecoder

__all__ = [
    "DONE_SENTINEL",
    "AsyncChunkStream",
    "AsyncEventSource",
    "ChunkDecoder",
    "ChunkStream",
    "ChunkStreamListener",
    "EventSourceListener",
    "SSEFrame",
    "SSEFrameDecoder",
    "StreamOutcome",
    "StreamState",
    "is_sentinel",
]
