"""
Streaming-specific dataclasses and state enums.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

DONE_SENTINEL = "[DONE]"


class StreamState(Enum):
    """Pull iterator states."""
    READING = "reading"
    CHUNK_READY = "chunk_ready"
    FINISHED = "finished"


class StreamOutcome(Enum):
    """How a stream reached its terminal state."""
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class SSEEventKind(Enum):
    """Raw events a push event source hands to its consumer."""
    OPEN = "open"
    EVENT = "event"
    CLOSED = "closed"
    FAILURE = "failure"


@dataclass(frozen=True)
class SSEFrame:
    """One complete Server-Sent Event: its accumulated data plus optional fields."""
    data: str
    event_type: str | None = None
    event_id: str | None = None

    @property
    def is_sentinel(self) -> bool:
        return is_sentinel(self.data)


def is_sentinel(data: str | None) -> bool:
    """True when a payload is the end-of-stream literal, in any letter case."""
    return data is not None and data.strip().upper() == DONE_SENTINEL
