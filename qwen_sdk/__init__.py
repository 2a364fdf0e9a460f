"""
Qwen chat API client.

This package provides:
- Blocking and async chat completions over a shared httpx transport
- Server-sent event streaming as pull iterators (sync and async)
- Push-mode streaming delivered through chunk and completion callbacks
- A typed error taxonomy carrying status codes and server detail
"""

from __future__ import annotations

from .auth import AuthManager
from .callbacks import FunctionCallback, QwenCallback
from .client import QwenClient
from .config import Configuration
from .exceptions import (
    QwenAPIError,
    QwenEmptyResponseError,
    QwenError,
    QwenResponseFormatError,
    QwenTransportError,
    StreamCancelledError,
)
from .models import (
    Block,
    BlockType,
    ChatMessage,
    ChatRequest,
    ChatResponse,
    ChatResponseChunk,
    Choice,
    FunctionCall,
    ImageBlock,
    ResponseMessage,
    Role,
    TextBlock,
    Usage,
)
from .streaming import AsyncChunkStream, AsyncEventSource, ChunkStream

__version__ = "0.1.0"

__all__ = [
    "AsyncChunkStream",
    "AsyncEventSource",
    "AuthManager",
    # Models
    "Block",
    "BlockType",
    "ChatMessage",
    "ChatRequest",
    "ChatResponse",
    "ChatResponseChunk",
    "Choice",
    "ChunkStream",
    "Configuration",
    "FunctionCall",
    "FunctionCallback",
    "ImageBlock",
    # Exceptions
    "QwenAPIError",
    "QwenCallback",
    # Client
    "QwenClient",
    "QwenEmptyResponseError",
    "QwenError",
    "QwenResponseFormatError",
    "QwenTransportError",
    "ResponseMessage",
    "Role",
    "StreamCancelledError",
    "TextBlock",
    "Usage",
]
