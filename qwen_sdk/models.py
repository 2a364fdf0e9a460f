"""
Core Qwen chat models.

This module provides:
- Request-side dataclasses (messages, content blocks, chat requests)
- Response-side pydantic models mapped from the API's JSON
- Streaming chunk models carrying per-frame deltas
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Role(str, Enum):
    """Message author roles accepted by the API."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    FUNCTION = "function"

    @classmethod
    def _missing_(cls, value: object) -> Role | None:
        if isinstance(value, str):
            lowered = value.strip().lower()
            for role in cls:
                if role.value == lowered:
                    return role
        return None


class BlockType(str, Enum):
    """Content block discriminant."""
    TEXT = "text"
    IMAGE = "image"


@dataclass(frozen=True)
class TextBlock:
    """Plain text content."""
    text: str
    type: Literal[BlockType.TEXT] = field(default=BlockType.TEXT, init=False)


@dataclass(frozen=True)
class ImageBlock:
    """Image referenced by URL, typically returned by a prior upload."""
    url: str
    image_mimetype: str
    type: Literal[BlockType.IMAGE] = field(default=BlockType.IMAGE, init=False)


Block = TextBlock | ImageBlock


@dataclass
class ChatMessage:
    """One conversation turn: a role plus ordered content blocks."""
    role: Role
    blocks: list[Block] | None = field(default_factory=list)
    web_search: bool | None = None
    thinking: bool | None = None
    thinking_budget: int | None = None
    output_schema: str | None = None

    def __post_init__(self) -> None:
        self.role = Role(self.role)

    @classmethod
    def from_text(cls, role: Role | str, text: str | None, **flags: Any) -> ChatMessage:
        """Build a message holding a single text block (no blocks for ``None``)."""
        blocks: list[Block] = [TextBlock(text)] if text is not None else []
        return cls(role=Role(role), blocks=blocks, **flags)

    @property
    def simple_text_content(self) -> str | None:
        """Text of a single-text-block message, otherwise ``None``."""
        if self.blocks and len(self.blocks) == 1 and self.blocks[0].type is BlockType.TEXT:
            return self.blocks[0].text
        return None


@dataclass
class ChatRequest:
    """
    Chat completion request.

    ``stream`` is overwritten by whichever operation sends the request.
    """
    model: str | None
    messages: list[ChatMessage]
    temperature: float | None = None
    max_tokens: int | None = None
    stream: bool | None = None
    incremental_output: bool = True


class FunctionCall(BaseModel):
    """Function invocation requested by the model."""
    name: str | None = None
    arguments: str | None = None


class ResponseMessage(BaseModel):
    """A complete message (non-streaming) or a delta fragment (streaming)."""
    model_config = ConfigDict(extra="allow")

    role: Role | None = None
    content: str | None = None
    function_call: FunctionCall | None = None
    extra: dict[str, Any] | None = None

    @field_validator("role", mode="before")
    @classmethod
    def _unknown_role_to_none(cls, value: Any) -> Any:
        """Roles the SDK does not model decode as None; the content is kept."""
        if isinstance(value, str):
            try:
                return Role(value)
            except ValueError:
                return None
        return value


class Choice(BaseModel):
    """One completion choice; ``message`` or ``delta`` depending on the mode."""
    model_config = ConfigDict(extra="allow")

    index: int | None = None
    message: ResponseMessage | None = None
    delta: ResponseMessage | None = None
    finish_reason: str | None = None


class Usage(BaseModel):
    """Token usage statistics."""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatResponse(BaseModel):
    """Full non-streaming completion."""
    model_config = ConfigDict(extra="allow")

    id: str | None = None
    model: str | None = None
    choices: list[Choice] = Field(default_factory=list)
    usage: Usage | None = None

    @property
    def text(self) -> str | None:
        if self.choices and self.choices[0].message is not None:
            return self.choices[0].message.content
        return None


class ChatResponseChunk(BaseModel):
    """One decoded streaming frame."""
    model_config = ConfigDict(extra="allow")

    id: str | None = None
    model: str | None = None
    choices: list[Choice] = Field(default_factory=list)

    @property
    def delta_text(self) -> str | None:
        # role-only frames carry no content
        if self.choices and self.choices[0].delta is not None:
            return self.choices[0].delta.content
        return None
