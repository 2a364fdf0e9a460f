"""
Serialization of chat requests into the API's JSON payload.

Message content is encoded as a plain string when it is a single text block
and as an ordered array of typed parts otherwise.
"""

from __future__ import annotations

from typing import Any

from .models import Block, BlockType, ChatMessage, ChatRequest


def encode_block(block: Block) -> dict[str, Any]:
    """Encode one content block as an API content part."""
    if block.type is BlockType.TEXT:
        return {"type": "text", "text": block.text}
    if block.type is BlockType.IMAGE:
        return {"type": "image_url", "image_url": {"url": block.url}}
    raise ValueError(f"Unsupported content block type: {block.type!r}")


def encode_content(blocks: list[Block] | None) -> str | list[dict[str, Any]]:
    """Encode a message's blocks; absent or empty blocks become an empty array."""
    if not blocks:
        return []
    if len(blocks) == 1 and blocks[0].type is BlockType.TEXT:
        return blocks[0].text
    return [encode_block(block) for block in blocks]


def encode_message(message: ChatMessage) -> dict[str, Any]:
    """Encode one chat message; optional flags appear only when set."""
    encoded: dict[str, Any] = {
        "role": message.role.value,
        "content": encode_content(message.blocks),
    }
    optional = {
        "web_search": message.web_search,
        "thinking": message.thinking,
        "thinking_budget": message.thinking_budget,
        "output_schema": message.output_schema,
    }
    encoded.update({key: value for key, value in optional.items() if value is not None})
    return encoded


def build_payload(request: ChatRequest, default_model: str | None = None) -> dict[str, Any]:
    """
    Build the JSON payload for a chat completion request.

    Args:
        request: The request to serialize; it is not mutated
        default_model: Used when the request names no model

    Returns:
        JSON-ready dictionary

    Raises:
        ValueError: If no model can be determined or messages are missing
    """
    model = request.model or default_model
    if not model:
        raise ValueError("ChatRequest.model is required when no default model is configured.")
    if request.messages is None:
        raise ValueError("ChatRequest.messages cannot be None.")

    payload: dict[str, Any] = {
        "model": model,
        "messages": [encode_message(message) for message in request.messages],
    }
    if request.temperature is not None:
        payload["temperature"] = request.temperature
    if request.max_tokens is not None:
        payload["max_tokens"] = request.max_tokens
    payload["stream"] = bool(request.stream)
    payload["incremental_output"] = request.incremental_output
    return payload
