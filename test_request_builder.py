#!/usr/bin/env python3
"""
Tests for chat request serialization and the request-side models.
"""

import json

import pytest

from qwen_sdk.models import BlockType, ChatMessage, ChatRequest, ImageBlock, Role, TextBlock
from qwen_sdk.request_builder import build_payload, encode_content, encode_message


class TestContentEncoding:
    """Test message content encoding."""

    def test_single_text_block_is_plain_string(self):
        message = ChatMessage.from_text(Role.USER, "Hello")
        assert encode_message(message) == {"role": "user", "content": "Hello"}

    def test_text_and_image_encode_as_ordered_array(self):
        """A text block followed by an image block keeps its order."""
        message = ChatMessage(
            role=Role.USER,
            blocks=[
                TextBlock("Describe this"),
                ImageBlock("https://cdn.example/cat.png", "image/png"),
            ],
        )

        encoded = json.loads(json.dumps(encode_message(message)))

        assert encoded["content"] == [
            {"type": "text", "text": "Describe this"},
            {"type": "image_url", "image_url": {"url": "https://cdn.example/cat.png"}},
        ]

    def test_image_only_message_is_array(self):
        content = encode_content([ImageBlock("https://cdn.example/a.jpg", "image/jpeg")])
        assert content == [{"type": "image_url", "image_url": {"url": "https://cdn.example/a.jpg"}}]

    def test_two_text_blocks_are_array(self):
        content = encode_content([TextBlock("a"), TextBlock("b")])
        assert content == [{"type": "text", "text": "a"}, {"type": "text", "text": "b"}]

    @pytest.mark.parametrize("blocks", [None, []])
    def test_missing_blocks_encode_as_empty_array(self, blocks):
        message = ChatMessage(role=Role.ASSISTANT, blocks=blocks)
        assert encode_message(message)["content"] == []

    def test_optional_flags_only_when_set(self):
        message = ChatMessage.from_text(
            Role.USER, "search this", web_search=True, thinking_budget=256
        )
        encoded = encode_message(message)

        assert encoded["web_search"] is True
        assert encoded["thinking_budget"] == 256
        assert "thinking" not in encoded
        assert "output_schema" not in encoded


class TestBuildPayload:
    """Test the top-level request payload."""

    def test_payload_fields(self):
        request = ChatRequest(
            model="qwen-max",
            messages=[ChatMessage.from_text(Role.SYSTEM, "be brief")],
            temperature=0.2,
            max_tokens=64,
            stream=True,
        )

        payload = build_payload(request)

        assert payload == {
            "model": "qwen-max",
            "messages": [{"role": "system", "content": "be brief"}],
            "temperature": 0.2,
            "max_tokens": 64,
            "stream": True,
            "incremental_output": True,
        }

    def test_unset_parameters_are_omitted(self):
        request = ChatRequest(model="qwen-max", messages=[])
        payload = build_payload(request)

        assert "temperature" not in payload
        assert "max_tokens" not in payload
        assert payload["stream"] is False

    def test_default_model_fills_missing_model(self):
        request = ChatRequest(model=None, messages=[ChatMessage.from_text("user", "hi")])
        assert build_payload(request, default_model="qwen-turbo")["model"] == "qwen-turbo"

    def test_missing_model_without_default_raises(self):
        request = ChatRequest(model=None, messages=[])
        with pytest.raises(ValueError, match="model is required"):
            build_payload(request)

    def test_messages_are_not_mutated(self):
        message = ChatMessage.from_text(Role.USER, "Hello")
        request = ChatRequest(model="qwen-turbo", messages=[message])

        build_payload(request)

        assert message.blocks == [TextBlock("Hello")]
        assert request.messages == [message]


class TestRequestModels:
    """Test request-side model helpers."""

    def test_role_parsing_is_case_insensitive(self):
        assert Role("ASSISTANT") is Role.ASSISTANT
        assert ChatMessage(role="System").role is Role.SYSTEM

    def test_unknown_role_raises(self):
        with pytest.raises(ValueError):
            Role("moderator")

    def test_blocks_carry_discriminant(self):
        assert TextBlock("x").type is BlockType.TEXT
        assert ImageBlock("u", "image/png").type is BlockType.IMAGE

    def test_simple_text_content(self):
        assert ChatMessage.from_text(Role.USER, "hi").simple_text_content == "hi"
        assert ChatMessage(role=Role.USER, blocks=[]).simple_text_content is None
        assert ChatMessage.from_text(Role.USER, None).blocks == []
