"""API resources exposed on QwenClient."""

from .chat_completion import ChatCompletion

__all__ = ["ChatCompletion"]
