"""
Error taxonomy for Qwen API operations.

Every error surfaced to callers carries:
- A human-readable message
- The HTTP status code (0 when no response was received)
- The server-provided detail string, when available
"""

from __future__ import annotations


class QwenError(Exception):
    """Base Qwen SDK error with status and server detail."""

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        detail: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.detail = detail


class QwenAPIError(QwenError):
    """The API answered with a non-2xx status."""

    @classmethod
    def from_response(
        cls, status_code: int, body: str | None, *, context: str = "API request"
    ) -> QwenAPIError:
        detail = body if body else "Unknown API error"
        return cls(
            f"{context} failed with status code {status_code}: {detail}",
            status_code=status_code,
            detail=detail,
        )


class QwenEmptyResponseError(QwenAPIError):
    """Success status but the response carried no body."""

    def __init__(self, status_code: int, message: str = "Empty response body from API"):
        super().__init__(message, status_code=status_code, detail="Empty response body")


class QwenResponseFormatError(QwenError):
    """A success body could not be mapped onto the response model."""
    pass


class QwenTransportError(QwenError):
    """Network failure before or during a read; no HTTP status available."""

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message, status_code=0, detail=detail)


class StreamCancelledError(QwenTransportError):
    """A push stream was cancelled by its owner."""

    def __init__(self, message: str = "SSE stream cancelled"):
        super().__init__(message)
