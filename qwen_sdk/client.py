"""
Qwen API client.

Holds credentials, the base URL, the default model and the shared httpx
transports used by every chat completion operation.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any, TextIO

import httpx

from .auth import AuthManager
from .logging_utils import ContextualLogger, build_logger
from .resources.chat_completion import ChatCompletion
from .streaming.event_source import DEFAULT_QUEUE_SIZE

if TYPE_CHECKING:                                        # pragma: no cover
    from .config import Configuration

DEFAULT_BASE_URL = "https://chat.qwen.ai"
DEFAULT_TIMEOUT = 600
DEFAULT_MODEL = "qwen-turbo"


class QwenClient:
    """
    Entry point to the Qwen chat API.

    The sync and async httpx clients are created on first use and shared by
    all requests made through this instance. Close the client (or use it as
    a context manager) to release their connections.
    """

    def __init__(
        self,
        api_key: str,
        cookie: str,
        base_url: str | None = DEFAULT_BASE_URL,
        timeout: float | None = DEFAULT_TIMEOUT,
        logging_level: str | None = "INFO",
        log_file: str | None = None,
        default_model: str | None = DEFAULT_MODEL,
        *,
        stream_queue_size: int = DEFAULT_QUEUE_SIZE,
        transport: httpx.BaseTransport | None = None,
        async_transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.auth = AuthManager(api_key, cookie)
        if stream_queue_size < 1:
            raise ValueError("stream_queue_size must be at least 1")

        self.base_url = (base_url or "").strip().rstrip("/") or DEFAULT_BASE_URL
        self.timeout = timeout if timeout is not None and timeout > 0 else DEFAULT_TIMEOUT
        self.default_model = (default_model or "").strip() or DEFAULT_MODEL
        self.stream_queue_size = stream_queue_size

        self._log_stream: TextIO | None = (
            open(log_file, "a", encoding="utf-8") if log_file else None  # noqa: SIM115
        )
        self.logger = ContextualLogger(
            {"component": "qwen_client"},
            logger=build_logger(logging_level, self._log_stream),
        )

        self._transport = transport
        self._async_transport = async_transport
        self._http_client: httpx.Client | None = None
        self._async_http_client: httpx.AsyncClient | None = None
        self._lock = threading.Lock()

        self.chat = ChatCompletion(self)
        self.logger.info(
            "QwenClient initialized",
            base_url=self.base_url,
            timeout=self.timeout,
            default_model=self.default_model,
        )

    @classmethod
    def from_config(cls, configuration: Configuration, **overrides: Any) -> QwenClient:
        """Build a client from a Configuration; keyword overrides win."""
        client_config = configuration.get_client_config()
        logging_config = configuration.get_logging_config()
        streaming_config = configuration.get_streaming_config()

        options: dict[str, Any] = {
            "base_url": client_config["base_url"],
            "timeout": client_config["timeout"],
            "default_model": client_config["default_model"],
            "logging_level": logging_config["level"],
            "log_file": logging_config["log_file"],
            "stream_queue_size": streaming_config["event_queue_size"],
        }
        options.update(overrides)
        return cls(configuration.api_key, configuration.cookie, **options)

    @property
    def http_client(self) -> httpx.Client:
        """Shared synchronous transport."""
        with self._lock:
            if self._http_client is None:
                self._http_client = httpx.Client(
                    timeout=httpx.Timeout(self.timeout),
                    transport=self._transport,
                )
                self.logger.debug("Created synchronous HTTP client")
            return self._http_client

    @property
    def async_http_client(self) -> httpx.AsyncClient:
        """Shared asynchronous transport."""
        with self._lock:
            if self._async_http_client is None:
                self._async_http_client = httpx.AsyncClient(
                    timeout=httpx.Timeout(self.timeout),
                    transport=self._async_transport,
                )
                self.logger.debug("Created asynchronous HTTP client")
            return self._async_http_client

    def close(self) -> None:
        """
        Close the synchronous transport and the log file, if any.

        Events logged after the log file is closed are dropped.
        """
        with self._lock:
            client, self._http_client = self._http_client, None
            log_stream, self._log_stream = self._log_stream, None
        if client is not None:
            client.close()
            self.logger.debug("Closed synchronous HTTP client")
        if log_stream is not None:
            log_stream.close()

    async def aclose(self) -> None:
        """Close both transports and the log file, if any."""
        with self._lock:
            client, self._async_http_client = self._async_http_client, None
        if client is not None:
            await client.aclose()
            self.logger.debug("Closed asynchronous HTTP client")
        self.close()

    def __enter__(self) -> QwenClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    async def __aenter__(self) -> QwenClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return (
            f"QwenClient(base_url={self.base_url!r}, timeout={self.timeout}, "
            f"default_model={self.default_model!r}, auth={self.auth!r})"
        )
