"""Configuration management for the Qwen SDK."""

import os
from typing import Any

import yaml
from dotenv import load_dotenv

API_KEY_ENV = "QWEN_API_KEY"
COOKIE_ENV = "QWEN_COOKIE"


class Configuration:
    """Loads client settings from YAML and credentials from the environment."""

    def __init__(self, config_path: str | None = None) -> None:
        """Initialize configuration from YAML and environment variables.

        Args:
            config_path: YAML file to read; defaults to the packaged config.yaml.
        """
        self.load_env()  # Load .env for credentials
        self.config_path = config_path or os.path.join(
            os.path.dirname(__file__), "config.yaml"
        )
        self._config = self._load_yaml_config()

    @staticmethod
    def load_env() -> None:
        """Load environment variables from .env file."""
        load_dotenv()

    def _load_yaml_config(self) -> dict[str, Any]:
        """Load configuration from YAML file."""
        with open(self.config_path) as file:
            config = yaml.safe_load(file)
            if not isinstance(config, dict):
                raise ValueError(
                    f"Config file must be YAML dict, got {type(config)}"
                )
            return config

    @staticmethod
    def _require_env(name: str) -> str:
        value = os.getenv(name)
        if not value:
            raise ValueError(f"'{name}' not found in environment variables")
        return value

    @property
    def api_key(self) -> str:
        """Get the Qwen API key.

        Raises:
            ValueError: If QWEN_API_KEY is not set.
        """
        return self._require_env(API_KEY_ENV)

    @property
    def cookie(self) -> str:
        """Get the Qwen session cookie.

        Raises:
            ValueError: If QWEN_COOKIE is not set.
        """
        return self._require_env(COOKIE_ENV)

    def get_config_dict(self) -> dict[str, Any]:
        """Get the full configuration dictionary."""
        return self._config

    def get_client_config(self) -> dict[str, Any]:
        """Get client configuration from YAML.

        Returns:
            Dictionary with validated base_url, timeout and default_model.

        Raises:
            ValueError: If required client parameters are missing or invalid.
        """
        client_config = self._config.get("client", {})

        required_keys = ["base_url", "timeout", "default_model"]
        for key in required_keys:
            if key not in client_config:
                raise ValueError(
                    f"client.{key} must be explicitly configured in config.yaml"
                )

        base_url = client_config["base_url"]
        timeout = client_config["timeout"]
        default_model = client_config["default_model"]

        if not isinstance(base_url, str) or not base_url.strip():
            raise ValueError("client.base_url must be a non-empty string")
        if isinstance(timeout, bool) or not isinstance(timeout, int | float) or timeout <= 0:
            raise ValueError("client.timeout must be a positive number")
        if not isinstance(default_model, str) or not default_model.strip():
            raise ValueError("client.default_model must be a non-empty string")

        return {
            "base_url": base_url,
            "timeout": timeout,
            "default_model": default_model,
        }

    def get_logging_config(self) -> dict[str, Any]:
        """Get logging configuration from YAML.

        Returns:
            Dictionary with level (default "INFO") and log_file (default None).
        """
        logging_config = self._config.get("logging") or {}
        return {
            "level": logging_config.get("level", "INFO"),
            "log_file": logging_config.get("log_file"),
        }

    def get_streaming_config(self) -> dict[str, Any]:
        """Get streaming configuration from YAML.

        Raises:
            ValueError: If event_queue_size is missing or not a positive integer.
        """
        streaming_config = self._config.get("streaming", {})

        if "event_queue_size" not in streaming_config:
            raise ValueError(
                "event_queue_size must be explicitly configured in config.yaml "
                "under streaming"
            )

        queue_size = streaming_config["event_queue_size"]
        if isinstance(queue_size, bool) or not isinstance(queue_size, int) or queue_size < 1:
            raise ValueError("streaming.event_queue_size must be a positive integer")

        return {"event_queue_size": queue_size}
