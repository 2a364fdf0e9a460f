"""Credential holder producing the authentication headers for every request."""

from __future__ import annotations


class AuthManager:
    """Holds the API key and session cookie."""

    def __init__(self, api_key: str, cookie: str) -> None:
        if not api_key or not api_key.strip():
            raise ValueError("API key cannot be null or empty.")
        if not cookie or not cookie.strip():
            raise ValueError("Cookie cannot be null or empty.")
        self._api_key = api_key
        self._cookie = cookie

    @property
    def authorization_header(self) -> str:
        return f"Bearer {self._api_key}"

    @property
    def cookie_header(self) -> str:
        return self._cookie

    def headers(self, accept: str) -> dict[str, str]:
        """Authentication plus content negotiation headers."""
        return {
            "Authorization": self.authorization_header,
            "Cookie": self.cookie_header,
            "Content-Type": "application/json",
            "Accept": accept,
        }

    def __repr__(self) -> str:
        return "AuthManager(api_key='***', cookie='***')"
