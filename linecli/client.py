"""Synchronous HTTP client for the LINE Messaging API.

Only the calls the authentication flow needs live here.
"""

from __future__ import annotations

from typing import Any

import httpx

from ._http import build_headers, handle_response
from .config import DEFAULT_BASE_URL, DEFAULT_TIMEOUT_SECONDS, sanitize_base_url
from .exceptions import AuthenticationError


class LineClient:
    """Synchronous client for the LINE Messaging API.

    Example:
        >>> from linecli.client import LineClient
        >>> with LineClient("channel-access-token") as client:
        ...     print(client.get_bot_info()["displayName"])
    """

    def __init__(
        self,
        access_token: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            access_token: Channel access token from the LINE Developers Console.
            base_url: API base URL (default: https://api.line.me).
            timeout: Request timeout in seconds (default: 30).
            transport: Optional httpx transport, mainly for tests.

        Raises:
            AuthenticationError: If no access token is provided.
        """
        if not access_token:
            raise AuthenticationError("No channel access token provided.")

        self._access_token = access_token
        self._base_url = sanitize_base_url(base_url)
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def get_bot_info(self) -> dict[str, Any]:
        """Get the bot's basic information.

        Returns:
            Dictionary including ``userId``, ``basicId`` and ``displayName``.
        """
        response = self._client.get(
            f"{self._base_url}/v2/bot/info",
            headers=build_headers(self._access_token),
        )
        return handle_response(response)

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def __enter__(self) -> "LineClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


def verify_channel_token(access_token: str) -> str:
    """Check a token against the API and return the bot display name.

    Raises AuthenticationError or APIError when the token is rejected.
    """
    with LineClient(access_token) as client:
        return client.get_bot_info().get("displayName", "")
