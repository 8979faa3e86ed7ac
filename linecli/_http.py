"""Shared HTTP request utilities for the LINE API client."""

from __future__ import annotations

from typing import Any

import httpx

from .exceptions import APIError, AuthenticationError


def build_headers(access_token: str) -> dict[str, str]:
    """Build request headers with bearer authentication."""
    return {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {access_token}",
    }


def handle_response(response: httpx.Response) -> dict[str, Any]:
    """Process HTTP response, raising appropriate errors for failures."""
    if response.status_code == 401:
        raise AuthenticationError("Invalid or expired channel access token")

    if response.status_code >= 400:
        message = response.text or "LINE API call failed"
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            message = body["message"]
        raise APIError(
            message=message,
            status_code=response.status_code,
            response=response,
        )

    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError as e:
        # A proxy or captive portal answering 200 with HTML.
        raise APIError(
            message="LINE API returned a response that is not JSON",
            status_code=response.status_code,
            response=response,
        ) from e
