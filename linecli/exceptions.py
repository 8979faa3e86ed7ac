"""Custom exceptions raised by linecli."""

from __future__ import annotations

from typing import Any, Optional


class LineCLIError(Exception):
    """Base exception for all linecli specific failures."""


class ConfigError(LineCLIError):
    """Raised when a config file exists but cannot be used."""


# ---------------------------------------------------------------------------
# Credential store
# ---------------------------------------------------------------------------


class InvalidInputError(LineCLIError):
    """Raised for bad arguments (empty account name, empty credential)."""


class NotFoundError(LineCLIError):
    """Raised when an account (or backend key) does not exist."""

    def __init__(self, name: str) -> None:
        super().__init__(f"account not found: {name}")
        self.name = name


class StoreError(LineCLIError):
    """Base class for failures of the secure storage backend."""


class StoreUnavailableError(StoreError):
    """Raised when the backend is locked, missing or unreachable."""


class PermissionDeniedError(StoreError):
    """Raised when the operating system denies access to the backend."""


# ---------------------------------------------------------------------------
# Interactive login
# ---------------------------------------------------------------------------


class LoginError(LineCLIError):
    """Base class for interactive login failures."""


class PortBindFailedError(LoginError):
    """Raised when the local callback server cannot bind a port."""


class LoginTimeoutError(LoginError):
    """Raised when no valid submission arrives before the deadline."""


class LoginCancelledError(LoginError):
    """Raised when the caller cancels the login before it completes."""


# ---------------------------------------------------------------------------
# Messaging API
# ---------------------------------------------------------------------------


class AuthenticationError(LineCLIError):
    """Raised when a channel access token is missing or rejected by the server."""


class APIError(LineCLIError):
    """Raised when the LINE API returns a non-successful response."""

    def __init__(self, message: str, status_code: int, response: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response = response

    def __str__(self) -> str:  # pragma: no cover - repr helper
        return f"{self.status_code}: {self.message}"
