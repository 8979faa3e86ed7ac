"""linecli - command-line access to LINE Official Accounts."""

from importlib.metadata import PackageNotFoundError, version

from .client import LineClient
from .exceptions import (
    APIError,
    AuthenticationError,
    ConfigError,
    InvalidInputError,
    LineCLIError,
    LoginCancelledError,
    LoginError,
    LoginTimeoutError,
    NotFoundError,
    PermissionDeniedError,
    PortBindFailedError,
    StoreError,
    StoreUnavailableError,
)
from .secrets import AccountRecord, CredentialStore, open_store

__all__ = [
    "AccountRecord",
    "CredentialStore",
    "LineClient",
    "open_store",
    "LineCLIError",
    "ConfigError",
    "InvalidInputError",
    "NotFoundError",
    "StoreError",
    "StoreUnavailableError",
    "PermissionDeniedError",
    "LoginError",
    "PortBindFailedError",
    "LoginTimeoutError",
    "LoginCancelledError",
    "AuthenticationError",
    "APIError",
]

try:
    __version__ = version("line-official-cli")
except PackageNotFoundError:
    __version__ = "0.1.0"
