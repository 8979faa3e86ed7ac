"""Constants for the interactive login flow."""

from __future__ import annotations

# Loopback only; port 0 lets the OS pick a free one.
CALLBACK_HOST = "127.0.0.1"
AUTH_TIMEOUT_SECONDS = 300
POLL_INTERVAL_SECONDS = 0.1
SHUTDOWN_JOIN_SECONDS = 2.0

SUBMIT_PATH = "/submit"
VALIDATE_PATH = "/validate"
ACCOUNTS_PATH = "/accounts"
SET_PRIMARY_PATH = "/set-primary"
REMOVE_ACCOUNT_PATH = "/remove-account"

# Page scripts send the session token in this header instead of a form field.
SESSION_HEADER = "X-Session-Token"

MAX_BODY_BYTES = 64 * 1024
DEFAULT_ACCOUNT_NAME = "default"

# Error messages
ERROR_AUTH_TIMEOUT = "Login timed out. Run 'line auth login' again."
ERROR_AUTH_CANCELLED = "Login cancelled."
ERROR_INVALID_SESSION = "Invalid session token. Start a new login from your terminal."
ERROR_SESSION_FINISHED = "This login session is already finished."
ERROR_EMPTY_CREDENTIAL = "Channel access token is required."
ERROR_NAME_REQUIRED = "Account name is required."
ERROR_VERIFY_DISABLED = "Connection check is turned off for this login (--no-verify)."
ERROR_BAD_REQUEST = "Invalid request body."
