"""Configuration helpers for linecli.

Settings are resolved once per invocation with the precedence
flag > environment variable > config file > built-in default, and passed
explicitly to whatever needs them.
"""

from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .exceptions import ConfigError

APP_NAME = "line-cli"

DEFAULT_BASE_URL = "https://api.line.me"
DEFAULT_TIMEOUT_SECONDS = 30.0

CONFIG_FILE = "config.json"
LEGACY_CONFIG_FILE = ".line-cli.json"

OUTPUT_FORMATS = ("text", "json", "table")
CREDENTIAL_BACKENDS = ("auto", "keyring", "file")

ENV_ACCOUNT = "LINE_ACCOUNT"
ENV_OUTPUT = "LINE_OUTPUT"
ENV_CREDENTIAL_BACKEND = "LINE_CREDENTIAL_BACKEND"


def sanitize_base_url(url: str) -> str:
    """Ensure the base URL never ends with a trailing slash."""

    return url.rstrip("/")


def data_dir() -> Path:
    """Directory for the file credential backend."""
    if xdg := os.environ.get("XDG_DATA_HOME"):
        return Path(xdg) / APP_NAME
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APP_NAME
    return Path.home() / ".local" / "share" / APP_NAME


def config_paths() -> list[Path]:
    """Config file candidates, first match wins."""
    paths = []
    if xdg := os.environ.get("XDG_CONFIG_HOME"):
        paths.append(Path(xdg) / APP_NAME / CONFIG_FILE)
    paths.append(Path.home() / ".config" / APP_NAME / CONFIG_FILE)
    paths.append(Path.home() / LEGACY_CONFIG_FILE)
    return paths


def default_config_path() -> Path:
    return Path.home() / ".config" / APP_NAME / CONFIG_FILE


def load_config() -> tuple[dict[str, Any], Path | None]:
    """Load the first config file found.

    Returns an empty dict and None when no file exists. A file that exists
    but is corrupt or not a JSON object raises ConfigError.
    """
    for path in config_paths():
        if not path.exists():
            continue
        try:
            data = json.loads(path.read_text())
        except (json.JSONDecodeError, OSError) as e:
            raise ConfigError(f"failed to read config file {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"config file {path} must contain a JSON object")
        return data, path
    return {}, None


@dataclass
class Settings:
    """Per-invocation settings threaded through the command layer."""

    account: str = ""
    output: str = "text"
    debug: bool = False
    credential_backend: str = "auto"
    config_path: Path | None = None


def _first(*values: Any) -> Any:
    for value in values:
        if value not in (None, ""):
            return value
    return None


def build_settings(
    account: str | None = None,
    output: str | None = None,
    debug: bool | None = None,
    backend: str | None = None,
) -> Settings:
    """Resolve settings from flags, environment and the config file."""
    file_values, path = load_config()

    resolved_output = _first(output, os.environ.get(ENV_OUTPUT), file_values.get("output"), "text")
    if resolved_output not in OUTPUT_FORMATS:
        raise ConfigError(f"invalid output format {resolved_output!r}, expected one of: {', '.join(OUTPUT_FORMATS)}")

    resolved_backend = _first(
        backend,
        os.environ.get(ENV_CREDENTIAL_BACKEND),
        file_values.get("credential_backend"),
        "auto",
    )
    if resolved_backend not in CREDENTIAL_BACKENDS:
        raise ConfigError(
            f"invalid credential backend {resolved_backend!r}, expected one of: {', '.join(CREDENTIAL_BACKENDS)}"
        )

    # Cannot tell "not set" from "set to false" for the file value.
    resolved_debug = bool(debug) or bool(file_values.get("debug", False))

    return Settings(
        account=_first(account, os.environ.get(ENV_ACCOUNT), file_values.get("account")) or "",
        output=resolved_output,
        debug=resolved_debug,
        credential_backend=resolved_backend,
        config_path=path,
    )


def example_config() -> str:
    """Example config file content."""
    return """{
  "account": "my-account",
  "output": "text",
  "debug": false,
  "credential_backend": "auto"
}
"""
