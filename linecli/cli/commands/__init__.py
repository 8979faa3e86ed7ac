"""CLI command modules."""

from __future__ import annotations

import json
from contextlib import contextmanager
from typing import Any, Iterator

import typer
from rich.console import Console

from linecli.config import Settings, build_settings
from linecli.exceptions import LineCLIError
from linecli.secrets import CredentialStore, normalize_name, open_store

from ..constants import NOT_LOGGED_IN_HINT, SOURCE_EXPLICIT, SOURCE_FIRST, SOURCE_PRIMARY

_console = Console()


def get_settings(ctx: typer.Context) -> Settings:
    """Settings built by the root callback, or fresh ones outside the app."""
    settings = ctx.find_object(Settings)
    if settings is None:
        settings = build_settings()
    return settings


@contextmanager
def command_errors(prefix: str = "") -> Iterator[None]:
    """Print linecli errors as one red line and exit 1."""
    try:
        yield
    except LineCLIError as e:
        message = f"{prefix}: {e}" if prefix else str(e)
        _console.print(f"[red]{message}[/red]")
        raise typer.Exit(1) from e


def get_store(settings: Settings) -> CredentialStore:
    """Open the credential store, or exit with an error message."""
    with command_errors():
        return open_store(settings)


def resolve_account(settings: Settings, store: CredentialStore) -> tuple[str, str]:
    """Pick the account a command acts on.

    Order: --account flag / LINE_ACCOUNT / config file > primary account >
    first account. Returns the name and a label describing where it came from.
    """
    if settings.account:
        return normalize_name(settings.account), SOURCE_EXPLICIT

    with command_errors("Failed to access keyring"):
        name, explicit = store.get_primary_source()

    if not name:
        _console.print(f"[red]No accounts configured. {NOT_LOGGED_IN_HINT}[/red]")
        raise typer.Exit(1)

    return name, SOURCE_PRIMARY if explicit else SOURCE_FIRST


def print_json(data: Any) -> None:
    """Write JSON to stdout without Rich markup processing."""
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False))
