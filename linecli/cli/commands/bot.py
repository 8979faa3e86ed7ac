"""Bot commands for the line CLI."""

from __future__ import annotations

import httpx
import typer
from rich.console import Console

from linecli.client import LineClient

from . import command_errors, get_settings, get_store, print_json, resolve_account

app = typer.Typer(help="Inspect the bot behind an account")
console = Console()


@app.command()
def info(ctx: typer.Context) -> None:
    """Show the bot's basic information."""
    settings = get_settings(ctx)
    store = get_store(settings)
    account, _ = resolve_account(settings, store)

    with command_errors(f"Failed to get bot info for {account}"):
        record = store.get(account)
        try:
            with LineClient(record.credential) as client:
                bot = client.get_bot_info()
        except httpx.HTTPError as e:
            console.print(f"[red]Could not reach the LINE API: {e}[/red]")
            raise typer.Exit(1) from e

    if settings.output == "json":
        print_json(bot)
        return

    console.print(f"\n[bold]Bot: {bot.get('displayName', '')}[/bold]\n")
    console.print(f"  Account: {account}")
    console.print(f"  Basic ID: {bot.get('basicId', 'N/A')}")
    console.print(f"  User ID: {bot.get('userId', 'N/A')}")
    if bot.get("chatMode"):
        console.print(f"  Chat mode: {bot['chatMode']}")
