"""Authentication commands for the line CLI."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from linecli.auth.constants import AUTH_TIMEOUT_SECONDS
from linecli.auth.flow import SetupServer
from linecli.client import verify_channel_token
from linecli.exceptions import LineCLIError, LoginCancelledError, LoginTimeoutError, NotFoundError
from linecli.secrets import normalize_name

from . import command_errors, get_settings, get_store, print_json, resolve_account
from ..constants import DEFAULT_ACCOUNT_NAME, NOT_LOGGED_IN_HINT

app = typer.Typer(help="Manage authentication")
console = Console()


@app.command()
def login(
    ctx: typer.Context,
    token: str = typer.Option(None, "--token", help="Channel access token (skips the browser)"),
    name: str = typer.Option(None, "--name", help="Account name (default: default; prefills the browser form)"),
    no_browser: bool = typer.Option(False, "--no-browser", help="Print the URL instead of opening a browser"),
    timeout: int = typer.Option(AUTH_TIMEOUT_SECONDS, help="Seconds to wait for the browser login"),
    no_verify: bool = typer.Option(False, "--no-verify", help="Save the token without checking it against the API"),
) -> None:
    """Authenticate with your LINE Official Account.

    Opens a browser to enter your channel access token from the LINE
    Developers Console. The token is stored in your system keyring.
    """
    store = get_store(get_settings(ctx))

    if token:
        account_name = name or DEFAULT_ACCOUNT_NAME
        with command_errors("Failed to save credentials"):
            store.set(account_name, token, "")
            record = store.get(account_name)
        console.print(f"[green]Logged in as {record.name}[/green]")
        return

    server = SetupServer(
        store,
        timeout=timeout,
        open_browser=not no_browser,
        verify_token=None if no_verify else verify_channel_token,
        announce=lambda url: console.print(f"If it doesn't open, visit: {url}\n"),
        account_name=name or "",
    )

    console.print("\n[bold]Opening browser for authentication...[/bold]")

    try:
        result = server.start()
    except LoginTimeoutError as e:
        console.print(f"\n[red]{e}[/red]")
        raise typer.Exit(1) from e
    except LoginCancelledError as e:
        console.print(f"\n[yellow]{e}[/yellow]")
        raise typer.Exit(1) from e
    except LineCLIError as e:
        console.print(f"\n[red]Authentication failed: {e}[/red]")
        raise typer.Exit(1) from e

    bot = f" ({result.bot_name})" if result.bot_name else ""
    console.print(f"\n[green]Successfully logged in as {result.account_name}{bot}[/green]")


@app.command()
def logout(
    ctx: typer.Context,
    name: str = typer.Option(None, "--name", help="Account name to log out (default: default)"),
) -> None:
    """Remove stored credentials for an account."""
    store = get_store(get_settings(ctx))
    account_name = name or DEFAULT_ACCOUNT_NAME

    try:
        store.delete(account_name)
    except NotFoundError as e:
        console.print(f"[yellow]No credentials found for {account_name}.[/yellow]")
        raise typer.Exit(1) from e
    except LineCLIError as e:
        console.print(f"[red]Failed to remove credentials: {e}[/red]")
        raise typer.Exit(1) from e

    console.print(f"[green]Logged out: {account_name}[/green]")


@app.command()
def status(ctx: typer.Context) -> None:
    """Show which account is active."""
    settings = get_settings(ctx)
    store = get_store(settings)

    with command_errors("Failed to list accounts"):
        accounts = store.list()

    if not accounts:
        console.print("[yellow]Not logged in.[/yellow]")
        console.print(NOT_LOGGED_IN_HINT)
        return

    active, source = resolve_account(settings, store)

    if settings.output == "json":
        print_json({"active": active, "source": source, "accounts": [a.to_dict() for a in accounts]})
        return

    console.print(f"Active account: [bold]{active}[/bold] {source}\n")
    console.print("All accounts:")
    for account in accounts:
        marker = "* " if account.name == active else "  "
        bot = f" - {account.bot_name}" if account.bot_name else ""
        primary = " (primary)" if account.is_primary else ""
        console.print(f"{marker}{account.name}{bot}{primary}", markup=False)


@app.command("list")
def list_accounts(ctx: typer.Context) -> None:
    """List configured accounts."""
    settings = get_settings(ctx)
    store = get_store(settings)

    with command_errors("Failed to list accounts"):
        accounts = store.list()

    if settings.output == "json":
        print_json([a.to_dict() for a in accounts])
        return

    if not accounts:
        console.print("[yellow]No accounts configured.[/yellow]")
        console.print(NOT_LOGGED_IN_HINT)
        return

    if settings.output == "table":
        table = Table()
        table.add_column("ACCOUNT", style="cyan", no_wrap=True)
        table.add_column("BOT")
        table.add_column("PRIMARY")
        table.add_column("CREATED")
        for account in accounts:
            table.add_row(
                account.name,
                account.bot_name,
                "*" if account.is_primary else "",
                account.created_at.strftime("%Y-%m-%d") if account.created_at else "",
            )
        console.print(table)
        return

    console.print("Configured accounts:")
    for account in accounts:
        bot = f" - {account.bot_name}" if account.bot_name else ""
        primary = " (primary)" if account.is_primary else ""
        created = f" [{account.created_at:%Y-%m-%d}]" if account.created_at else ""
        console.print(f"  {account.name}{bot}{primary}{created}", markup=False)


@app.command()
def use(
    ctx: typer.Context,
    name: str = typer.Argument(help="Account to make primary"),
) -> None:
    """Set the primary account used when --account is not given."""
    store = get_store(get_settings(ctx))

    with command_errors("Failed to set primary"):
        store.set_primary(name)

    console.print(f"[green]Primary account: {normalize_name(name)}[/green]")
