"""Main entry point for the line CLI."""

from __future__ import annotations

import logging

try:
    import typer
except ImportError:
    import sys

    print("The line CLI requires extras: pip install line-official-cli[cli]")
    sys.exit(1)

from rich.console import Console
from rich.logging import RichHandler

from linecli.config import build_settings
from linecli.exceptions import ConfigError

from .commands import auth, bot, config

app = typer.Typer(
    name="line",
    help="LINE Official Account CLI - manage accounts and credentials",
    no_args_is_help=True,
)

app.add_typer(auth.app, name="auth")
app.add_typer(bot.app, name="bot")
app.add_typer(config.app, name="config")

_stderr = Console(stderr=True)


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=_stderr, show_path=False)],
        force=True,
    )


def _version_callback(value: bool) -> None:
    """Handle --version and exit early."""
    if value:
        from linecli import __version__

        typer.echo(f"line {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    account: str = typer.Option(None, "--account", help="Account name (or LINE_ACCOUNT env)"),
    output: str = typer.Option(None, "--output", "-o", help="Output format: text|json|table (or LINE_OUTPUT env)"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug output"),
    version: bool = typer.Option(
        False,
        "--version",
        help="Show the CLI version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """LINE Official Account CLI root callback."""
    _ = version
    try:
        ctx.obj = build_settings(account=account, output=output, debug=debug)
    except ConfigError as e:
        _stderr.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e
    _configure_logging(ctx.obj.debug)


@app.command()
def version() -> None:
    """Show the CLI version."""
    from linecli import __version__

    typer.echo(f"line {__version__}")


if __name__ == "__main__":
    app()
