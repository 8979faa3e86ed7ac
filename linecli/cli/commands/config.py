"""Config commands for the line CLI."""

from __future__ import annotations

import typer
from rich.console import Console

from linecli.config import default_config_path, example_config

from . import get_settings, print_json

app = typer.Typer(
    help="""Show configuration.

Values are resolved in this order: command-line flags, environment
variables (LINE_ACCOUNT, LINE_OUTPUT, LINE_CREDENTIAL_BACKEND), the config
file, built-in defaults.

Config file locations (first found is used):
$XDG_CONFIG_HOME/line-cli/config.json, ~/.config/line-cli/config.json,
~/.line-cli.json""",
)
console = Console()


@app.callback(invoke_without_command=True)
def config(ctx: typer.Context) -> None:
    """Show current configuration values."""
    if ctx.invoked_subcommand is None:
        show(ctx)


@app.command()
def show(ctx: typer.Context) -> None:
    """Show current configuration values."""
    settings = get_settings(ctx)

    if settings.output == "json":
        print_json(
            {
                "config_path": str(settings.config_path) if settings.config_path else None,
                "account": settings.account or None,
                "output": settings.output,
                "debug": settings.debug,
                "credential_backend": settings.credential_backend,
            }
        )
        return

    console.print("[bold]Configuration[/bold]\n")
    if settings.config_path:
        console.print(f"Config file: {settings.config_path}")
    else:
        console.print("Config file: (not found)")
        console.print(f"             Create at: {default_config_path()}")

    console.print()
    console.print(f"  account:            {settings.account or '(not set)'}")
    console.print(f"  output:             {settings.output}")
    console.print(f"  debug:              {settings.debug}")
    console.print(f"  credential_backend: {settings.credential_backend}")
    console.print("\nRun [bold]line config example[/bold] to see an example config file.")


@app.command()
def path(ctx: typer.Context) -> None:
    """Show the config file path."""
    settings = get_settings(ctx)
    loaded = str(settings.config_path) if settings.config_path else None
    recommended = str(default_config_path())

    if settings.output == "json":
        print_json({"loaded": loaded, "recommended": recommended})
        return

    typer.echo(f"Loaded:      {loaded or '(none)'}")
    typer.echo(f"Recommended: {recommended}")


@app.command()
def example() -> None:
    """Print an example config file."""
    typer.echo(example_config(), nl=False)
