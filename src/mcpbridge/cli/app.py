"""Unified CLI entry point for Chrome MCP Bridge.

Config precedence: settings.default.toml -> settings.local.toml -> env vars (MCPBRIDGE_* with double underscores) -> CLI flags.
"""

from __future__ import annotations

import typer

from mcpbridge.cli.serve_cmd import serve
from mcpbridge.cli.settings_cmd import settings_app
from mcpbridge.cli.token_cmd import token_app

try:
    from importlib.metadata import version

    VERSION = version("mcpbridge")
except Exception:
    VERSION = "unknown"

APP_HELP = (
    "mcpbridge — Chrome MCP Bridge. "
    "Relays MCP tool calls to the browser extension over a local, token-authenticated WebSocket. "
    "Config precedence: settings.default.toml -> settings.local.toml -> env vars (MCPBRIDGE_* with __) -> CLI flags."
)

app = typer.Typer(add_completion=True, help=APP_HELP)

app.command("serve")(serve)
app.add_typer(token_app, name="token")
app.add_typer(settings_app, name="settings")


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context, version: bool = typer.Option(False, "--version", help="Show version and exit.")) -> None:
    """Show help when no subcommand is provided."""
    if version:
        typer.echo(f"mcpbridge {VERSION}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


if __name__ == "__main__":
    app()
