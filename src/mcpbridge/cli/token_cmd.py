"""``mcpbridge token`` — create the shared secret for the extension."""

from __future__ import annotations

import json
import secrets

import typer
from rich.console import Console
from rich.panel import Panel

token_app = typer.Typer(help="Create and manage the extension access token.")
console = Console()

TOKEN_BYTES = 32


def generate_token() -> str:
    """Return a new 256-bit token as 64 hex characters."""
    return secrets.token_hex(TOKEN_BYTES)


def client_config(token: str, server_name: str = "chrome-mcp-bridge") -> dict:
    """MCP client configuration that launches the bridge with ``token``."""
    return {
        "mcpServers": {
            server_name: {
                "command": "mcpbridge",
                "args": ["serve", f"--token={token}"],
            }
        }
    }


@token_app.command("generate")
def generate(
    as_json: bool = typer.Option(False, "--json", help="Print only a JSON object with the token."),
) -> None:
    """Generate a secure random token and show how to configure it."""
    token = generate_token()

    if as_json:
        typer.echo(json.dumps({"token": token}))
        return

    console.print(Panel(f"[bold]{token}[/bold]", title="Chrome MCP Bridge access token", border_style="green"))
    console.print("\n[bold]1.[/bold] Add this server to your MCP client configuration:\n")
    console.print_json(json.dumps(client_config(token), indent=2))
    console.print("\n[bold]2.[/bold] Enter the same token in the Chrome extension popup.")
    console.print("[bold]3.[/bold] Restart your MCP client.\n")
