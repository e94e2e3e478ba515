"""CLI commands for inspecting and validating mcpbridge settings."""

from __future__ import annotations

import json

import typer
from rich.console import Console

settings_app = typer.Typer(help="Inspect and validate mcpbridge configuration.")
console = Console()


def _redact(token: str) -> str:
    if not token:
        return ""
    return f"{token[:4]}…({len(token)} chars)"


@settings_app.command("show")
def show_settings() -> None:
    """Display the currently resolved settings (token redacted)."""
    from mcpbridge.settings import get_settings

    settings = get_settings()
    data = settings.model_dump(mode="json")
    data["relay"]["token"] = _redact(settings.relay.token)
    console.print_json(json.dumps(data, indent=2, default=str))


@settings_app.command("validate")
def validate_settings() -> None:
    """Validate settings and report any issues."""
    from mcpbridge.settings import get_settings

    try:
        settings = get_settings()
    except Exception as e:
        console.print(f"[red]✗[/red] Settings validation failed: {e}")
        raise typer.Exit(code=1)

    console.print("[green]✓[/green] Settings are valid.")
    console.print(f"  Environment: {settings.env}")
    console.print(f"  Relay: ws://{settings.relay.host}:{settings.relay.port}")
    console.print(f"  Request timeout: {settings.relay.request_timeout_ms}ms")
    if settings.has_token:
        console.print("  Token: configured")
    else:
        console.print("  [yellow]⚠[/yellow] Token: not configured (pass --token to `mcpbridge serve`)")
