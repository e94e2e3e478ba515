"""``mcpbridge serve`` — run the relay and the MCP stdio server."""

from __future__ import annotations

import asyncio
from typing import Optional

import typer
from rich.console import Console

# stdout is the MCP channel; everything human-readable goes to stderr.
err_console = Console(stderr=True)


def resolve_serve_settings(
    token: Optional[str] = None,
    host: Optional[str] = None,
    port: Optional[int] = None,
    timeout_ms: Optional[int] = None,
):
    """Return settings with CLI flags layered over config and env."""
    from mcpbridge.settings import get_settings

    settings = get_settings()
    overrides = {
        key: value
        for key, value in {"token": token, "host": host, "port": port, "request_timeout_ms": timeout_ms}.items()
        if value is not None
    }
    if overrides:
        settings = settings.model_copy(update={"relay": settings.relay.model_copy(update=overrides)})
    return settings


def serve(
    token: Optional[str] = typer.Option(None, "--token", "-t", help="Shared secret the extension must present."),
    host: Optional[str] = typer.Option(None, "--host", help="Interface for the extension WebSocket."),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port for the extension WebSocket."),
    timeout_ms: Optional[int] = typer.Option(None, "--timeout-ms", min=1, help="Per-command reply deadline."),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING or ERROR."),
) -> None:
    """Run the MCP server on stdio and the extension relay on a local WebSocket.

    Exits when the MCP client closes stdin.
    """
    from mcpbridge.bridge import run_bridge
    from mcpbridge.logging_setup import configure_logging

    settings = resolve_serve_settings(token=token, host=host, port=port, timeout_ms=timeout_ms)

    if not settings.has_token:
        err_console.print("[red]✗ ERROR: No authentication token provided![/red]")
        err_console.print("   Run: mcpbridge token generate   to create a secure token")
        err_console.print("   Then add it to your MCP config: --token=YOUR_TOKEN")
        raise typer.Exit(code=1)

    configure_logging(log_level or settings.logging.level, settings.logging.format)

    try:
        asyncio.run(run_bridge(settings))
    except OSError as exc:
        err_console.print(
            f"[red]✗[/red] Could not start the relay on {settings.relay.host}:{settings.relay.port}: {exc}"
        )
        raise typer.Exit(code=1)
    except KeyboardInterrupt:
        pass
