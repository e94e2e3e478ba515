"""Process entry point: relay listener plus MCP stdio front end on one event loop."""

from __future__ import annotations

import logging

from mcpbridge.frontend.server import BrowserToolHandler, build_mcp_server, serve_stdio
from mcpbridge.relay.server import RelayServer
from mcpbridge.relay.state import RelayState
from mcpbridge.settings.config import Settings

logger = logging.getLogger(__name__)


async def run_bridge(settings: Settings) -> None:
    """Serve until the MCP client closes stdin, then shut the relay down.

    Raises:
        MissingSecretError: No token is configured. Nothing is started.
        OSError: The relay port could not be bound.
    """
    state = RelayState.from_settings(settings)
    relay = RelayServer(
        state,
        host=settings.relay.host,
        port=settings.relay.port,
        max_message_bytes=settings.relay.max_message_bytes,
    )
    handler = BrowserToolHandler(state.dispatcher, screenshots_dir=settings.screenshots.dir_name)
    server = build_mcp_server(handler)

    await relay.start()
    logger.info("Authentication enabled - token required")
    try:
        await serve_stdio(server)
    finally:
        logger.info("Shutting down WebSocket relay...")
        await state.shutdown()
        await relay.stop()
