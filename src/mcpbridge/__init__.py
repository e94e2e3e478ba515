"""Chrome MCP Bridge — relays MCP tool calls to a browser extension over a local WebSocket."""

from __future__ import annotations

try:
    from importlib.metadata import version

    __version__ = version("mcpbridge")
except Exception:
    __version__ = "0.0.0"
