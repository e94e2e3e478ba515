"""MCP front end: the browser tool catalog and the stdio server that serves it."""

from __future__ import annotations

from mcpbridge.frontend.server import BrowserToolHandler, build_mcp_server, serve_stdio
from mcpbridge.frontend.tools import BROWSER_TOOLS, BrowserTool, get_tool, list_mcp_tools

__all__ = [
    "BROWSER_TOOLS",
    "BrowserTool",
    "BrowserToolHandler",
    "build_mcp_server",
    "get_tool",
    "list_mcp_tools",
    "serve_stdio",
]
