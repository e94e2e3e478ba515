"""MCP front end — turns ``tools/call`` requests into extension commands.

The handler looks the tool up in the catalog, dispatches its command over
the relay and shapes the reply into MCP content. Every failure comes back as
an ``isError`` result; nothing raised here reaches the MCP session.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from mcpbridge import __version__
from mcpbridge.exceptions import BridgeError, ExtensionCommandError, InvalidToolArgumentsError, UnknownToolError
from mcpbridge.frontend.screenshots import DEFAULT_SCREENSHOTS_DIR, save_screenshot, strip_data_url
from mcpbridge.frontend.tools import BrowserTool, get_tool, list_mcp_tools
from mcpbridge.relay.dispatcher import RequestDispatcher

logger = logging.getLogger(__name__)

SERVER_NAME = "chrome-mcp-bridge"


def text_content(text: str) -> types.TextContent:
    return types.TextContent(type="text", text=text)


def error_result(exc: Exception) -> types.CallToolResult:
    """Render a failure as an explicit MCP error result."""
    if isinstance(exc, BridgeError):
        text = f"Error [{exc.kind}]: {exc}"
    else:
        text = f"Error: {exc}"
    return types.CallToolResult(content=[text_content(text)], isError=True)


class BrowserToolHandler:
    """Executes catalog tools through a ``RequestDispatcher``.

    Args:
        dispatcher: Relay dispatcher used for every command.
        screenshots_dir: Directory, relative to the caller's ``cwd``, for saved screenshots.
        timeout_ms: Per-command deadline; ``None`` uses the dispatcher default.
    """

    def __init__(
        self,
        dispatcher: RequestDispatcher,
        screenshots_dir: str = DEFAULT_SCREENSHOTS_DIR,
        timeout_ms: int | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._screenshots_dir = screenshots_dir
        self._timeout_ms = timeout_ms

    async def call(self, name: str, arguments: dict[str, Any] | None) -> types.CallToolResult:
        """Run one tool call and return its MCP result."""
        arguments = arguments or {}
        try:
            tool = get_tool(name)
            if tool is None:
                raise UnknownToolError(name)
            if tool.name == "browser_screenshot":
                return await self._screenshot(tool, arguments)

            result = await self._dispatcher.dispatch(tool.command, tool.command_params(arguments), self._timeout_ms)
            return types.CallToolResult(content=[text_content(json.dumps(result, indent=2, default=str))])
        except BridgeError as exc:
            logger.warning("Tool %s failed: %s", name, exc)
            return error_result(exc)
        except Exception as exc:
            logger.exception("Tool %s raised unexpectedly", name)
            return error_result(exc)

    async def _screenshot(self, tool: BrowserTool, arguments: dict[str, Any]) -> types.CallToolResult:
        save_to_file = bool(arguments.get("saveToFile"))
        cwd = arguments.get("cwd")
        if save_to_file and (not cwd or not isinstance(cwd, str)):
            raise InvalidToolArgumentsError("cwd parameter is required when saveToFile is true")

        result = await self._dispatcher.dispatch(tool.command, tool.command_params(arguments), self._timeout_ms)
        if not isinstance(result, dict) or not isinstance(result.get("screenshot"), str):
            raise ExtensionCommandError("Extension returned no screenshot data", command=tool.command)

        image_format = str(result.get("format") or arguments.get("format") or "png")
        image_b64 = strip_data_url(result["screenshot"])
        tab_id = result.get("tabId")

        text = f"Screenshot captured successfully from tab {tab_id}"
        if save_to_file:
            saved = save_screenshot(
                image_b64,
                image_format,
                cwd,
                filename=arguments.get("filename"),
                dir_name=self._screenshots_dir,
            )
            text += f" and saved to: {saved}"

        return types.CallToolResult(
            content=[
                text_content(text),
                types.ImageContent(type="image", data=image_b64, mimeType=f"image/{image_format}"),
            ]
        )


def build_mcp_server(handler: BrowserToolHandler) -> Server:
    """Create the low-level MCP server with tool listing and execution wired up."""
    server: Server = Server(SERVER_NAME, version=__version__)

    @server.list_tools()
    async def handle_list_tools() -> list[types.Tool]:
        """List the browser tools."""
        return list_mcp_tools()

    @server.call_tool(validate_input=False)
    async def handle_call_tool(name: str, arguments: dict[str, Any] | None) -> types.CallToolResult:
        """Forward a tool call to the extension."""
        return await handler.call(name, arguments)

    return server


async def serve_stdio(server: Server) -> None:
    """Run ``server`` over stdin/stdout until the client closes stdin."""
    async with mcp.server.stdio.stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            InitializationOptions(
                server_name=SERVER_NAME,
                server_version=__version__,
                capabilities=server.get_capabilities(
                    notification_options=NotificationOptions(),
                    experimental_capabilities={},
                ),
            ),
        )
    logger.info("Stdin closed; MCP session ended")
