"""Catalog of browser tools exposed over MCP.

Each tool maps to one extension command. The relay does not interpret the
parameters; the schemas here only tell the MCP client what to send.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import mcp.types as types

_TAB_ID = {
    "type": "number",
    "description": "The ID of the tab (optional, uses active tab if not provided)",
}
_SELECTOR_TYPE = {
    "type": "string",
    "enum": ["css", "xpath"],
    "description": "Type of selector (default: css)",
    "default": "css",
}


@dataclass(frozen=True)
class BrowserTool:
    """An MCP tool backed by a single extension command."""

    name: str
    command: str
    description: str
    properties: dict[str, Any] = field(default_factory=dict)
    required: tuple[str, ...] = ()
    forward_params: bool = True

    @property
    def input_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": "object", "properties": self.properties}
        if self.required:
            schema["required"] = list(self.required)
        return schema

    def to_mcp(self) -> types.Tool:
        """Return the MCP ``Tool`` definition."""
        return types.Tool(name=self.name, description=self.description, inputSchema=self.input_schema)

    def command_params(self, arguments: dict[str, Any] | None) -> dict[str, Any]:
        """Parameters sent to the extension for this call."""
        if not self.forward_params:
            return {}
        return dict(arguments or {})


BROWSER_TOOLS: tuple[BrowserTool, ...] = (
    BrowserTool(
        name="browser_open_page",
        command="openPage",
        description="Open a new page in the browser. Can open in a new tab or new window.",
        properties={
            "url": {"type": "string", "description": "The URL to open (e.g., https://example.com)"},
            "active": {
                "type": "boolean",
                "description": "Whether to make the new tab/window active (default: true)",
                "default": True,
            },
            "newWindow": {
                "type": "boolean",
                "description": "Whether to open in a new window instead of a new tab (default: false)",
                "default": False,
            },
        },
        required=("url",),
    ),
    BrowserTool(
        name="browser_close_page",
        command="closePage",
        description="Close a browser tab. If no tabId is provided, closes the current active tab.",
        properties={
            "tabId": {
                "type": "number",
                "description": "The ID of the tab to close (optional, closes active tab if not provided)",
            },
        },
    ),
    BrowserTool(
        name="browser_screenshot",
        command="screenshot",
        description=(
            "Take a screenshot of the browser tab. Can capture just the visible viewport or the "
            "entire scrollable page. Optionally save to disk."
        ),
        properties={
            "tabId": _TAB_ID,
            "format": {
                "type": "string",
                "enum": ["png", "jpeg"],
                "description": "Image format for the screenshot (default: png)",
                "default": "png",
            },
            "quality": {"type": "number", "description": "Quality for JPEG format (0-100, default: 90)", "default": 90},
            "fullPage": {
                "type": "boolean",
                "description": "Capture the entire scrollable page instead of just the visible viewport (default: false)",
                "default": False,
            },
            "saveToFile": {
                "type": "boolean",
                "description": "Save the screenshot to disk in .chrome-mcp-bridge/images/ directory (default: false)",
                "default": False,
            },
            "cwd": {
                "type": "string",
                "description": (
                    "Current working directory where .chrome-mcp-bridge/images/ directory will be created "
                    "(required if saveToFile is true)"
                ),
            },
            "filename": {
                "type": "string",
                "description": "Custom filename for the saved screenshot (optional, auto-generated if not provided)",
            },
        },
    ),
    BrowserTool(
        name="browser_scroll",
        command="scroll",
        description="Scroll the page to a specific position.",
        properties={
            "tabId": _TAB_ID,
            "x": {"type": "number", "description": "Horizontal scroll position in pixels (default: 0)", "default": 0},
            "y": {"type": "number", "description": "Vertical scroll position in pixels (default: 0)", "default": 0},
            "behavior": {
                "type": "string",
                "enum": ["smooth", "auto"],
                "description": "Scroll behavior (default: smooth)",
                "default": "smooth",
            },
        },
    ),
    BrowserTool(
        name="browser_find",
        command="find",
        description="Find and highlight text in the current page.",
        properties={
            "tabId": _TAB_ID,
            "text": {"type": "string", "description": "The text to search for in the page"},
            "highlightAll": {
                "type": "boolean",
                "description": "Whether to highlight all matches (default: false)",
                "default": False,
            },
        },
        required=("text",),
    ),
    BrowserTool(
        name="browser_get_current_tab",
        command="getCurrentTab",
        description="Get information about the current active tab.",
        forward_params=False,
    ),
    BrowserTool(
        name="browser_list_tabs",
        command="listTabs",
        description="List all open tabs in the browser.",
        forward_params=False,
    ),
    BrowserTool(
        name="browser_click",
        command="click",
        description="Click on an element in the page using a CSS selector or XPath.",
        properties={
            "tabId": _TAB_ID,
            "selector": {
                "type": "string",
                "description": "CSS selector or XPath to locate the element (e.g., '#submit-button', '//button[text()=\"Submit\"]')",
            },
            "selectorType": _SELECTOR_TYPE,
            "waitForElement": {
                "type": "boolean",
                "description": "Wait for the element to be present before clicking (default: true)",
                "default": True,
            },
            "timeout": {
                "type": "number",
                "description": "Maximum time to wait for element in milliseconds (default: 5000)",
                "default": 5000,
            },
        },
        required=("selector",),
    ),
    BrowserTool(
        name="browser_fill_form",
        command="fillForm",
        description="Fill out form fields in the page. Can fill multiple fields at once.",
        properties={
            "tabId": _TAB_ID,
            "fields": {
                "type": "array",
                "description": "Array of form fields to fill",
                "items": {
                    "type": "object",
                    "properties": {
                        "selector": {"type": "string", "description": "CSS selector or XPath to locate the field"},
                        "selectorType": _SELECTOR_TYPE,
                        "value": {"type": "string", "description": "Value to fill in the field"},
                        "clear": {
                            "type": "boolean",
                            "description": "Clear existing value before filling (default: true)",
                            "default": True,
                        },
                    },
                    "required": ["selector", "value"],
                },
            },
            "waitForElements": {
                "type": "boolean",
                "description": "Wait for elements to be present before filling (default: true)",
                "default": True,
            },
            "timeout": {
                "type": "number",
                "description": "Maximum time to wait for elements in milliseconds (default: 5000)",
                "default": 5000,
            },
        },
        required=("fields",),
    ),
    BrowserTool(
        name="browser_get_page_content",
        command="getPageContent",
        description=(
            "Get the rendered HTML content, text content, or both from a page after it has loaded. "
            "Includes page metadata like title, description, and Open Graph tags."
        ),
        properties={
            "tabId": _TAB_ID,
            "format": {
                "type": "string",
                "enum": ["html", "text", "both"],
                "description": (
                    "The format of content to retrieve: 'html' for full HTML, 'text' for visible text only, "
                    "'both' for both formats (default: html)"
                ),
                "default": "html",
            },
            "includeMetadata": {
                "type": "boolean",
                "description": "Include page metadata like title, description, Open Graph tags, etc. (default: true)",
                "default": True,
            },
        },
    ),
)

_BY_NAME: dict[str, BrowserTool] = {tool.name: tool for tool in BROWSER_TOOLS}


def get_tool(name: str) -> BrowserTool | None:
    """Look up a tool by its MCP name."""
    return _BY_NAME.get(name)


def list_mcp_tools() -> list[types.Tool]:
    """Return every tool as an MCP definition, in catalog order."""
    return [tool.to_mcp() for tool in BROWSER_TOOLS]
