"""mcpbridge exception hierarchy.

Every error carries a short ``kind`` label so callers (and the MCP front
end) can render it as a labelled failure rather than a bare message.
"""

from __future__ import annotations

from typing import Any


class BridgeError(Exception):
    """Base exception for all mcpbridge-specific errors."""

    kind = "bridge_error"

    def to_dict(self) -> dict[str, Any]:
        """Return the labelled failure as a plain dictionary."""
        return {"kind": self.kind, "message": str(self)}


class MissingSecretError(BridgeError):
    """Raised at startup when no shared secret has been configured."""

    kind = "missing_secret"

    def __init__(self) -> None:
        super().__init__(
            "No authentication token provided. "
            "Run `mcpbridge token generate` to create one, then pass it with --token=YOUR_TOKEN."
        )


class NotAuthenticatedError(BridgeError):
    """A peer sent a non-auth message before authenticating."""

    kind = "not_authenticated"

    def __init__(self, message: str = "Not authenticated") -> None:
        super().__init__(message)


class AuthRejectedError(BridgeError):
    """A peer presented the wrong secret; its connection is terminated."""

    kind = "auth_rejected"

    def __init__(self, message: str = "Invalid authentication token") -> None:
        super().__init__(message)


class ExtensionNotConnectedError(BridgeError):
    """A dispatch was attempted while no authenticated peer channel is open."""

    kind = "extension_not_connected"

    def __init__(self, message: str = "Extension not connected") -> None:
        super().__init__(message)


class RequestTimeoutError(BridgeError):
    """No reply arrived for a dispatched command before its deadline.

    Attributes:
        timeout_ms: The deadline that elapsed, in milliseconds.
    """

    kind = "request_timeout"

    def __init__(self, timeout_ms: int, message: str | None = None) -> None:
        self.timeout_ms = timeout_ms
        super().__init__(message or f"Request timeout after {timeout_ms}ms")


class MalformedMessageError(BridgeError):
    """An inbound frame could not be decoded into a known envelope.

    Attributes:
        raw: A truncated copy of the offending payload, for logging.
    """

    kind = "malformed_message"

    def __init__(self, detail: str, raw: str = "") -> None:
        self.raw = raw[:200]
        super().__init__(f"Malformed message: {detail}")


class ExtensionCommandError(BridgeError):
    """The peer replied to a command with ``success: false``.

    Attributes:
        command: The command name, when known.
    """

    kind = "command_failed"

    def __init__(self, message: str, command: str = "") -> None:
        self.command = command
        super().__init__(message)


class UnknownToolError(BridgeError):
    """The MCP client called a tool that is not in the catalog."""

    kind = "unknown_tool"

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown tool: {name}")


class InvalidToolArgumentsError(BridgeError):
    """Tool arguments the front end needs for itself are missing or invalid."""

    kind = "invalid_arguments"
