"""Relay state — the explicit home of the active channel slot and correlation table.

Built once at startup and handed to both the WebSocket endpoint and the MCP
front end. Capacity is one active authenticated channel; independent
instances share nothing, so tests can build as many as they like.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from mcpbridge.exceptions import RequestTimeoutError
from mcpbridge.relay.auth import AuthenticationGate
from mcpbridge.relay.channel import PeerChannelManager
from mcpbridge.relay.correlation import CorrelationTable
from mcpbridge.relay.dispatcher import DEFAULT_TIMEOUT_MS, RequestDispatcher

if TYPE_CHECKING:
    from mcpbridge.settings.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class RelayState:
    """Wiring of gate → channel manager → dispatcher around one correlation table."""

    gate: AuthenticationGate
    table: CorrelationTable
    channels: PeerChannelManager
    dispatcher: RequestDispatcher

    @classmethod
    def create(cls, secret: str, default_timeout_ms: int = DEFAULT_TIMEOUT_MS) -> "RelayState":
        """Build a fresh relay state for ``secret``.

        Raises:
            MissingSecretError: ``secret`` is blank.
        """
        gate = AuthenticationGate(secret)
        table = CorrelationTable()
        channels = PeerChannelManager(gate)
        dispatcher = RequestDispatcher(channels, table, default_timeout_ms=default_timeout_ms)
        channels.set_reply_handler(dispatcher.handle_reply)
        return cls(gate=gate, table=table, channels=channels, dispatcher=dispatcher)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "RelayState":
        """Build relay state from resolved settings."""
        return cls.create(settings.relay.token, default_timeout_ms=settings.relay.request_timeout_ms)

    async def shutdown(self) -> None:
        """Close every peer connection and fail whatever is still in flight."""
        await self.channels.close_all()
        failed = self.table.fail_all(lambda p: RequestTimeoutError(p.timeout_ms, "Relay shutting down"))
        if failed:
            logger.info("Failed %d in-flight request(s) at shutdown", failed)

    def health(self) -> dict[str, object]:
        """Return a small status summary for the health endpoint."""
        return {
            "status": "ok",
            "extension_connected": self.channels.is_connected,
            "pending_requests": len(self.table),
        }
