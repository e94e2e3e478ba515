"""Request dispatcher — sends a command to the extension and awaits its reply.

Usage::

    result = await dispatcher.dispatch("screenshot", {"fullPage": True}, timeout_ms=60_000)

Many dispatches may be outstanding at once over the single active channel.
Each has its own correlation id and deadline; replies are routed by id, so
arrival order does not matter.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from mcpbridge.exceptions import ExtensionCommandError, ExtensionNotConnectedError
from mcpbridge.relay.channel import PeerChannelManager
from mcpbridge.relay.correlation import CorrelationTable, new_request_id
from mcpbridge.relay.models import CommandEnvelope, ReplyEnvelope

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 30_000


class RequestDispatcher:
    """Issue commands over the active channel and correlate their replies.

    Args:
        channels: Source of the active extension channel.
        table: Holds one ``PendingRequest`` per in-flight command.
        default_timeout_ms: Deadline used when ``dispatch`` gets none.
    """

    def __init__(
        self,
        channels: PeerChannelManager,
        table: CorrelationTable,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self._channels = channels
        self._table = table
        self._default_timeout_ms = default_timeout_ms

    @property
    def pending_count(self) -> int:
        """Number of commands still awaiting a reply."""
        return len(self._table)

    async def dispatch(
        self,
        command: str,
        params: dict[str, Any] | None = None,
        timeout_ms: int | None = None,
    ) -> Any:
        """Send ``command`` to the extension and return its reply payload.

        Raises:
            ExtensionNotConnectedError: No active authenticated channel; nothing was sent.
            RequestTimeoutError: No reply arrived within ``timeout_ms``.
            ExtensionCommandError: The extension replied with ``success: false``.
        """
        effective_timeout = timeout_ms if timeout_ms is not None else self._default_timeout_ms
        channel = self._channels.current_channel()
        if channel is None or not channel.is_open:
            raise ExtensionNotConnectedError()

        request_id = new_request_id()
        while request_id in self._table:
            request_id = new_request_id()

        envelope = CommandEnvelope(id=request_id, command=command, params=params or {})
        pending = self._table.register(request_id, effective_timeout, command=command)

        try:
            await self._channels.send(channel, envelope.model_dump_json())
        except Exception:
            self._table.discard(request_id)
            raise

        logger.debug("Dispatched %s as %s (timeout %dms)", command, request_id, effective_timeout)
        try:
            return await pending.future
        except asyncio.CancelledError:
            self._table.discard(request_id)
            raise

    def handle_reply(self, reply: ReplyEnvelope) -> None:
        """Route a reply from the extension to its waiting dispatch."""
        if reply.success:
            self._table.resolve(reply.request_id, reply.data)
        else:
            pending = self._table.get(reply.request_id)
            command = pending.command if pending is not None else ""
            self._table.reject(reply.request_id, ExtensionCommandError(reply.error or "Unknown error", command=command))
