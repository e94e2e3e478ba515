"""Peer channel manager — owns the single active extension connection.

Connections arrive unauthenticated. The first frame that matters is an
``auth`` message; once its token checks out the connection becomes the
*active channel* and every dispatched command is sent over it. A newer
authenticated connection silently takes over the slot. The older socket is
left open but is no longer addressed.
"""

from __future__ import annotations

import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Protocol, runtime_checkable

from pydantic import BaseModel

from mcpbridge.exceptions import (
    AuthRejectedError,
    ExtensionNotConnectedError,
    MalformedMessageError,
    NotAuthenticatedError,
)
from mcpbridge.relay.auth import AuthenticationGate
from mcpbridge.relay.models import (
    AUTH_SUCCESS_MESSAGE,
    AuthResponse,
    ErrorNotice,
    ReplyEnvelope,
    auth_token_of,
    decode_frame,
    is_auth_message,
    parse_reply,
)

logger = logging.getLogger(__name__)

# Close code sent to a peer whose token was rejected (RFC 6455 "policy violation").
AUTH_REJECTED_CLOSE_CODE = 1008


# ---------------------------------------------------------------------------
# Transport protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class PeerTransport(Protocol):
    """Minimal bidirectional text transport (a WebSocket, or a fake in tests)."""

    @property
    def is_open(self) -> bool:
        """Whether frames can still be sent."""
        ...

    async def send_text(self, text: str) -> None:
        """Send one text frame."""
        ...

    async def close(self, code: int = 1000, reason: str = "") -> None:
        """Close the transport."""
        ...


@dataclass
class PeerConnection:
    """One extension connection, authenticated or not."""

    connection_id: str
    transport: PeerTransport
    authenticated: bool = False
    connected_at: float = field(default_factory=time.time)

    @property
    def is_open(self) -> bool:
        """Whether the underlying transport can still send."""
        return self.transport.is_open


ReplyHandler = Callable[[ReplyEnvelope], None]


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------


class PeerChannelManager:
    """Accepts extension connections and tracks the single active channel.

    Args:
        gate: Validates the token presented in ``auth`` messages.
        on_reply: Called with every well-formed reply from an authenticated peer.
    """

    def __init__(self, gate: AuthenticationGate, on_reply: ReplyHandler | None = None) -> None:
        self._gate = gate
        self._on_reply = on_reply
        self._active: PeerConnection | None = None
        self._connections: dict[str, PeerConnection] = {}
        self._ids = itertools.count(1)

    def set_reply_handler(self, on_reply: ReplyHandler) -> None:
        """Route authenticated replies to ``on_reply``."""
        self._on_reply = on_reply

    # ------------------------------------------------------------------
    # Active channel
    # ------------------------------------------------------------------

    def current_channel(self) -> PeerConnection | None:
        """Return the active authenticated connection, or ``None``."""
        return self._active

    @property
    def is_connected(self) -> bool:
        """Whether an active channel exists and its transport is open."""
        return self._active is not None and self._active.is_open

    @property
    def connection_count(self) -> int:
        """Number of open connections, authenticated or not."""
        return len(self._connections)

    async def send(self, channel: PeerConnection | None, text: str) -> None:
        """Send a text frame over ``channel``.

        Raises:
            ExtensionNotConnectedError: ``channel`` is ``None`` or its transport is closed.
        """
        if channel is None or not channel.is_open:
            raise ExtensionNotConnectedError()
        await channel.transport.send_text(text)

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def open_connection(self, transport: PeerTransport) -> PeerConnection:
        """Register a new, unauthenticated connection."""
        connection = PeerConnection(connection_id=f"conn-{next(self._ids)}", transport=transport)
        self._connections[connection.connection_id] = connection
        logger.info("Extension attempting to connect (%s)", connection.connection_id)
        return connection

    def close_connection(self, connection: PeerConnection) -> None:
        """Forget a connection whose transport closed or failed.

        Pending requests are left alone; their deadlines fail them.
        """
        self._connections.pop(connection.connection_id, None)
        connection.authenticated = False
        if self._active is connection:
            self._active = None
            logger.info("Extension disconnected (%s); no active channel", connection.connection_id)
        else:
            logger.debug("Connection %s closed", connection.connection_id)

    async def close_all(self) -> None:
        """Close every open connection (used at shutdown)."""
        for connection in list(self._connections.values()):
            try:
                await connection.transport.close(code=1001, reason="Relay shutting down")
            except Exception as exc:
                logger.debug("Error closing %s: %s", connection.connection_id, exc)
            self.close_connection(connection)

    # ------------------------------------------------------------------
    # Inbound frames
    # ------------------------------------------------------------------

    async def handle_frame(self, connection: PeerConnection, raw: str | bytes) -> None:
        """Process one inbound frame. Never raises for bad input."""
        try:
            data = decode_frame(raw)
        except MalformedMessageError as exc:
            logger.warning("Discarding frame from %s: %s", connection.connection_id, exc)
            return

        if is_auth_message(data):
            await self._authenticate(connection, auth_token_of(data))
            return

        if not connection.authenticated:
            notice = NotAuthenticatedError()
            logger.warning("Rejecting message from unauthenticated connection %s: %s", connection.connection_id, notice)
            await self._notify(connection, ErrorNotice(message=str(notice)))
            return

        try:
            reply = parse_reply(data)
        except MalformedMessageError as exc:
            logger.warning("Discarding frame from %s: %s", connection.connection_id, exc)
            return

        if self._on_reply is None:
            logger.warning("No reply handler registered; dropping reply %s", reply.request_id)
            return
        self._on_reply(reply)

    async def _authenticate(self, connection: PeerConnection, token: str) -> None:
        if self._gate.verify(token):
            connection.authenticated = True
            previous = self._active
            self._active = connection
            if previous is not None and previous is not connection:
                logger.info(
                    "Connection %s supersedes %s as the active channel",
                    connection.connection_id,
                    previous.connection_id,
                )
            logger.info("Extension authenticated successfully (%s)", connection.connection_id)
            await self._notify(connection, AuthResponse(success=True, message=AUTH_SUCCESS_MESSAGE))
            return

        connection.authenticated = False
        if self._active is connection:
            self._active = None
        rejection = AuthRejectedError()
        logger.warning("Authentication failed for %s: %s", connection.connection_id, rejection)
        await self._notify(connection, AuthResponse(success=False, message=str(rejection)))
        try:
            await connection.transport.close(code=AUTH_REJECTED_CLOSE_CODE, reason=str(rejection))
        except Exception as exc:
            logger.debug("Error closing rejected connection %s: %s", connection.connection_id, exc)
        self.close_connection(connection)

    async def _notify(self, connection: PeerConnection, message: BaseModel) -> None:
        if not connection.is_open:
            return
        try:
            await connection.transport.send_text(message.model_dump_json())
        except Exception as exc:
            logger.warning("Failed to notify %s: %s", connection.connection_id, exc)
