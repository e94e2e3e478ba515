"""WebSocket listener the browser extension connects to.

Endpoints:

* ``/`` — the extension channel. Frames are handed to the
  ``PeerChannelManager``; authentication happens at the message level, so
  every transport-level connection is accepted.
* ``/health`` — connection and in-flight status.

The app is served by ``uvicorn.Server`` inside the caller's event loop so the
relay and the MCP front end share one loop and one ``RelayState``.
"""

from __future__ import annotations

import asyncio
import logging
import socket

import uvicorn
from fastapi import APIRouter, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState

from mcpbridge import __version__
from mcpbridge.relay.state import RelayState

logger = logging.getLogger(__name__)

relay_router = APIRouter(tags=["relay"])


# ---------------------------------------------------------------------------
# Transport adapter
# ---------------------------------------------------------------------------


class WebSocketTransport:
    """Adapts a FastAPI ``WebSocket`` to the ``PeerTransport`` protocol."""

    def __init__(self, websocket: WebSocket) -> None:
        self._ws = websocket

    @property
    def is_open(self) -> bool:
        """Whether both sides of the WebSocket are still connected."""
        return (
            self._ws.client_state == WebSocketState.CONNECTED
            and self._ws.application_state == WebSocketState.CONNECTED
        )

    async def send_text(self, text: str) -> None:
        """Send one text frame to the extension."""
        await self._ws.send_text(text)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        """Close the socket unless the application side already closed it."""
        if self._ws.application_state != WebSocketState.CONNECTED:
            return
        await self._ws.close(code=code, reason=reason)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@relay_router.get("/health")
async def health(request: Request) -> dict[str, object]:
    """Report whether the extension is connected and how many commands are in flight."""
    state: RelayState = request.app.state.relay
    return state.health()


@relay_router.websocket("/")
async def extension_channel(websocket: WebSocket) -> None:
    """Serve one extension connection until either side closes it."""
    state: RelayState = websocket.app.state.relay
    await websocket.accept()
    connection = state.channels.open_connection(WebSocketTransport(websocket))

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes")
            if raw is None:
                continue
            await state.channels.handle_frame(connection, raw)
            if websocket.application_state != WebSocketState.CONNECTED:
                # Closed from our side, e.g. after a rejected token.
                break
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("Extension connection %s failed", connection.connection_id)
    finally:
        state.channels.close_connection(connection)


def create_app(state: RelayState) -> FastAPI:
    """Build the relay's FastAPI application around ``state``."""
    application = FastAPI(
        title="Chrome MCP Bridge relay",
        description="WebSocket relay between an MCP client and the browser extension.",
        version=__version__,
    )
    application.state.relay = state
    application.include_router(relay_router)
    return application


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


def bind_socket(host: str, port: int) -> socket.socket:
    """Bind a listening TCP socket, raising ``OSError`` if the port is taken."""
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
    except OSError:
        sock.close()
        raise
    return sock


class RelayServer:
    """Runs the relay app on ``host:port`` as a background task.

    Args:
        state: Shared relay state.
        host: Interface to bind. Keep this on localhost.
        port: TCP port; ``0`` picks a free one (see ``port`` after ``start``).
        max_message_bytes: Largest WebSocket frame accepted from the extension.
    """

    def __init__(
        self,
        state: RelayState,
        host: str = "127.0.0.1",
        port: int = 8765,
        max_message_bytes: int = 32 * 1024 * 1024,
    ) -> None:
        self._host = host
        self._port = port
        self._config = uvicorn.Config(
            create_app(state),
            host=host,
            port=port,
            ws_max_size=max_message_bytes,
            lifespan="off",
            log_config=None,
            access_log=False,
        )
        self._server = uvicorn.Server(self._config)
        self._socket: socket.socket | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def port(self) -> int:
        """The bound port (resolved after ``start`` when ``0`` was requested)."""
        if self._socket is not None:
            return self._socket.getsockname()[1]
        return self._port

    @property
    def running(self) -> bool:
        """Whether the server task is still serving."""
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Bind and start serving; returns once the listener is up.

        Raises:
            OSError: The address could not be bound.
        """
        self._socket = bind_socket(self._host, self._port)
        self._task = asyncio.create_task(self._server.serve(sockets=[self._socket]))
        try:
            while not self._server.started:
                if self._task.done():
                    self._task.result()
                    raise RuntimeError("Relay server exited during startup")
                await asyncio.sleep(0.01)
        except BaseException:
            self._abandon_startup()
            raise
        logger.info("WebSocket relay listening on ws://%s:%d", self._host, self.port)

    def _abandon_startup(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        if self._socket is not None:
            self._socket.close()
            self._socket = None

    async def stop(self) -> None:
        """Stop accepting connections and wait for the server task to finish."""
        if self._task is None:
            return
        self._server.should_exit = True
        try:
            await self._task
        finally:
            self._task = None
            if self._socket is not None:
                self._socket.close()
                self._socket = None
        logger.info("WebSocket relay closed")
