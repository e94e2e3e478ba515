"""Unit tests for the request dispatcher wired through a ``RelayState``."""

from __future__ import annotations

import asyncio
import json

import pytest
from pydantic import ValidationError

from mcpbridge.exceptions import ExtensionCommandError, ExtensionNotConnectedError, RequestTimeoutError


def _reply(request_id: str, *, success: bool = True, data=None, error: str | None = None) -> str:
    frame = {"type": "response", "requestId": request_id, "success": success}
    if data is not None:
        frame["data"] = data
    if error is not None:
        frame["error"] = error
    return json.dumps(frame)


class TestDispatchPreconditions:
    """Tests for dispatching without a usable channel."""

    @pytest.mark.anyio
    async def test_not_connected_fails_immediately(self, relay_state) -> None:
        """With no authenticated extension nothing is registered or sent."""
        with pytest.raises(ExtensionNotConnectedError, match="Extension not connected"):
            await relay_state.dispatcher.dispatch("ping")
        assert relay_state.dispatcher.pending_count == 0

    @pytest.mark.anyio
    async def test_unauthenticated_connection_does_not_count(self, relay_state, transport) -> None:
        relay_state.channels.open_connection(transport)
        with pytest.raises(ExtensionNotConnectedError):
            await relay_state.dispatcher.dispatch("ping")
        assert transport.sent == []

    @pytest.mark.anyio
    async def test_closed_channel_fails_immediately(self, relay_state, transport, authenticate) -> None:
        await authenticate(relay_state, transport)
        transport.closed = True
        with pytest.raises(ExtensionNotConnectedError):
            await relay_state.dispatcher.dispatch("ping")
        assert transport.commands() == []
        assert relay_state.dispatcher.pending_count == 0

    @pytest.mark.anyio
    async def test_invalid_params_leave_no_entry(self, relay_state, transport, authenticate) -> None:
        """Params that cannot form an envelope fail before anything is registered or sent."""
        await authenticate(relay_state, transport)
        with pytest.raises(ValidationError):
            await relay_state.dispatcher.dispatch("ping", ["not", "a", "dict"])
        assert relay_state.dispatcher.pending_count == 0
        assert transport.commands() == []
        assert relay_state.health()["pending_requests"] == 0

    @pytest.mark.anyio
    async def test_send_failure_cleans_up(self, relay_state, transport, authenticate) -> None:
        """A transport error propagates and leaves no pending entry behind."""
        await authenticate(relay_state, transport)
        transport.fail_sends = True
        with pytest.raises(ConnectionError):
            await relay_state.dispatcher.dispatch("ping")
        assert relay_state.dispatcher.pending_count == 0


class TestDispatchRoundTrip:
    """Tests for command/reply correlation."""

    @pytest.mark.anyio
    async def test_envelope_shape(self, relay_state, transport, authenticate, wait_commands) -> None:
        """The command goes out as ``{id, command, params}``."""
        connection = await authenticate(relay_state, transport)
        task = asyncio.create_task(relay_state.dispatcher.dispatch("openPage", {"url": "https://example.com"}))

        (command,) = await wait_commands(transport, 1)
        assert set(command) == {"id", "command", "params"}
        assert command["command"] == "openPage"
        assert command["params"] == {"url": "https://example.com"}
        assert relay_state.dispatcher.pending_count == 1

        await relay_state.channels.handle_frame(connection, _reply(command["id"], data={"tabId": 7}))
        assert await task == {"tabId": 7}
        assert relay_state.dispatcher.pending_count == 0

    @pytest.mark.anyio
    async def test_missing_params_sent_as_empty_object(
        self, relay_state, transport, authenticate, wait_commands
    ) -> None:
        connection = await authenticate(relay_state, transport)
        task = asyncio.create_task(relay_state.dispatcher.dispatch("listTabs"))
        (command,) = await wait_commands(transport, 1)
        assert command["params"] == {}
        await relay_state.channels.handle_frame(connection, _reply(command["id"], data=[]))
        assert await task == []

    @pytest.mark.anyio
    async def test_success_without_data_returns_none(
        self, relay_state, transport, authenticate, wait_commands
    ) -> None:
        connection = await authenticate(relay_state, transport)
        task = asyncio.create_task(relay_state.dispatcher.dispatch("closePage", {"tabId": 1}))
        (command,) = await wait_commands(transport, 1)
        await relay_state.channels.handle_frame(connection, _reply(command["id"]))
        assert await task is None

    @pytest.mark.anyio
    async def test_out_of_order_replies(self, relay_state, transport, authenticate, wait_commands) -> None:
        """Two in-flight commands answered B-then-A each get their own result."""
        connection = await authenticate(relay_state, transport)
        task_a = asyncio.create_task(relay_state.dispatcher.dispatch("find", {"selector": "a"}))
        task_b = asyncio.create_task(relay_state.dispatcher.dispatch("find", {"selector": "b"}))

        commands = await wait_commands(transport, 2)
        by_selector = {c["params"]["selector"]: c["id"] for c in commands}
        assert by_selector["a"] != by_selector["b"]

        await relay_state.channels.handle_frame(connection, _reply(by_selector["b"], data="B"))
        await asyncio.sleep(0)
        assert task_b.done() and not task_a.done()

        await relay_state.channels.handle_frame(connection, _reply(by_selector["a"], data="A"))
        assert await task_a == "A"
        assert await task_b == "B"

    @pytest.mark.anyio
    async def test_many_concurrent_replied_in_reverse(
        self, relay_state, transport, authenticate, wait_commands
    ) -> None:
        connection = await authenticate(relay_state, transport)
        tasks = [asyncio.create_task(relay_state.dispatcher.dispatch("scroll", {"n": i})) for i in range(20)]
        commands = await wait_commands(transport, 20)

        for command in reversed(commands):
            await relay_state.channels.handle_frame(connection, _reply(command["id"], data=command["params"]["n"]))

        assert await asyncio.gather(*tasks) == list(range(20))
        assert relay_state.dispatcher.pending_count == 0

    @pytest.mark.anyio
    async def test_unknown_reply_id_is_ignored(self, relay_state, transport, authenticate, wait_commands) -> None:
        """A reply for an id nobody is waiting on leaves real requests untouched."""
        connection = await authenticate(relay_state, transport)
        task = asyncio.create_task(relay_state.dispatcher.dispatch("ping"))
        (command,) = await wait_commands(transport, 1)

        await relay_state.channels.handle_frame(connection, _reply("0-deadbeef", data="stray"))
        assert not task.done()

        await relay_state.channels.handle_frame(connection, _reply(command["id"], data="pong"))
        assert await task == "pong"


class TestDispatchFailures:
    """Tests for failed, timed-out and cancelled commands."""

    @pytest.mark.anyio
    async def test_failure_reply_raises_with_text(self, relay_state, transport, authenticate, wait_commands) -> None:
        connection = await authenticate(relay_state, transport)
        task = asyncio.create_task(relay_state.dispatcher.dispatch("click", {"selector": "#x"}))
        (command,) = await wait_commands(transport, 1)

        await relay_state.channels.handle_frame(connection, _reply(command["id"], success=False, error="Tab not found"))
        with pytest.raises(ExtensionCommandError, match="Tab not found") as exc_info:
            await task
        assert exc_info.value.command == "click"

    @pytest.mark.anyio
    async def test_failure_reply_without_text(self, relay_state, transport, authenticate, wait_commands) -> None:
        """A failure with no error text reports ``Unknown error``."""
        connection = await authenticate(relay_state, transport)
        task = asyncio.create_task(relay_state.dispatcher.dispatch("click"))
        (command,) = await wait_commands(transport, 1)

        await relay_state.channels.handle_frame(connection, _reply(command["id"], success=False))
        with pytest.raises(ExtensionCommandError, match="Unknown error"):
            await task

    @pytest.mark.anyio
    async def test_timeout_then_late_reply(self, relay_state, transport, authenticate, wait_commands) -> None:
        """A command with no reply times out; the late reply is dropped quietly."""
        connection = await authenticate(relay_state, transport)
        task = asyncio.create_task(relay_state.dispatcher.dispatch("ping", {}, timeout_ms=30))
        (command,) = await wait_commands(transport, 1)

        with pytest.raises(RequestTimeoutError, match="Request timeout after 30ms"):
            await task
        assert relay_state.dispatcher.pending_count == 0

        await relay_state.channels.handle_frame(connection, _reply(command["id"], data="late"))
        assert relay_state.dispatcher.pending_count == 0
        assert not transport.closed

    @pytest.mark.anyio
    async def test_caller_cancellation_cleans_up(self, relay_state, transport, authenticate, wait_commands) -> None:
        await authenticate(relay_state, transport)
        task = asyncio.create_task(relay_state.dispatcher.dispatch("getPageContent"))
        await wait_commands(transport, 1)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert relay_state.dispatcher.pending_count == 0

    @pytest.mark.anyio
    async def test_disconnect_leaves_request_to_timeout(
        self, relay_state, transport, authenticate, wait_commands
    ) -> None:
        """Losing the channel does not fail in-flight commands early."""
        connection = await authenticate(relay_state, transport)
        task = asyncio.create_task(relay_state.dispatcher.dispatch("ping", timeout_ms=40))
        await wait_commands(transport, 1)

        relay_state.channels.close_connection(connection)
        await asyncio.sleep(0)
        assert not task.done()
        with pytest.raises(RequestTimeoutError):
            await task


class TestRelayState:
    """Tests for the composed relay state."""

    @pytest.mark.anyio
    async def test_health(self, relay_state, transport, authenticate) -> None:
        assert relay_state.health() == {"status": "ok", "extension_connected": False, "pending_requests": 0}
        await authenticate(relay_state, transport)
        assert relay_state.health()["extension_connected"] is True

    @pytest.mark.anyio
    async def test_shutdown_fails_in_flight_and_closes(
        self, relay_state, transport, authenticate, wait_commands
    ) -> None:
        await authenticate(relay_state, transport)
        task = asyncio.create_task(relay_state.dispatcher.dispatch("ping"))
        await wait_commands(transport, 1)

        await relay_state.shutdown()
        with pytest.raises(RequestTimeoutError, match="Relay shutting down"):
            await task
        assert transport.closed
        assert relay_state.health()["extension_connected"] is False
