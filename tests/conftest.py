"""mcpbridge test configuration — shared fixtures for unit and integration tests."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

SECRET = "abc123"


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    """Clear the settings LRU cache between tests."""
    from mcpbridge.settings.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _clear_token_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's exported token out of the tests."""
    monkeypatch.delenv("MCPBRIDGE_RELAY__TOKEN", raising=False)


@pytest.fixture()
def anyio_backend() -> str:
    """The relay schedules deadlines with asyncio, so only run on asyncio."""
    return "asyncio"


# ---------------------------------------------------------------------------
# Fake peer transport
# ---------------------------------------------------------------------------


class FakeTransport:
    """In-memory ``PeerTransport`` that records what the relay sends."""

    def __init__(self) -> None:
        self.sent: list[str] = []
        self.closed = False
        self.close_code: int | None = None
        self.fail_sends = False

    @property
    def is_open(self) -> bool:
        return not self.closed

    async def send_text(self, text: str) -> None:
        if self.fail_sends:
            raise ConnectionError("broken pipe")
        self.sent.append(text)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed = True
        self.close_code = code

    @property
    def messages(self) -> list[dict[str, Any]]:
        """Everything sent so far, decoded."""
        return [json.loads(s) for s in self.sent]

    def commands(self) -> list[dict[str, Any]]:
        """Only the command envelopes (frames with an ``id``)."""
        return [m for m in self.messages if "command" in m]


@pytest.fixture()
def transport() -> FakeTransport:
    """A fresh fake transport."""
    return FakeTransport()


@pytest.fixture()
def make_transport():
    """Factory for additional fake transports."""
    return FakeTransport


# ---------------------------------------------------------------------------
# Relay state
# ---------------------------------------------------------------------------


@pytest.fixture()
def relay_state():
    """A relay configured with the shared test secret."""
    from mcpbridge.relay.state import RelayState

    return RelayState.create(SECRET, default_timeout_ms=2_000)


@pytest.fixture()
def authenticate():
    """Return a coroutine that opens and authenticates a connection on a relay."""

    async def _authenticate(state, transport: FakeTransport, token: str = SECRET):
        connection = state.channels.open_connection(transport)
        await state.channels.handle_frame(connection, json.dumps({"type": "auth", "token": token}))
        return connection

    return _authenticate


async def wait_for_commands(transport: FakeTransport, count: int, attempts: int = 200) -> list[dict[str, Any]]:
    """Yield to the loop until ``count`` commands have been sent."""
    for _ in range(attempts):
        commands = transport.commands()
        if len(commands) >= count:
            return commands
        await asyncio.sleep(0.001)
    raise AssertionError(f"expected {count} command(s), saw {len(transport.commands())}")


@pytest.fixture()
def wait_commands():
    """Return the ``wait_for_commands`` helper."""
    return wait_for_commands


# ---------------------------------------------------------------------------
# Pytest markers
# ---------------------------------------------------------------------------


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests that exercise the relay over a real WebSocket")
    config.addinivalue_line("markers", "slow: marks tests that take more than a few seconds")
