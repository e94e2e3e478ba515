"""Extension relay: authentication, the single active channel, and request correlation.

Usage::

    from mcpbridge.relay import RelayState

    state = RelayState.create(secret="abc123")
    result = await state.dispatcher.dispatch("listTabs", {})
"""

from __future__ import annotations

from mcpbridge.relay.auth import AuthenticationGate
from mcpbridge.relay.channel import PeerChannelManager, PeerConnection, PeerTransport
from mcpbridge.relay.correlation import CorrelationTable, PendingRequest, new_request_id
from mcpbridge.relay.dispatcher import RequestDispatcher
from mcpbridge.relay.state import RelayState

__all__ = [
    "AuthenticationGate",
    "CorrelationTable",
    "PeerChannelManager",
    "PeerConnection",
    "PeerTransport",
    "PendingRequest",
    "RelayState",
    "RequestDispatcher",
    "new_request_id",
]
