"""Wire envelopes exchanged with the browser extension.

Inbound (extension → relay)::

    {"type": "auth", "token": "..."}
    {"type": "response", "requestId": "...", "success": true, "data": {...}}
    {"type": "response", "requestId": "...", "success": false, "error": "..."}

Outbound (relay → extension)::

    {"type": "auth_response", "success": true, "message": "..."}
    {"type": "error", "message": "Not authenticated"}
    {"id": "...", "command": "screenshot", "params": {...}}
"""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from mcpbridge.exceptions import MalformedMessageError

AUTH_SUCCESS_MESSAGE = "Authentication successful"


# ---------------------------------------------------------------------------
# Inbound
# ---------------------------------------------------------------------------


class AuthMessage(BaseModel):
    """Authentication attempt sent by a freshly connected extension."""

    type: Literal["auth"] = "auth"
    token: str = ""


class ReplyEnvelope(BaseModel):
    """Reply to a previously dispatched command."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["response"] = "response"
    request_id: str = Field(alias="requestId", min_length=1)
    success: bool
    data: Any = None
    error: str | None = None


# ---------------------------------------------------------------------------
# Outbound
# ---------------------------------------------------------------------------


class AuthResponse(BaseModel):
    """Outcome of an authentication attempt."""

    type: Literal["auth_response"] = "auth_response"
    success: bool
    message: str


class ErrorNotice(BaseModel):
    """Out-of-band notice, e.g. a message received before authentication."""

    type: Literal["error"] = "error"
    message: str


class CommandEnvelope(BaseModel):
    """A command dispatched to the extension."""

    id: str
    command: str
    params: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def decode_frame(raw: str | bytes) -> dict[str, Any]:
    """Decode a text frame into a JSON object.

    Raises:
        MalformedMessageError: The frame is not valid UTF-8 JSON or is not an object.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedMessageError(f"invalid UTF-8 ({exc.reason})") from exc

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise MalformedMessageError(f"invalid JSON ({exc.msg})", raw) from exc

    if not isinstance(data, dict):
        raise MalformedMessageError(f"expected an object, got {type(data).__name__}", raw)
    return data


def parse_reply(data: dict[str, Any]) -> ReplyEnvelope:
    """Validate a decoded frame as a command reply.

    Raises:
        MalformedMessageError: The frame is not a well-formed ``response`` envelope.
    """
    if data.get("type") != "response":
        raise MalformedMessageError(f"unexpected message type {data.get('type')!r}", json.dumps(data, default=str))
    try:
        return ReplyEnvelope.model_validate(data)
    except ValidationError as exc:
        raise MalformedMessageError(
            f"invalid response envelope ({exc.error_count()} error(s))", json.dumps(data, default=str)
        ) from exc


def is_auth_message(data: dict[str, Any]) -> bool:
    """Return ``True`` if the decoded frame is an authentication attempt."""
    return data.get("type") == "auth"


def auth_token_of(data: dict[str, Any]) -> str:
    """Extract the presented token; anything that is not a string counts as empty."""
    try:
        return AuthMessage.model_validate(data).token
    except ValidationError:
        return ""
