"""Shared-secret authentication for extension connections."""

from __future__ import annotations

import hmac

from mcpbridge.exceptions import MissingSecretError


class AuthenticationGate:
    """Checks the token a peer presents against the process-wide secret.

    There is no retry budget or lockout: a rejected peer may reconnect and
    try again immediately. The listener only binds to localhost and the
    secret is 256 bits.

    Args:
        secret: The shared secret. Must be non-blank.

    Raises:
        MissingSecretError: ``secret`` is empty or whitespace.
    """

    def __init__(self, secret: str) -> None:
        if not secret or not secret.strip():
            raise MissingSecretError()
        self._secret = secret.encode("utf-8")

    def verify(self, token: str) -> bool:
        """Return ``True`` if ``token`` matches the configured secret."""
        if not token:
            return False
        return hmac.compare_digest(token.encode("utf-8"), self._secret)
