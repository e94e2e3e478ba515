"""Correlation table — matches extension replies to the dispatch that caused them.

Each dispatched command gets a ``PendingRequest`` holding an asyncio future
and a deadline timer. Whichever of {reply, deadline} happens first settles
the future and removes the entry; the loser finds nothing and is a no-op.

All methods must be called from the event loop thread.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from mcpbridge.exceptions import RequestTimeoutError

logger = logging.getLogger(__name__)


def new_request_id() -> str:
    """Return a correlation id that stays unique across process restarts.

    Format: ``<epoch ms>-<16 hex chars>``.
    """
    return f"{int(time.time() * 1000)}-{secrets.token_hex(8)}"


@dataclass
class PendingRequest:
    """One outstanding command awaiting its reply."""

    request_id: str
    future: asyncio.Future[Any]
    timeout_ms: int
    command: str = ""
    created_at: float = field(default_factory=time.time)
    timeout_handle: asyncio.TimerHandle | None = None

    @property
    def settled(self) -> bool:
        """Whether the request has already been resolved, rejected or cancelled."""
        return self.future.done()

    def settle(self, *, result: Any = None, error: BaseException | None = None) -> bool:
        """Complete the request once and stop its deadline timer.

        Returns:
            ``True`` if this call settled the request, ``False`` if it was already settled.
        """
        if self.timeout_handle is not None:
            self.timeout_handle.cancel()
        if self.future.done():
            return False
        if error is not None:
            self.future.set_exception(error)
        else:
            self.future.set_result(result)
        return True

    def cancel(self) -> None:
        """Drop the request without delivering a result."""
        if self.timeout_handle is not None:
            self.timeout_handle.cancel()
        self.future.cancel()


class CorrelationTable:
    """Map of correlation id → ``PendingRequest``."""

    def __init__(self) -> None:
        self._pending: dict[str, PendingRequest] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._pending

    def pending_ids(self) -> list[str]:
        """Return the ids of all live entries."""
        return list(self._pending)

    def get(self, request_id: str) -> PendingRequest | None:
        """Return the live entry for ``request_id``, if any."""
        return self._pending.get(request_id)

    def register(self, request_id: str, timeout_ms: int, command: str = "") -> PendingRequest:
        """Create an entry for ``request_id`` and schedule its deadline.

        Raises:
            ValueError: An entry with the same id is still live.
        """
        if request_id in self._pending:
            raise ValueError(f"Correlation id already in use: {request_id}")

        loop = asyncio.get_running_loop()
        pending = PendingRequest(
            request_id=request_id,
            future=loop.create_future(),
            timeout_ms=timeout_ms,
            command=command,
        )
        pending.timeout_handle = loop.call_later(timeout_ms / 1000, self._expire, request_id)
        self._pending[request_id] = pending
        return pending

    def resolve(self, request_id: str, result: Any) -> bool:
        """Deliver a successful reply. Unknown ids are ignored."""
        pending = self._pending.pop(request_id, None)
        if pending is None:
            logger.debug("Ignoring reply for unknown or expired request %s", request_id)
            return False
        return pending.settle(result=result)

    def reject(self, request_id: str, error: BaseException) -> bool:
        """Deliver a failure. Unknown ids are ignored."""
        pending = self._pending.pop(request_id, None)
        if pending is None:
            logger.debug("Ignoring failure for unknown or expired request %s", request_id)
            return False
        return pending.settle(error=error)

    def discard(self, request_id: str) -> bool:
        """Remove an entry without settling it (caller went away or send failed)."""
        pending = self._pending.pop(request_id, None)
        if pending is None:
            return False
        pending.cancel()
        return True

    def fail_all(self, make_error: Callable[[PendingRequest], BaseException]) -> int:
        """Reject every live entry, e.g. on shutdown.

        Returns:
            The number of requests that were failed.
        """
        failed = 0
        for request_id in list(self._pending):
            pending = self._pending.pop(request_id)
            if pending.settle(error=make_error(pending)):
                failed += 1
        return failed

    def _expire(self, request_id: str) -> None:
        pending = self._pending.pop(request_id, None)
        if pending is None:
            return
        logger.warning(
            "Request %s (%s) timed out after %dms",
            request_id,
            pending.command or "?",
            pending.timeout_ms,
        )
        pending.settle(error=RequestTimeoutError(pending.timeout_ms))
