"""Ordered delivery of session updates to the ACP client."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from pi_acp.logging import get_logger

if TYPE_CHECKING:
    from acp.interfaces import Client

log = get_logger("session")


class UpdateEmitter:
    """Chains ``session_update`` calls so they reach the client in emit order.

    ``emit`` is synchronous so pi event handlers can call it directly; each
    delivery runs as a task that first waits for the previous delivery.
    A failed delivery is logged and the chain carries on.
    """

    def __init__(self, conn: Client, session_id: str) -> None:
        self._conn = conn
        self._session_id = session_id
        self._last: asyncio.Task[None] | None = None

    def emit(self, update: Any) -> None:
        previous = self._last
        self._last = asyncio.create_task(self._deliver(previous, update))

    async def flush(self) -> None:
        """Wait until every update emitted so far has been delivered."""
        while self._last is not None and not self._last.done():
            await asyncio.wait([self._last])

    async def _deliver(self, previous: asyncio.Task[None] | None, update: Any) -> None:
        if previous is not None and not previous.done():
            # wait() never raises, so a cancelled predecessor doesn't stall us
            await asyncio.wait([previous])
        try:
            await self._conn.session_update(self._session_id, update)
        except Exception as e:
            log.warning("session_update failed for %s: %s", self._session_id, e)
