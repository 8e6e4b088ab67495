"""WebSocket transport for BroadcastLog subscribers."""

from __future__ import annotations

import asyncio
from typing import Any, List, Optional, Set

from aiohttp import WSCloseCode, web

from ..asyncio_utils import cancel_tasks, create_logged_task
from ..logging_utils import get_module_logger

logger = get_module_logger("WebSocketSubscriber")

DEFAULT_MAX_PENDING_SENDS = 8
DEFAULT_FLUSH_TIMEOUT = 1.0


class WebSocketSubscriber:
    """Adapts one ``web.WebSocketResponse`` to the Subscriber protocol.

    ``deliver`` is synchronous; each send is scheduled as its own task. A
    socket that is closed or has too many sends in flight reports
    ``ready = False`` and misses messages until it catches up.

    Between :meth:`hold` and :meth:`release` deliveries are queued instead of
    sent, so a connection can be subscribed before its initial sync goes out.
    """

    def __init__(self, ws: web.WebSocketResponse, *, max_pending: int = DEFAULT_MAX_PENDING_SENDS, peer: str = "?") -> None:
        self.ws = ws
        self.max_pending = max(1, max_pending)
        self.peer = peer
        self._pending: Set[asyncio.Task[Any]] = set()
        self._held: Optional[List[str]] = None

    @property
    def ready(self) -> bool:
        backlog = len(self._pending) + len(self._held or ())
        return not self.ws.closed and backlog < self.max_pending

    @property
    def pending(self) -> int:
        return len(self._pending)

    def deliver(self, payload: str) -> None:
        if self._held is not None:
            self._held.append(payload)
            return
        create_logged_task(
            self._send(payload),
            logger=logger,
            context=f"ws-send:{self.peer}",
            pending=self._pending,
        )

    def hold(self) -> None:
        if self._held is None:
            self._held = []

    def release(self) -> None:
        """Send everything queued since :meth:`hold`, oldest first."""
        held, self._held = self._held or [], None
        for payload in held:
            self.deliver(payload)

    async def _send(self, payload: str) -> None:
        try:
            await self.ws.send_str(payload)
        except (ConnectionResetError, RuntimeError) as exc:
            # Peer went away between the ready check and the send
            logger.debug("Send to %s failed: %s", self.peer, exc)

    async def close(
        self,
        *,
        code: int = WSCloseCode.OK,
        message: bytes = b"",
        flush_timeout: float = DEFAULT_FLUSH_TIMEOUT,
    ) -> None:
        """Give queued sends a moment to go out, then close the socket."""
        if self._held is not None:
            self.release()
        if self._pending and not self.ws.closed:
            await asyncio.wait(set(self._pending), timeout=flush_timeout)
        await cancel_tasks(self._pending)
        if not self.ws.closed:
            await self.ws.close(code=code, message=message)

    def __repr__(self) -> str:
        return f"WebSocketSubscriber({self.peer}, pending={len(self._pending)})"


__all__ = ["DEFAULT_MAX_PENDING_SENDS", "WebSocketSubscriber"]
