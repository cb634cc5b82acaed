"""Approval-surface event publishing over WebSocket.

Dependencies: server.connections, server.models
Wired in: server/app.py → _wire(), server/routes.py → approvals_websocket()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from fastapi import WebSocket

from signbridge.server.connections import ConnectionManager
from signbridge.server.models import WSOutgoing, pending_snapshot
from signbridge.signing.popup import PopupKind
from signbridge.signing.types import SigningRequest

_log = logging.getLogger(__name__)


class EventPublisher:
    """Schedules approval-surface events onto the running loop, in publish order.

    Each send waits for the one published before it, so a client never receives
    an older pending set after a newer one.
    """

    def __init__(self, connections: ConnectionManager) -> None:
        self._connections = connections
        self._tasks: set[asyncio.Task[None]] = set()
        self._last: asyncio.Task[None] | None = None

    def publish(self, message: WSOutgoing) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            _log.debug("No running event loop, dropping %s event", message.op)
            return
        self._schedule(self._connections.broadcast(message))

    def publish_pending(self, messages: tuple[SigningRequest, ...]) -> None:
        self.publish(pending_snapshot(messages))

    async def send_to(self, websocket: WebSocket, message: WSOutgoing) -> None:
        """Send *message* to one client after every event already published."""
        await self._schedule(websocket.send_text(message.model_dump_json()))

    async def drain(self) -> None:
        """Wait for every scheduled broadcast to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _schedule(self, send: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        loop = asyncio.get_running_loop()
        previous = self._last
        if previous is not None and (previous.done() or previous.get_loop() is not loop):
            previous = None
        task = loop.create_task(_send_after(previous, send))
        self._last = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task


async def _send_after(
    previous: asyncio.Task[None] | None, send: Coroutine[Any, Any, None]
) -> None:
    if previous is not None:
        await asyncio.wait({previous})
    await send


class BroadcastPopupManager:
    """Popup adapter that asks connected approval surfaces to show or hide."""

    def __init__(self, publisher: EventPublisher) -> None:
        self._publisher = publisher

    def open_popup(self, kind: PopupKind) -> None:
        self._publisher.publish(WSOutgoing(op="popup.open", data={"kind": kind}))

    def close_popup(self) -> None:
        self._publisher.publish(WSOutgoing(op="popup.close"))
