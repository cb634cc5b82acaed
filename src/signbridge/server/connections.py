"""WebSocket connection manager for approval surfaces."""

from __future__ import annotations

import asyncio
import logging

from fastapi import WebSocket

from signbridge.server.models import WSOutgoing

_log = logging.getLogger(__name__)


async def _send_one(ws: WebSocket, payload: str) -> WebSocket | None:
    """Try sending *payload* to a single client; return the socket on failure."""
    try:
        await ws.send_text(payload)
    except Exception:
        _log.warning("Failed to send to approval client, marking as dead")
        return ws
    return None


class ConnectionManager:
    """Track approval-surface WebSocket connections and broadcast events."""

    def __init__(self) -> None:
        self._connections: list[WebSocket] = []
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> None:
        """Accept and register an approval-surface connection."""
        await websocket.accept()
        async with self._lock:
            self._connections.append(websocket)
        _log.info("Approval client connected (%d total)", self.client_count())

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            if websocket in self._connections:
                self._connections.remove(websocket)
        _log.info("Approval client disconnected")

    async def broadcast(self, message: WSOutgoing) -> None:
        """Send a message to all connected approval clients concurrently."""
        async with self._lock:
            clients = list(self._connections)
        if not clients:
            return

        payload = message.model_dump_json()
        results = await asyncio.gather(
            *[_send_one(ws, payload) for ws in clients],
            return_exceptions=True,
        )

        disconnected = [r for r in results if isinstance(r, WebSocket)]
        for r in results:
            if isinstance(r, BaseException):
                _log.error("Unexpected error during broadcast: %s", r)

        if disconnected:
            async with self._lock:
                for ws in disconnected:
                    if ws in self._connections:
                        self._connections.remove(ws)

    def client_count(self) -> int:
        return len(self._connections)
