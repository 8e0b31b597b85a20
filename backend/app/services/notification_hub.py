from __future__ import annotations

import asyncio
import logging
from collections import defaultdict

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class NotificationHub:
    """Open websocket connections per teacher, used for realtime pushes."""

    def __init__(self) -> None:
        self._sockets: dict[str, set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def register(self, teacher_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._sockets[teacher_id].add(websocket)
        logger.debug("Teacher %s subscribed to realtime notifications", teacher_id)

    async def unregister(self, teacher_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            remaining = self._sockets.get(teacher_id, set())
            remaining.discard(websocket)
            if not remaining:
                self._sockets.pop(teacher_id, None)

    async def push(self, teacher_id: str, message: dict) -> int:
        async with self._lock:
            targets = list(self._sockets.get(teacher_id, ()))

        delivered = 0
        for websocket in targets:
            try:
                await websocket.send_json(message)
            except Exception:  # pragma: no cover - network/runtime dependent
                await self.unregister(teacher_id, websocket)
                logger.debug("Dropped stale websocket for teacher %s", teacher_id)
                continue
            delivered += 1
        return delivered


notification_hub = NotificationHub()
