import asyncio
import json
import logging
from typing import Any, Optional, Set

from fastapi import WebSocket

log = logging.getLogger("ws")

def encode_message(event: str, data: Any = None) -> str:
    return json.dumps({"event": event, "data": data}, default=str)

class ConnectionManager:
    """Registry of connected dashboard sessions.

    Every broadcast goes to every session; nothing here knows who may see
    which bike. Dashboards filter by their own authorized bike set.
    """

    def __init__(self) -> None:
        self.active_connections: Set[WebSocket] = set()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self.active_connections)

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        async with self._lock:
            self.active_connections.add(websocket)
        log.info("client connected (%d total)", len(self.active_connections))

    async def disconnect(self, websocket: WebSocket):
        async with self._lock:
            if websocket in self.active_connections:
                self.active_connections.remove(websocket)
                log.info("client disconnected (%d total)", len(self.active_connections))

    async def broadcast_text(self, message: str):
        tasks = []
        async with self._lock:
            for ws in list(self.active_connections):
                tasks.append(self._safe_send(ws, message))
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _safe_send(self, ws: WebSocket, message: str):
        try:
            await ws.send_text(message)
        except Exception as e:
            log.warning("send failed, dropping session: %s", e)
            await self.disconnect(ws)

class Broadcaster:
    """Thread-safe publish side of the fan-out.

    Route handlers run in worker threads; `publish` hands the message to the
    event loop's queue and returns at once. `forward` drains the queue in
    order, so each session sees messages in publish order.
    """

    def __init__(self, manager: ConnectionManager) -> None:
        self.manager = manager
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._queue = asyncio.Queue()

    def unbind(self) -> None:
        self._loop = None
        self._queue = None

    def publish(self, event: str, data: Any) -> None:
        loop, queue = self._loop, self._queue
        if loop is None or queue is None or loop.is_closed():
            log.debug("no running broadcaster, dropping %s", event)
            return
        loop.call_soon_threadsafe(queue.put_nowait, encode_message(event, data))

    async def forward(self) -> None:
        queue = self._queue
        if queue is None:
            raise RuntimeError("broadcaster is not bound to a loop")
        while True:
            msg = await queue.get()
            try:
                await self.manager.broadcast_text(msg)
            except Exception:
                log.exception("broadcast failed")
