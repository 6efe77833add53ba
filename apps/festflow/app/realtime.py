from __future__ import annotations

import asyncio
import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set

from fastapi import WebSocket

_log = logging.getLogger("festflow.realtime")


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(eq=False)
class _Client:
    ws: WebSocket
    loop: asyncio.AbstractEventLoop


class RealtimeHub:
    """
    Broadcast-to-all notifier for the role boards.

    Events carry only the changed entity kind and id; clients refetch.
    `publish` is safe to call from sync route handlers, which run in a
    worker thread: sends are scheduled on the loop that owns each socket.
    """

    def __init__(self) -> None:
        self._clients: List[_Client] = []
        # Pending sends on the caller's loop, held until done.
        self._tasks: Set[asyncio.Task] = set()
        self._lock = threading.Lock()

    def clients_count(self) -> int:
        with self._lock:
            return len(self._clients)

    async def connect(self, ws: WebSocket) -> None:
        await ws.accept()
        client = _Client(ws=ws, loop=asyncio.get_running_loop())
        with self._lock:
            self._clients.append(client)
        await ws.send_text(json.dumps({"type": "hello", "ts": _now_ms()}))
        _log.info("ws client connected", extra={"ctx": {"ws_clients": self.clients_count()}})

    def disconnect(self, ws: WebSocket) -> None:
        with self._lock:
            self._clients = [c for c in self._clients if c.ws is not ws]

    def reset(self) -> None:
        with self._lock:
            self._clients = []

    def publish(self, entity: str, entity_id: Optional[str] = None) -> None:
        event: Dict[str, Any] = {"type": "db.change", "ts": _now_ms(), "entity": entity}
        if entity_id is not None:
            event["id"] = entity_id
        self.broadcast(event)

    def broadcast(self, event: Dict[str, Any]) -> None:
        message = json.dumps(event)
        with self._lock:
            clients = list(self._clients)
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        for client in clients:
            if client.loop is running:
                task = running.create_task(self._send(client, message))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
                continue
            if client.loop.is_closed():
                self._drop(client)
                continue
            asyncio.run_coroutine_threadsafe(self._send(client, message), client.loop)

    async def _send(self, client: _Client, message: str) -> None:
        try:
            await client.ws.send_text(message)
        except Exception as e:
            _log.debug("ws send failed, dropping client: %s", e)
            self._drop(client)

    def _drop(self, client: _Client) -> None:
        with self._lock:
            if client in self._clients:
                self._clients.remove(client)


hub = RealtimeHub()
