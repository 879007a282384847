from __future__ import annotations

"""
File: gridsim/ws.py
Purpose: WebSocket broadcast sink for simulation snapshots.
Key responsibilities:
- Track connected UI clients.
- Fan out settled snapshots and run completion payloads.
- Replay the latest snapshot to clients that join mid-run.
"""

import asyncio
import json
import logging
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger("gridsim.ws")


def encode(payload: dict[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"), sort_keys=True)


class WSManager:
    """Broadcast sink over WebSocket clients."""
    def __init__(self) -> None:
        self.clients: set[WebSocket] = set()
        self.latest: dict[str, Any] | None = None
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> None:
        """Accept a client and send it the most recent snapshot, if any."""
        await websocket.accept()
        async with self._lock:
            self.clients.add(websocket)
            latest = self.latest
        if latest is not None:
            await websocket.send_text(encode(latest))

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self.clients.discard(websocket)

    async def broadcast(self, payload: dict[str, Any]) -> None:
        """Send a payload to every client, dropping the ones that fail."""
        data = encode(payload)
        async with self._lock:
            self.latest = payload
            clients = list(self.clients)
        failed: list[WebSocket] = []
        for client in clients:
            try:
                await client.send_text(data)
            except Exception:  # noqa: BLE001
                failed.append(client)
        if failed:
            logger.info("dropping %s stale websocket client(s)", len(failed))
            async with self._lock:
                self.clients.difference_update(failed)
