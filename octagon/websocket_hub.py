from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

from fastapi import WebSocket

from octagon.protocol import summarize


logger = logging.getLogger(__name__)


class Connection(Protocol):
    id: str

    async def send_json(self, payload: dict[str, object]) -> None:  # pragma: no cover
        ...


@dataclass(eq=False, slots=True)
class WebSocketConnection:
    """A FastAPI websocket bound to a server-assigned connection id."""

    id: str
    websocket: WebSocket

    async def send_json(self, payload: dict[str, object]) -> None:
        await self.websocket.send_json(payload)


class ConnectionHub:
    """In-process fan-out to agent connections keyed by connection id.

    Contract:
      - register a live connection with `connect(connection)`.
      - unicast with `send(connection_id, payload)`, fan out with `broadcast(ids, payload)`.
      - a connection whose send fails is dropped; its reader loop reports the disconnect.

    Payloads should be JSON-serializable dicts.
    """

    def __init__(self) -> None:
        self._by_id: dict[str, Connection] = {}
        self._lock = asyncio.Lock()

    async def connect(self, connection: Connection) -> None:
        async with self._lock:
            self._by_id[connection.id] = connection

    async def disconnect(self, connection_id: str) -> None:
        async with self._lock:
            self._by_id.pop(connection_id, None)

    async def is_connected(self, connection_id: str) -> bool:
        async with self._lock:
            return connection_id in self._by_id

    async def send(self, connection_id: str, payload: dict[str, object]) -> bool:
        async with self._lock:
            conn = self._by_id.get(connection_id)

        if conn is None:
            return False

        try:
            await conn.send_json(payload)
        except Exception:
            logger.warning("Dropping connection %s after failed send of %s", connection_id, summarize(payload))
            async with self._lock:
                if self._by_id.get(connection_id) is conn:
                    self._by_id.pop(connection_id, None)
            return False
        return True

    async def broadcast(self, connection_ids: Iterable[str], payload: dict[str, object]) -> None:
        for cid in connection_ids:
            await self.send(cid, payload)

    def __len__(self) -> int:  # pragma: no cover - trivial
        return len(self._by_id)
