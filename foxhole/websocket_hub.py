from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from uuid import uuid4

from fastapi import WebSocket
from fastapi.websockets import WebSocketState

from foxhole.api.models import ChatEvent, OutboundEvent
from foxhole.chat import SYSTEM_SENDER, now_ms
from foxhole.fsm import ConnectionFSM

logger = logging.getLogger(__name__)


@dataclass(slots=True, eq=False)
class ConnectionHandle:
    """One live socket.

    Holds only the username of the bound player, never a copy of its state.
    """

    connection_id: str
    websocket: WebSocket
    fsm: ConnectionFSM
    username: str | None = None
    session_token: str | None = None
    # Serializes sends on this socket so concurrent broadcasts don't interleave frames.
    send_lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def is_bound(self) -> bool:
        return self.username is not None


class ConnectionManager:
    """In-process registry of live connections and their fan-out.

    Contract:
      - `accept(websocket)` registers a socket under a fresh opaque id.
      - `bind(handle, username, token)` once a session has been verified.
      - `unbind(handle)` on disconnect; announces the departure if the handle was bound.
      - `broadcast(payload)` reaches every bound, open connection. A recipient that
        fails is dropped and logged; the fan-out itself never raises.

    Keyed by connection id rather than username: one player may hold several sockets.
    """

    def __init__(self) -> None:
        self._connections: dict[str, ConnectionHandle] = {}
        self._lock = asyncio.Lock()

    async def accept(self, websocket: WebSocket) -> ConnectionHandle:
        await websocket.accept()
        connection_id = str(uuid4())
        handle = ConnectionHandle(connection_id=connection_id, websocket=websocket, fsm=ConnectionFSM(connection_id))
        async with self._lock:
            self._connections[connection_id] = handle
        logger.debug("Accepted connection %s", connection_id)
        return handle

    async def bind(self, handle: ConnectionHandle, username: str, token: str) -> None:
        async with self._lock:
            if handle.connection_id not in self._connections:
                raise ValueError(f"Connection {handle.connection_id} is not open")
            handle.username = username
            handle.session_token = token

    async def unbind(self, handle: ConnectionHandle) -> str | None:
        """Forget the connection. Returns the username it was bound to, if any."""

        async with self._lock:
            self._connections.pop(handle.connection_id, None)
            username = handle.username
            handle.username = None
            handle.session_token = None

        if username is not None:
            await self.broadcast(
                ChatEvent(sender=SYSTEM_SENDER, message=f"{username} has left the game.", timestamp=now_ms())
            )
        return username

    async def send(self, handle: ConnectionHandle, event: OutboundEvent) -> bool:
        payload = _to_payload(event)
        if handle.websocket.client_state != WebSocketState.CONNECTED:
            return False
        try:
            async with handle.send_lock:
                await handle.websocket.send_json(payload)
        except Exception:
            logger.debug("Send to %s failed", handle.connection_id, exc_info=True)
            return False
        return True

    async def broadcast(self, event: OutboundEvent) -> int:
        """Deliver to every bound connection. Returns the number of successful sends."""

        async with self._lock:
            recipients = [h for h in self._connections.values() if h.is_bound]

        if not recipients:
            return 0

        delivered = 0
        dead: list[ConnectionHandle] = []
        for handle in recipients:
            if await self.send(handle, event):
                delivered += 1
            else:
                dead.append(handle)

        if dead:
            async with self._lock:
                for handle in dead:
                    self._connections.pop(handle.connection_id, None)
            logger.info("Dropped %d unreachable connection(s) during broadcast", len(dead))

        return delivered

    def online_count(self) -> int:
        return sum(1 for h in self._connections.values() if h.is_bound)

    def online_usernames(self) -> list[str]:
        return sorted({h.username for h in self._connections.values() if h.username is not None})

    def connection_count(self) -> int:
        return len(self._connections)


def _to_payload(event: OutboundEvent) -> dict[str, object]:
    return event.model_dump(mode="json", by_alias=True)
