from __future__ import annotations

import logging

from pydantic import ValidationError

from foxhole.api.models import (
    AuthFailedEvent,
    AuthMessage,
    AuthSuccessEvent,
    ChatEvent,
    ChatMessage,
    GetMapMessage,
    InboundMessage,
    MapDataEvent,
    MoveFailedEvent,
    MoveMessage,
    MoveSuccessEvent,
    inbound_message_adapter,
)
from foxhole.chat import SYSTEM_SENDER, ChatHistory, now_ms
from foxhole.errors import MoveRejected, NotFound, Unauthorized
from foxhole.players import PlayerRegistry
from foxhole.sessions import SessionRegistry
from foxhole.websocket_hub import ConnectionHandle, ConnectionManager
from foxhole.world.store import WorldStore

logger = logging.getLogger(__name__)


class MessageRouter:
    """Validates and dispatches inbound WebSocket messages against authoritative state.

    One router is shared by every connection; per-connection protocol state lives
    on each handle's `ConnectionFSM`. Failures are answered to the sender only and
    never close the socket.
    """

    def __init__(
        self,
        *,
        world: WorldStore,
        players: PlayerRegistry,
        sessions: SessionRegistry,
        hub: ConnectionManager,
        chat: ChatHistory,
        reject_bad_auth: bool = False,
    ) -> None:
        self._world = world
        self._players = players
        self._sessions = sessions
        self._hub = hub
        self._chat = chat
        self._reject_bad_auth = reject_bad_auth

    async def handle_text(self, handle: ConnectionHandle, raw: str | bytes) -> None:
        try:
            message = inbound_message_adapter.validate_json(raw)
        except ValidationError as e:
            logger.warning("Dropping malformed message on %s: %s", handle.connection_id, e.errors(include_url=False))
            return
        await self.dispatch(handle, message)

    async def dispatch(self, handle: ConnectionHandle, message: InboundMessage) -> None:
        if handle.fsm.is_closed:
            return

        if isinstance(message, AuthMessage):
            await self._on_auth(handle, message)
            return

        username = handle.username
        if not handle.fsm.is_authenticated or username is None:
            logger.debug("Ignoring %s from unauthenticated connection %s", message.type, handle.connection_id)
            return

        try:
            if isinstance(message, MoveMessage):
                await self._on_move(handle, username, message)
            elif isinstance(message, ChatMessage):
                await self._on_chat(handle, username, message)
            elif isinstance(message, GetMapMessage):
                await self._on_get_map(handle, username, message)
        except NotFound:
            # Session outlived its player record; nothing sensible to answer.
            logger.warning("Connection %s is bound to unknown player %s", handle.connection_id, username)

    async def close(self, handle: ConnectionHandle) -> None:
        if not handle.fsm.is_closed:
            handle.fsm.disconnect()
        username = await self._hub.unbind(handle)
        if username is not None:
            logger.info("Player %s disconnected (%s)", username, handle.connection_id)

    async def _on_auth(self, handle: ConnectionHandle, message: AuthMessage) -> None:
        if handle.fsm.is_authenticated:
            logger.debug("Ignoring repeated auth on %s", handle.connection_id)
            return

        try:
            session = self._sessions.resolve(message.token)
            player = self._players.get(session.username)
        except (Unauthorized, NotFound) as e:
            logger.info("WebSocket auth failed on %s: %s", handle.connection_id, e.reason)
            if self._reject_bad_auth:
                await self._hub.send(handle, AuthFailedEvent(reason=e.reason))
            return

        await self._hub.bind(handle, player.username, session.token)
        handle.fsm.authenticate()
        logger.info("Player %s joined (%s)", player.username, handle.connection_id)

        await self._hub.send(handle, AuthSuccessEvent(player=player.public()))
        await self._hub.broadcast(
            ChatEvent(sender=SYSTEM_SENDER, message=f"{player.username} has joined the game!", timestamp=now_ms())
        )

    async def _on_move(self, handle: ConnectionHandle, username: str, message: MoveMessage) -> None:
        try:
            tile = await self._players.move(username, message.x, message.y)
        except MoveRejected as e:
            await self._hub.send(handle, MoveFailedEvent(reason=e.reason))
            return
        # Other players learn about the move on their next map query, not live.
        await self._hub.send(handle, MoveSuccessEvent(x=message.x, y=message.y, tile=tile))

    async def _on_chat(self, handle: ConnectionHandle, username: str, message: ChatMessage) -> None:
        entry = self._chat.append(sender=username, message=message.message)
        await self._hub.broadcast(ChatEvent(sender=entry.sender, message=entry.message, timestamp=entry.timestamp))

    async def _on_get_map(self, handle: ConnectionHandle, username: str, message: GetMapMessage) -> None:
        x, y = message.x, message.y
        if x is None or y is None:
            player = self._players.get(username)
            x = player.x if x is None else x
            y = player.y if y is None else y
        region = self._world.region_around(x, y, message.radius)
        await self._hub.send(handle, MapDataEvent(data=region))
