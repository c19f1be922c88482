from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

import redis

from foxhole.api.models import Player, WorldSnapshot

logger = logging.getLogger(__name__)

WORLD_KEY = "foxhole:world"
PLAYERS_KEY = "foxhole:players"  # hash: username -> Player JSON


@dataclass(frozen=True, slots=True)
class LoadedState:
    world: WorldSnapshot | None
    players: dict[str, Player] = field(default_factory=dict)


def get_world(*, r: redis.Redis) -> WorldSnapshot | None:
    raw = r.get(WORLD_KEY)
    if not raw:
        return None
    return WorldSnapshot.model_validate_json(raw)


def save_world(*, r: redis.Redis, world: WorldSnapshot) -> None:
    r.set(WORLD_KEY, world.model_dump_json(exclude_none=True))


def load_players(*, r: redis.Redis) -> dict[str, Player]:
    players: dict[str, Player] = {}
    for username, raw in r.hgetall(PLAYERS_KEY).items():
        try:
            players[username] = Player.model_validate_json(raw)
        except ValueError:
            logger.exception("Skipping unreadable player record %r", username)
    return players


def save_player(*, r: redis.Redis, player: Player) -> None:
    r.hset(PLAYERS_KEY, player.username, player.model_dump_json())


def load_world_and_players(*, r: redis.Redis) -> LoadedState:
    return LoadedState(world=get_world(r=r), players=load_players(r=r))


def save_all(*, r: redis.Redis, world: WorldSnapshot, players: list[Player]) -> None:
    pipe = r.pipeline()
    pipe.set(WORLD_KEY, world.model_dump_json(exclude_none=True))
    for player in players:
        pipe.hset(PLAYERS_KEY, player.username, player.model_dump_json())
    pipe.execute()


class PlayerWriter:
    """Writes player snapshots without blocking the event loop.

    Callers await `write` while still holding the player's lock, so writes for
    one username land in the order the mutations happened. A failed write is
    logged and the in-memory state stays authoritative.
    """

    def __init__(self, *, r: redis.Redis) -> None:
        self._r = r

    def write_now(self, player: Player) -> bool:
        try:
            save_player(r=self._r, player=player)
        except redis.RedisError:
            logger.exception("Failed to persist player %s", player.username)
            return False
        return True

    async def write(self, player: Player) -> bool:
        return await asyncio.to_thread(self.write_now, player)
