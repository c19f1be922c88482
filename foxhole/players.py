from __future__ import annotations

import asyncio
import logging
import math
import random
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime

from foxhole.api.models import Player, Tile
from foxhole.errors import (
    DuplicateUsername,
    EmailTaken,
    InsufficientPoints,
    InvalidAllocation,
    MoveRejected,
    NotFound,
)
from foxhole.game_store import PlayerWriter
from foxhole.lock import KeyedLock
from foxhole.races import RaceName, get_race
from foxhole.world.store import WorldStore

logger = logging.getLogger(__name__)

STAT_NAMES: tuple[str, ...] = ("strength", "intelligence", "speed", "luck")

STARTING_STAT_POINTS = 5
LEVEL_UP_STAT_POINTS = 2
XP_PER_LEVEL = 100

# Each point of luck adds a quarter percent chance of a 10% XP bonus.
LUCK_BONUS_CHANCE_PER_POINT = 0.0025
LUCK_BONUS_RATIO = 0.1


def _now() -> datetime:
    return datetime.now(tz=UTC)


def xp_for_next_level(level: int) -> int:
    return level * XP_PER_LEVEL


@dataclass(frozen=True, slots=True)
class XpGrant:
    player: Player
    bonus_xp: int
    level_ups: int


class PlayerRegistry:
    """Owns every Player record.

    All mutations of one username are serialized through a per-username lock and
    persisted while that lock is still held, so neither memory nor storage can
    see a lost update. Different usernames never wait on each other, except for
    the short uniqueness checks of registration and email changes.

    Callers only ever receive copies; the live records never leave this class.
    """

    def __init__(
        self,
        *,
        world: WorldStore,
        writer: PlayerWriter | None = None,
        players: Mapping[str, Player] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._world = world
        self._writer = writer
        self._players: dict[str, Player] = dict(players or {})
        self._rng = rng or random.Random()
        self._locks = KeyedLock()
        self._uniqueness_lock = asyncio.Lock()

    # --- queries ---

    def get(self, username: str) -> Player:
        return self._require(username).model_copy(deep=True)

    def exists(self, username: str) -> bool:
        return username in self._players

    def list_players(self) -> list[Player]:
        return [p.model_copy(deep=True) for p in self._players.values()]

    def count(self) -> int:
        return len(self._players)

    def password_hash_for(self, username: str) -> str | None:
        player = self._players.get(username)
        return player.password_hash if player is not None else None

    # --- creation ---

    async def register(
        self,
        username: str,
        password_hash: str,
        race: RaceName | str,
        *,
        email: str | None = None,
        is_admin: bool = False,
    ) -> Player:
        async with self._uniqueness_lock:
            player = self._insert(
                self._build_player(
                    username=username,
                    password_hash=password_hash,
                    race=race,
                    email=email,
                    is_admin=is_admin,
                )
            )
        logger.info("Registered player %s (race=%s)", username, player.race)

        async with self._locks.hold(username):
            await self._persist(username)
            return self.get(username)

    def ensure_admin(self, username: str, password_hash: str) -> bool:
        """Create the bootstrap admin account at boot if it does not exist yet.

        Runs before the server accepts traffic, so it writes synchronously.
        """

        if username in self._players:
            return False
        player = self._insert(
            self._build_player(
                username=username,
                password_hash=password_hash,
                race=RaceName.human,
                email=None,
                is_admin=True,
            )
        )
        if self._writer is not None:
            self._writer.write_now(player.model_copy(deep=True))
        logger.info("Bootstrapped admin account %s", username)
        return True

    # --- gameplay mutations ---

    async def move(self, username: str, x: int, y: int) -> Tile:
        async with self._locks.hold(username):
            player = self._require(username)
            if not self._world.in_bounds(x, y):
                raise MoveRejected("Cannot move outside the world!")
            if not self._world.is_passable(x, y):
                raise MoveRejected("Cannot move to water!")
            tile = self._world.tile_at(x, y)

            player.x, player.y = x, y
            await self._persist(username)
            return tile

    async def grant_xp(self, username: str, amount: int) -> XpGrant:
        if amount < 0:
            raise ValueError("XP amount must be non-negative")

        async with self._locks.hold(username):
            player = self._require(username)

            bonus = 0
            if amount > 0 and self._rng.random() < player.stats.luck * LUCK_BONUS_CHANCE_PER_POINT:
                bonus = math.floor(amount * LUCK_BONUS_RATIO)
            player.xp += amount + bonus

            # A single large grant can cross several thresholds.
            level_ups = 0
            while player.xp >= xp_for_next_level(player.level):
                player.xp -= xp_for_next_level(player.level)
                player.level += 1
                player.stat_points += LEVEL_UP_STAT_POINTS
                level_ups += 1
                logger.info("Player %s reached level %d", username, player.level)

            await self._persist(username)
            return XpGrant(player=self.get(username), bonus_xp=bonus, level_ups=level_ups)

    async def allocate_stats(self, username: str, deltas: Mapping[str, int]) -> Player:
        unknown = set(deltas) - set(STAT_NAMES)
        if unknown:
            raise InvalidAllocation(f"Unknown stats: {', '.join(sorted(unknown))}")
        if any(v < 0 for v in deltas.values()):
            raise InvalidAllocation()

        async with self._locks.hold(username):
            player = self._require(username)
            total = sum(deltas.values())
            if total > player.stat_points:
                raise InsufficientPoints(f"Requested {total} stat points but only {player.stat_points} available")
            if total == 0:
                return self.get(username)

            for name in STAT_NAMES:
                setattr(player.stats, name, getattr(player.stats, name) + deltas.get(name, 0))
            player.stat_points -= total
            logger.info(
                "Player %s allocated %d stat points (%s)",
                username,
                total,
                ", ".join(f"{k}+{v}" for k, v in deltas.items() if v),
            )

            await self._persist(username)
            return self.get(username)

    async def set_email(self, username: str, email: str | None) -> Player:
        async with self._uniqueness_lock:
            self._require(username)
            if email:
                owner = self._email_owner(email)
                if owner is not None and owner != username:
                    raise EmailTaken()
            async with self._locks.hold(username):
                self._require(username).email = email or None
                await self._persist(username)
                return self.get(username)

    async def set_avatar_ref(self, username: str, avatar_ref: str) -> Player:
        async with self._locks.hold(username):
            self._require(username).avatar = avatar_ref
            await self._persist(username)
            return self.get(username)

    # --- internals ---

    def _require(self, username: str) -> Player:
        player = self._players.get(username)
        if player is None:
            raise NotFound(f"Player not found: {username}")
        return player

    def _email_owner(self, email: str) -> str | None:
        wanted = email.casefold()
        return next((p.username for p in self._players.values() if p.email and p.email.casefold() == wanted), None)

    def _build_player(
        self,
        *,
        username: str,
        password_hash: str,
        race: RaceName | str,
        email: str | None,
        is_admin: bool,
    ) -> Player:
        spec = get_race(race)
        x, y = self._world.spawn_point()
        return Player(
            username=username,
            password_hash=password_hash,
            email=email or None,
            race=spec.name.value,
            level=1,
            xp=0,
            stat_points=STARTING_STAT_POINTS,
            stats=spec.starting_stats(),
            x=x,
            y=y,
            is_admin=is_admin,
            created_at=_now(),
        )

    def _insert(self, player: Player) -> Player:
        if player.username in self._players:
            raise DuplicateUsername()
        if player.email and self._email_owner(player.email) is not None:
            raise EmailTaken()
        self._players[player.username] = player
        return player

    async def _persist(self, username: str) -> None:
        # Caller holds the username lock, so this snapshot is the newest state.
        if self._writer is None:
            return
        await self._writer.write(self._players[username].model_copy(deep=True))
