from __future__ import annotations

import asyncio

import fakeredis
import pytest
import redis

from conftest import FixedRandom
from foxhole.api.models import Player, TileType
from foxhole.errors import (
    DuplicateUsername,
    EmailTaken,
    InsufficientPoints,
    InvalidAllocation,
    InvalidRace,
    MoveRejected,
    NotFound,
)
from foxhole.game_store import PLAYERS_KEY, PlayerWriter, load_players
from foxhole.players import PlayerRegistry
from foxhole.world.store import WorldStore

NO_BONUS = FixedRandom(0.99)


def _registry(world: WorldStore, *, r: fakeredis.FakeRedis | None = None, rng=NO_BONUS) -> PlayerRegistry:  # type: ignore[no-untyped-def]
    writer = PlayerWriter(r=r) if r is not None else None
    return PlayerRegistry(world=world, writer=writer, rng=rng)


@pytest.mark.asyncio
async def test_register_dwarf_gets_race_bonuses_and_spawn(world: WorldStore) -> None:
    players = _registry(world)

    ann = await players.register("Ann", "hash", "dwarf")

    assert ann.stats.strength == 15
    assert ann.stats.speed == 5
    assert ann.stats.intelligence == 10
    assert ann.stats.luck == 10
    assert (ann.x, ann.y) == world.spawn_point()
    assert ann.level == 1
    assert ann.xp == 0
    assert ann.stat_points == 5
    assert ann.is_admin is False


@pytest.mark.asyncio
async def test_register_duplicate_and_invalid_race(world: WorldStore) -> None:
    players = _registry(world)
    await players.register("ann", "hash", "elf")

    with pytest.raises(DuplicateUsername):
        await players.register("ann", "hash", "orc")
    with pytest.raises(InvalidRace):
        await players.register("bob", "hash", "dragon")
    assert players.count() == 1


@pytest.mark.asyncio
async def test_register_persists_player(world: WorldStore) -> None:
    r = fakeredis.FakeRedis(decode_responses=True)
    players = _registry(world, r=r)

    await players.register("ann", "hash", "human", email="ann@example.com")

    stored = load_players(r=r)
    assert stored["ann"].email == "ann@example.com"
    assert stored["ann"].password_hash == "hash"


@pytest.mark.asyncio
async def test_move_to_land_updates_position(world: WorldStore) -> None:
    players = _registry(world)
    await players.register("ann", "hash", "human")

    tile = await players.move("ann", 3, 4)

    assert tile.type == TileType.forest
    ann = players.get("ann")
    assert (ann.x, ann.y) == (3, 4)
    assert world.tile_at(ann.x, ann.y) == tile


@pytest.mark.asyncio
@pytest.mark.parametrize("target", [(0, 7), (7, 0), (-1, 3), (3, 20), (500, 500)])
async def test_move_rejected_leaves_position(world: WorldStore, target: tuple[int, int]) -> None:
    players = _registry(world)
    await players.register("ann", "hash", "human")

    with pytest.raises(MoveRejected):
        await players.move("ann", *target)

    ann = players.get("ann")
    assert (ann.x, ann.y) == (5, 5)


@pytest.mark.asyncio
async def test_move_unknown_player(world: WorldStore) -> None:
    with pytest.raises(NotFound):
        await _registry(world).move("ghost", 3, 3)


@pytest.mark.asyncio
async def test_concurrent_moves_end_in_one_consistent_position(world: WorldStore) -> None:
    r = fakeredis.FakeRedis(decode_responses=True)
    players = _registry(world, r=r)
    await players.register("ann", "hash", "human")

    targets = [(x, y) for x in range(1, 8) for y in range(1, 8)]
    await asyncio.gather(*(players.move("ann", x, y) for x, y in targets))

    ann = players.get("ann")
    # Moves for one player apply in arrival order; memory and storage agree.
    assert (ann.x, ann.y) == targets[-1]
    stored = Player.model_validate_json(r.hget(PLAYERS_KEY, "ann"))
    assert (stored.x, stored.y) == (ann.x, ann.y)


@pytest.mark.asyncio
async def test_xp_crossing_one_threshold(world: WorldStore) -> None:
    players = _registry(world)
    await players.register("ann", "hash", "human")
    await players.grant_xp("ann", 90)

    grant = await players.grant_xp("ann", 150)

    assert grant.bonus_xp == 0
    assert grant.level_ups == 1
    assert grant.player.level == 2
    assert grant.player.xp == 140
    assert grant.player.stat_points == 5 + 2


@pytest.mark.asyncio
async def test_xp_large_grant_levels_up_repeatedly(world: WorldStore) -> None:
    players = _registry(world)
    await players.register("ann", "hash", "human")

    # 100 (lvl1->2) + 200 (2->3) + 300 (3->4) = 600, 50 left over.
    grant = await players.grant_xp("ann", 650)

    assert grant.level_ups == 3
    assert grant.player.level == 4
    assert grant.player.xp == 50
    assert grant.player.stat_points == 5 + 3 * 2


@pytest.mark.asyncio
async def test_luck_bonus_when_roll_succeeds(world: WorldStore) -> None:
    players = _registry(world, rng=FixedRandom(0.0))
    await players.register("ann", "hash", "human")

    grant = await players.grant_xp("ann", 55)

    assert grant.bonus_xp == 5
    assert grant.player.xp == 60


@pytest.mark.asyncio
async def test_negative_xp_rejected(world: WorldStore) -> None:
    players = _registry(world)
    await players.register("ann", "hash", "human")
    with pytest.raises(ValueError):
        await players.grant_xp("ann", -10)


@pytest.mark.asyncio
async def test_allocate_stats(world: WorldStore) -> None:
    players = _registry(world)
    await players.register("ann", "hash", "human")

    ann = await players.allocate_stats("ann", {"strength": 2, "luck": 3})

    assert ann.stats.strength == 12
    assert ann.stats.luck == 18
    assert ann.stat_points == 0


@pytest.mark.asyncio
async def test_allocate_over_budget_changes_nothing(world: WorldStore) -> None:
    players = _registry(world)
    await players.register("ann", "hash", "human")
    before = players.get("ann")

    with pytest.raises(InsufficientPoints):
        await players.allocate_stats("ann", {"strength": 4, "speed": 2})

    after = players.get("ann")
    assert after.stats == before.stats
    assert after.stat_points == before.stat_points


@pytest.mark.asyncio
@pytest.mark.parametrize("deltas", [{"strength": -1}, {"charisma": 1}])
async def test_allocate_rejects_bad_deltas(world: WorldStore, deltas: dict[str, int]) -> None:
    players = _registry(world)
    await players.register("ann", "hash", "human")

    with pytest.raises(InvalidAllocation):
        await players.allocate_stats("ann", deltas)
    assert players.get("ann").stat_points == 5


@pytest.mark.asyncio
async def test_email_uniqueness(world: WorldStore) -> None:
    players = _registry(world)
    await players.register("ann", "hash", "human", email="ann@example.com")
    await players.register("bob", "hash", "human")

    with pytest.raises(EmailTaken):
        await players.set_email("bob", "ANN@example.com")
    with pytest.raises(EmailTaken):
        await players.register("cat", "hash", "human", email="ann@example.com")

    # Re-setting your own address is fine.
    ann = await players.set_email("ann", "ann@example.com")
    assert ann.email == "ann@example.com"


@pytest.mark.asyncio
async def test_avatar_ref_is_opaque(world: WorldStore) -> None:
    players = _registry(world)
    await players.register("ann", "hash", "human")

    ann = await players.set_avatar_ref("ann", "/avatars/abc.png")
    assert ann.avatar == "/avatars/abc.png"


@pytest.mark.asyncio
async def test_returned_players_are_copies(world: WorldStore) -> None:
    players = _registry(world)
    ann = await players.register("ann", "hash", "human")

    ann.x = 0
    ann.stats.strength = 999

    fresh = players.get("ann")
    assert fresh.x == 5
    assert fresh.stats.strength == 10


class _BrokenRedis:
    def hset(self, *args, **kwargs):  # type: ignore[no-untyped-def]
        raise redis.ConnectionError("redis is down")


@pytest.mark.asyncio
async def test_persistence_failure_keeps_memory_state(world: WorldStore) -> None:
    players = PlayerRegistry(world=world, writer=PlayerWriter(r=_BrokenRedis()), rng=NO_BONUS)  # type: ignore[arg-type]

    await players.register("ann", "hash", "human")
    await players.move("ann", 3, 4)

    ann = players.get("ann")
    assert (ann.x, ann.y) == (3, 4)


def test_ensure_admin_is_idempotent(world: WorldStore) -> None:
    players = _registry(world)

    assert players.ensure_admin("admiral", "hash") is True
    assert players.ensure_admin("admiral", "other") is False
    admin = players.get("admiral")
    assert admin.is_admin is True
    assert admin.password_hash == "hash"
