from __future__ import annotations

import random
from collections.abc import Generator

import fakeredis
import pytest
from fastapi.testclient import TestClient

from foxhole.api.models import Settlement, Tile, TileType
from foxhole.config import Settings
from foxhole.runtime import GameRuntime, init_runtime, reset_runtime_for_tests
from foxhole.world.store import WorldStore

ADMIN_USERNAME = "admiral"
ADMIN_PASSWORD = "hoist-the-colours"


class FixedRandom(random.Random):
    """`random()` always returns the same value; used to force or suppress luck bonuses."""

    def __init__(self, value: float) -> None:
        super().__init__(0)
        self._value = value

    def random(self) -> float:
        return self._value


def make_world(size: int = 20) -> WorldStore:
    """Small hand-built world: column x=0 and row y=0 are water, everything else grass.

    The single settlement sits at (5, 5); (3, 4) is forest.
    """

    tiles: list[list[Tile]] = []
    for x in range(size):
        column = []
        for y in range(size):
            if x == 0 or y == 0:
                column.append(Tile(type=TileType.water))
            else:
                column.append(Tile(type=TileType.grass, island_id=0))
        tiles.append(column)
    tiles[3][4] = Tile(type=TileType.forest, island_id=0)
    tiles[5][5] = Tile(type=TileType.grass, island_id=0, settlement="Port Royal")
    return WorldStore(tiles=tiles, settlements=[Settlement(id=0, name="Port Royal", x=5, y=5, island_id=0)])


@pytest.fixture()
def world() -> WorldStore:
    return make_world()


@pytest.fixture()
def redis_client() -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        world_seed=1234,
        bcrypt_rounds=4,
        admin_username=ADMIN_USERNAME,
        admin_password=ADMIN_PASSWORD,
    )


@pytest.fixture()
def runtime(redis_client: fakeredis.FakeRedis, settings: Settings) -> Generator[GameRuntime, None, None]:
    """Boot a full runtime against fakeredis; the app's startup hook then reuses it."""

    reset_runtime_for_tests()
    rt = init_runtime(r=redis_client, settings=settings, rng=FixedRandom(0.99))
    yield rt
    reset_runtime_for_tests()


@pytest.fixture()
def client(runtime: GameRuntime) -> Generator[TestClient, None, None]:
    from foxhole.main import app

    with TestClient(app) as c:
        yield c


def register_and_login(client: TestClient, username: str, race: str = "human", password: str = "pw") -> str:
    resp = client.post("/api/register", json={"username": username, "password": password, "race": race})
    assert resp.status_code == 200, resp.text
    resp = client.post("/api/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()["sessionId"]
