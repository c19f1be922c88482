from __future__ import annotations

import math
import random
from dataclasses import dataclass

from foxhole.api.models import Settlement, Tile, TileType

WORLD_SIZE = 150
ISLAND_COUNT = 25
MIN_ISLAND_RADIUS = 10
MAX_ISLAND_RADIUS = 25  # exclusive

LAND_TYPES: tuple[TileType, ...] = (TileType.grass, TileType.forest, TileType.mountain, TileType.beach)

# Weights over LAND_TYPES, by distance band from the island center.
INNER_WEIGHTS = (0.4, 0.3, 0.2, 0.1)
MIDDLE_WEIGHTS = (0.3, 0.3, 0.2, 0.2)
OUTER_WEIGHTS = (0.1, 0.2, 0.1, 0.6)

SETTLEMENT_NAMES: tuple[str, ...] = (
    "Port Royal",
    "Tortuga",
    "Nassau",
    "Shipwreck Bay",
    "Skull Island",
    "Treasure Cove",
    "Blackbeard's Harbor",
    "Rum Bay",
    "Cannonball Reef",
    "Cutlass Point",
    "Parrot's Perch",
    "Jolly Roger Port",
)

WATER = Tile(type=TileType.water)


@dataclass(frozen=True, slots=True)
class Island:
    island_id: int
    center_x: int
    center_y: int
    radius: int


@dataclass(frozen=True, slots=True)
class GeneratedWorld:
    size: int
    # Column-major: tiles[x][y].
    tiles: list[list[Tile]]
    settlements: list[Settlement]
    islands: list[Island]


def _weights_for(distance: float, radius: int) -> tuple[float, ...]:
    if distance < radius * 0.3:
        return INNER_WEIGHTS
    if distance < radius * 0.6:
        return MIDDLE_WEIGHTS
    return OUTER_WEIGHTS


def _raise_island(*, tiles: list[list[Tile]], island: Island, size: int, rng: random.Random) -> None:
    r = island.radius
    for x in range(island.center_x - r, island.center_x + r + 1):
        for y in range(island.center_y - r, island.center_y + r + 1):
            if not (0 <= x < size and 0 <= y < size):
                continue
            distance = math.hypot(x - island.center_x, y - island.center_y)
            # Jittered threshold gives ragged, non-circular coastlines.
            if distance >= r * (0.7 + rng.random() * 0.3):
                continue
            terrain = rng.choices(LAND_TYPES, weights=_weights_for(distance, r))[0]
            # Overlapping islands: the later seed wins.
            tiles[x][y] = Tile(type=terrain, island_id=island.island_id)


def _place_settlements(
    *,
    tiles: list[list[Tile]],
    islands: list[Island],
    names: tuple[str, ...],
    size: int,
    rng: random.Random,
) -> list[Settlement]:
    """Place one settlement per name near an island center.

    A placement that lands on water is dropped, not retried, so the result can
    hold fewer settlements than names.
    """

    settlements: list[Settlement] = []
    if not islands:
        return settlements

    for i, name in enumerate(names):
        island = islands[i % len(islands)]
        offset_x = math.floor((rng.random() - 0.5) * island.radius * 0.5)
        offset_y = math.floor((rng.random() - 0.5) * island.radius * 0.5)
        x = max(0, min(size - 1, island.center_x + offset_x))
        y = max(0, min(size - 1, island.center_y + offset_y))

        tile = tiles[x][y]
        if tile.type == TileType.water:
            continue

        settlements.append(Settlement(id=i, name=name, x=x, y=y, island_id=tile.island_id))
        tiles[x][y] = tile.model_copy(update={"settlement": name})

    return settlements


def generate_world(
    *,
    rng: random.Random,
    size: int = WORLD_SIZE,
    island_count: int = ISLAND_COUNT,
    settlement_names: tuple[str, ...] = SETTLEMENT_NAMES,
) -> GeneratedWorld:
    """Generate the island archipelago and its settlements.

    Only called at first boot, when persistence holds no world.
    """

    if size <= 2 * MIN_ISLAND_RADIUS:
        raise ValueError(f"World size must be greater than {2 * MIN_ISLAND_RADIUS}")

    tiles = [[WATER for _ in range(size)] for _ in range(size)]
    islands: list[Island] = []

    for i in range(island_count):
        island = Island(
            island_id=i,
            center_x=rng.randrange(MIN_ISLAND_RADIUS, size - MIN_ISLAND_RADIUS),
            center_y=rng.randrange(MIN_ISLAND_RADIUS, size - MIN_ISLAND_RADIUS),
            radius=rng.randrange(MIN_ISLAND_RADIUS, MAX_ISLAND_RADIUS),
        )
        islands.append(island)
        _raise_island(tiles=tiles, island=island, size=size, rng=rng)

    settlements = _place_settlements(tiles=tiles, islands=islands, names=settlement_names, size=size, rng=rng)
    return GeneratedWorld(size=size, tiles=tiles, settlements=settlements, islands=islands)
