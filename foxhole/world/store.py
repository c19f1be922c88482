from __future__ import annotations

from foxhole.api.models import RegionTile, Settlement, Tile, TileType, WorldSnapshot
from foxhole.errors import NotFound, OutOfBounds
from foxhole.world.generator import GeneratedWorld


class WorldStore:
    """Read-only view of the tile grid and its settlements.

    Contract:
      - `tile_at(x, y)` raises `OutOfBounds` outside `[0, size)`.
      - `region_around(x, y, radius)` returns the square window clipped to the grid,
        ordered by x then y.
      - `settlements()` keeps generation order; index 0 is the spawn point.
    """

    def __init__(self, *, tiles: list[list[Tile]], settlements: list[Settlement]) -> None:
        size = len(tiles)
        if size == 0 or any(len(column) != size for column in tiles):
            raise ValueError("World grid must be a non-empty square")
        self._size = size
        self._tiles = tiles
        self._settlements = tuple(settlements)

    @classmethod
    def from_generated(cls, world: GeneratedWorld) -> "WorldStore":
        return cls(tiles=world.tiles, settlements=world.settlements)

    @classmethod
    def from_snapshot(cls, snapshot: WorldSnapshot) -> "WorldStore":
        return cls(tiles=snapshot.tiles, settlements=snapshot.settlements)

    def to_snapshot(self) -> WorldSnapshot:
        return WorldSnapshot(size=self._size, tiles=self._tiles, settlements=list(self._settlements))

    @property
    def size(self) -> int:
        return self._size

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self._size and 0 <= y < self._size

    def tile_at(self, x: int, y: int) -> Tile:
        if not self.in_bounds(x, y):
            raise OutOfBounds(f"({x}, {y}) is outside the {self._size}x{self._size} world")
        return self._tiles[x][y]

    def is_passable(self, x: int, y: int) -> bool:
        return self.in_bounds(x, y) and self._tiles[x][y].type != TileType.water

    def region_around(self, center_x: int, center_y: int, radius: int) -> list[RegionTile]:
        if radius < 0:
            return []
        region: list[RegionTile] = []
        for x in range(max(0, center_x - radius), min(self._size - 1, center_x + radius) + 1):
            for y in range(max(0, center_y - radius), min(self._size - 1, center_y + radius) + 1):
                region.append(RegionTile(x=x, y=y, tile=self._tiles[x][y]))
        return region

    def settlements(self) -> list[Settlement]:
        return list(self._settlements)

    def spawn_point(self) -> tuple[int, int]:
        if not self._settlements:
            raise NotFound("World has no settlements to spawn at")
        first = self._settlements[0]
        return first.x, first.y
