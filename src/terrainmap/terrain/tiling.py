"""View tiling and pre-flight tile budget checks."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from terrainmap.errors import TooManyTiles
from terrainmap.terrain.geomath import to_tile
from terrainmap.terrain.models import TileCoordinate, ViewWindow

MAX_TILES = 100
# Tiles added around the corner tiles on every side.
TILE_BUFFER = 1

LOGGER = logging.getLogger("terrainmap.tiling")


def tile_name(tile: TileCoordinate, suffix: str = ".tif") -> str:
    """Format the artifact file name for a tile."""
    return f"terrain_{tile.name}{suffix}"


def _clamp(index: int, last: int) -> int:
    return min(last, max(0, index))


def tiles_for(window: ViewWindow) -> list[TileCoordinate]:
    """Return the buffered tile grid covering a view, x-major.

    Both ends of each range are clamped into the grid, so views beyond the
    Mercator latitude limit still cover the edge row instead of nothing.
    """
    z = window.zoom
    last = 2**z - 1
    ur_x, ur_y = to_tile(window.max_lat, window.max_lng, z)
    ll_x, ll_y = to_tile(window.min_lat, window.min_lng, z)

    start_x = _clamp(ll_x - TILE_BUFFER, last)
    end_x = _clamp(ur_x + TILE_BUFFER, last)
    # Tile y grows southward, so the upper-right corner has the smaller y.
    start_y = _clamp(ur_y - TILE_BUFFER, last)
    end_y = _clamp(ll_y + TILE_BUFFER, last)

    tiles = []
    for x in range(start_x, end_x + 1):
        for y in range(start_y, end_y + 1):
            tiles.append(TileCoordinate(x=x, y=y, z=z))
    return tiles


@dataclass(frozen=True)
class TilePlan:
    """Tiles required for a view and the budget they are checked against."""

    window: ViewWindow
    tiles: tuple[TileCoordinate, ...]
    max_tiles: int

    @property
    def count(self) -> int:
        return len(self.tiles)

    @property
    def exceeds_budget(self) -> bool:
        return self.count > self.max_tiles

    def require_within_budget(self) -> "TilePlan":
        """Raise TooManyTiles when the plan is over budget."""
        if self.exceeds_budget:
            raise TooManyTiles(self.count, self.max_tiles)
        return self

    def as_dict(self) -> dict[str, object]:
        return {
            "view": self.window.as_dict(),
            "max_tiles": self.max_tiles,
            "count": self.count,
            "exceeds_budget": self.exceeds_budget,
            "tiles": [[tile.x, tile.y, tile.z] for tile in self.tiles],
        }


def plan_view(window: ViewWindow, max_tiles: int = MAX_TILES) -> TilePlan:
    """Compute the tile plan for a view without touching the network."""
    if max_tiles < 1:
        raise ValueError("max_tiles must be >= 1")
    plan = TilePlan(window=window, tiles=tuple(tiles_for(window)), max_tiles=max_tiles)
    LOGGER.debug("Planned %s tile(s) at zoom %s", plan.count, window.zoom)
    return plan
