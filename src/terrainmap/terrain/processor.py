"""Per-tile elevation extraction."""

from __future__ import annotations

import logging
import math

import numpy as np

from terrainmap.errors import FetchFailed, TileError
from terrainmap.terrain.geomath import tile_bounds
from terrainmap.terrain.models import (
    TILE_SIZE,
    ElevationGrid,
    FetchResult,
    TileCoordinate,
    TileExtent,
)
from terrainmap.terrain.source import TerrainTile, TileSource, decode_terrain_rgb

# Allowed disagreement (degrees) between pixel-derived and nominal tile extents.
EXTENT_TOLERANCE = 1e-9

LOGGER = logging.getLogger("terrainmap.processor")


def extract_grid(terrain: TerrainTile, size: int = TILE_SIZE) -> ElevationGrid:
    """Sample every pixel of a decoded tile in row-major order."""
    # meshgrid with xy indexing keeps rows outermost once flattened.
    cols, rows = np.meshgrid(np.arange(size), np.arange(size), indexing="xy")
    px = cols.ravel().astype(np.float64)
    py = rows.ravel().astype(np.float64)
    lngs, lats = terrain.pixel_to_location(px, py)
    elevations, failed = terrain.altitudes(lngs, lats)
    return ElevationGrid(
        width=size,
        height=size,
        longitudes=np.asarray(lngs, dtype=np.float64),
        latitudes=np.asarray(lats, dtype=np.float64),
        elevations=elevations,
        failed_pixels=int(failed.sum()),
    )


def _check_extent(tile: TileCoordinate, extent: TileExtent) -> None:
    """Guard that the pixel-derived extent agrees with the tile numbers.

    Both sides come from the same Web Mercator formula and the decoder already
    enforces the tile size, so this only trips if a caller hands a TerrainTile
    built for a different tile or size.
    """
    nominal = tile_bounds(tile)
    for actual, expected in zip(extent.as_tuple(), nominal.as_tuple()):
        if not math.isclose(actual, expected, rel_tol=0.0, abs_tol=EXTENT_TOLERANCE):
            raise FetchFailed(
                f"Pixel extent {extent.as_tuple()} disagrees with tile bounds "
                f"{nominal.as_tuple()} for {tile}."
            )


def process_tile(tile: TileCoordinate, source: TileSource) -> FetchResult:
    """Fetch one tile and convert it into an elevation grid and extent.

    Tile-scoped failures are returned in the result rather than raised.
    """
    log_extra = {"tile": tile.name}
    try:
        buffer = source.fetch(tile.x, tile.y, tile.z)
        terrain = decode_terrain_rgb(buffer, tile)
        grid = extract_grid(terrain)
        extent = terrain.extent()
        _check_extent(tile, extent)
    except TileError as exc:
        LOGGER.warning("Tile %s failed: %s", tile, exc, extra=log_extra)
        return FetchResult.failed(tile, exc)
    if grid.failed_pixels:
        LOGGER.info(
            "Tile %s: %s pixel(s) without elevation",
            tile,
            grid.failed_pixels,
            extra=log_extra,
        )
    LOGGER.debug("Processed tile %s", tile, extra=log_extra)
    return FetchResult(tile=tile, grid=grid, extent=extent)
