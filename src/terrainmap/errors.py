"""Exception taxonomy for terrainmap runs."""

from __future__ import annotations


class TerrainMapError(RuntimeError):
    """Base class for terrainmap errors."""


class InvalidCoordinate(TerrainMapError, ValueError):
    """Raised for latitude/longitude/zoom input that cannot be tiled."""


class TooManyTiles(TerrainMapError):
    """Raised by the pre-flight check when a view needs too many tiles."""

    def __init__(self, count: int, max_tiles: int) -> None:
        super().__init__(
            f"Too many map tiles ({count} > {max_tiles}). "
            "Please raise map zoom or change bounds."
        )
        self.count = count
        self.max_tiles = max_tiles


class WorkerSpawnFailed(TerrainMapError):
    """Raised when the fetch pool cannot start its workers."""


class ElevationLookupFailed(TerrainMapError):
    """Raised when a single pixel has no usable elevation."""


class TileError(TerrainMapError):
    """Base class for failures scoped to a single tile."""


class FetchFailed(TileError):
    """Raised when a tile could not be fetched or decoded."""


class RateLimited(FetchFailed):
    """Raised when the tile source keeps rejecting requests with HTTP 429."""


class NotFound(FetchFailed):
    """Raised when the tile source has no tile at the coordinate."""


class EncodeFailed(TileError):
    """Raised when a tile raster cannot be written."""
