"""Data models used by the terrain tile pipeline."""

from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Tuple

import numpy as np

from terrainmap.errors import InvalidCoordinate

DEFAULT_ZOOM = 10
ZOOM_MIN = 1
ZOOM_MAX = 15
TILE_SIZE = 256
# Elevation written for pixels whose lookup failed; also the raster nodata value.
NODATA = -32768.0

Geotransform = Tuple[float, float, float, float, float, float]
ElevationSample = Tuple[float, float, float]


@dataclass(frozen=True)
class ViewWindow:
    """Bounding box and zoom requested for a run."""

    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float
    zoom: int = DEFAULT_ZOOM

    def __post_init__(self) -> None:
        values = (self.min_lat, self.max_lat, self.min_lng, self.max_lng)
        if not all(math.isfinite(value) for value in values):
            raise InvalidCoordinate("View bounds must be finite numbers.")
        if isinstance(self.zoom, bool) or not isinstance(self.zoom, int):
            raise InvalidCoordinate("Map zoom must be an integer.")
        if not ZOOM_MIN <= self.zoom <= ZOOM_MAX:
            raise InvalidCoordinate(f"Must supply a map zoom ({ZOOM_MIN} to {ZOOM_MAX}).")
        if not (-90.0 < self.min_lat < 90.0 and -90.0 < self.max_lat < 90.0):
            raise InvalidCoordinate("Latitudes must lie strictly between -90 and 90.")
        if not (-180.0 <= self.min_lng <= 180.0 and -180.0 <= self.max_lng <= 180.0):
            raise InvalidCoordinate("Longitudes must lie between -180 and 180.")
        if self.min_lat >= self.max_lat:
            raise InvalidCoordinate("min_lat must be less than max_lat.")
        if self.min_lng >= self.max_lng:
            raise InvalidCoordinate("min_lng must be less than max_lng.")

    def as_dict(self) -> dict[str, float | int]:
        return {
            "min_lat": self.min_lat,
            "max_lat": self.max_lat,
            "min_lng": self.min_lng,
            "max_lng": self.max_lng,
            "zoom": self.zoom,
        }


@dataclass(frozen=True)
class TileCoordinate:
    """Slippy-map tile address."""

    x: int
    y: int
    z: int

    def __post_init__(self) -> None:
        if self.x < 0 or self.y < 0 or self.z < 0:
            raise InvalidCoordinate(f"Tile coordinates must be non-negative: {self}")

    @property
    def name(self) -> str:
        """Deterministic artifact stem for the tile."""
        return f"{self.z}_{self.x}_{self.y}"

    def __str__(self) -> str:
        return f"{self.z}/{self.x}/{self.y}"


@dataclass(frozen=True)
class TileExtent:
    """Geographic extent covered by a tile's pixel grid."""

    min_lng: float
    min_lat: float
    max_lng: float
    max_lat: float

    @property
    def width(self) -> float:
        return self.max_lng - self.min_lng

    @property
    def height(self) -> float:
        return self.max_lat - self.min_lat

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.min_lng, self.min_lat, self.max_lng, self.max_lat)


@dataclass(frozen=True, eq=False)
class ElevationGrid:
    """Row-major pixel samples for one tile, addressed by ``x + y * width``."""

    width: int
    height: int
    longitudes: np.ndarray
    latitudes: np.ndarray
    elevations: np.ndarray
    failed_pixels: int = 0

    def __post_init__(self) -> None:
        size = self.width * self.height
        for name in ("longitudes", "latitudes", "elevations"):
            array = getattr(self, name)
            if array.ndim != 1 or array.shape[0] != size:
                raise ValueError(f"{name} must be a flat sequence of {size} values.")

    def __len__(self) -> int:
        return self.width * self.height

    def index(self, x: int, y: int) -> int:
        """Return the flat position of pixel ``(x, y)``."""
        return x + y * self.width

    def sample(self, x: int, y: int) -> ElevationSample:
        pos = self.index(x, y)
        return (
            float(self.longitudes[pos]),
            float(self.latitudes[pos]),
            float(self.elevations[pos]),
        )

    def samples(self) -> Iterator[ElevationSample]:
        """Yield ``(longitude, latitude, elevation)`` in row-major order."""
        for lng, lat, elevation in zip(self.longitudes, self.latitudes, self.elevations):
            yield float(lng), float(lat), float(elevation)


@dataclass(frozen=True)
class FetchResult:
    """Per-tile outcome of the fetch pool."""

    tile: TileCoordinate
    grid: ElevationGrid | None = None
    extent: TileExtent | None = None
    error: str | None = None
    error_kind: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None and self.grid is not None and self.extent is not None

    @classmethod
    def failed(cls, tile: TileCoordinate, exc: BaseException) -> "FetchResult":
        return cls(tile=tile, error=str(exc) or repr(exc), error_kind=type(exc).__name__)


@dataclass(frozen=True)
class TileRaster:
    """Result of writing a tile raster."""

    tile: TileCoordinate
    path: Path
    extent: TileExtent
    geotransform: Geotransform
