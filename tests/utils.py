from __future__ import annotations

import threading
import warnings
from pathlib import Path
from typing import Mapping, Tuple

import numpy as np
import rasterio
from rasterio.errors import NotGeoreferencedWarning
from rasterio.transform import from_bounds

from terrainmap.terrain.models import TileCoordinate


def terrain_rgb(elevation: np.ndarray, alpha: np.ndarray | None = None) -> np.ndarray:
    """Encode elevations (metres) as Terrain-RGB bands."""
    value = np.round((elevation + 10000.0) * 10.0).astype(np.int64)
    bands = [(value >> 16) & 255, (value >> 8) & 255, value & 255]
    if alpha is not None:
        bands.append(alpha)
    return np.stack(bands).astype(np.uint8)


def encode_png(bands: np.ndarray, path: Path) -> bytes:
    """Write bands as a PNG and return the encoded bytes."""
    count, height, width = bands.shape
    path.parent.mkdir(parents=True, exist_ok=True)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", NotGeoreferencedWarning)
        with rasterio.open(
            path,
            "w",
            driver="PNG",
            height=height,
            width=width,
            count=count,
            dtype="uint8",
        ) as dataset:
            dataset.write(bands)
    return path.read_bytes()


def write_raster(
    path: Path,
    data: np.ndarray,
    *,
    bounds: Tuple[float, float, float, float],
    crs: str = "EPSG:4326",
    nodata: float | None = None,
) -> None:
    height, width = data.shape
    transform = from_bounds(*bounds, width=width, height=height)
    path.parent.mkdir(parents=True, exist_ok=True)
    with rasterio.open(
        path,
        "w",
        driver="GTiff",
        height=height,
        width=width,
        count=1,
        dtype=data.dtype,
        crs=crs,
        transform=transform,
        nodata=nodata,
    ) as dataset:
        dataset.write(data, 1)


class FakeSource:
    """Tile source serving one buffer, with per-tile failures."""

    def __init__(
        self,
        buffer: bytes,
        failures: Mapping[Tuple[int, int, int], Exception] | None = None,
    ) -> None:
        self.buffer = buffer
        self.failures = dict(failures or {})
        self.calls: list[TileCoordinate] = []
        self._lock = threading.Lock()

    def fetch(self, x: int, y: int, z: int) -> bytes:
        with self._lock:
            self.calls.append(TileCoordinate(x, y, z))
        failure = self.failures.get((x, y, z))
        if failure is not None:
            raise failure
        return self.buffer
