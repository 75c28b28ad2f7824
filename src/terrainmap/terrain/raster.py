"""Georeferenced raster output for processed tiles."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

import numpy as np
import rasterio
from rasterio.errors import RasterioError
from rasterio.transform import Affine, from_origin

from terrainmap.errors import EncodeFailed
from terrainmap.terrain.crs import GEOGRAPHIC_CRS, raster_crs
from terrainmap.terrain.models import (
    NODATA,
    TILE_SIZE,
    ElevationGrid,
    FetchResult,
    Geotransform,
    TileExtent,
    TileRaster,
)
from terrainmap.terrain.tiling import tile_name

LOGGER = logging.getLogger("terrainmap.raster")


def tile_transform(extent: TileExtent, width: int = TILE_SIZE, height: int = TILE_SIZE) -> Affine:
    """Affine transform anchored at the extent's north-west corner."""
    res_x = extent.width / width
    res_y = extent.height / height
    return from_origin(extent.min_lng, extent.max_lat, res_x, res_y)


def tile_geotransform(
    extent: TileExtent,
    width: int = TILE_SIZE,
    height: int = TILE_SIZE,
) -> Geotransform:
    """Return the GDAL geotransform (north-up, negative pixel height)."""
    return tuple(tile_transform(extent, width, height).to_gdal())  # type: ignore[return-value]


def tile_band(grid: ElevationGrid) -> np.ndarray:
    """Lay the flat elevation sequence out as a (height, width) band."""
    band = np.empty((grid.height, grid.width), dtype=np.float32)
    for y in range(grid.height):
        start = grid.index(0, y)
        band[y, :] = grid.elevations[start : start + grid.width]
    return band


def encode_geotiff(
    path: Path,
    width: int,
    height: int,
    band: np.ndarray | Sequence[float],
    spatial_ref: str | int = GEOGRAPHIC_CRS,
    geotransform: Geotransform | None = None,
) -> Path:
    """Write a single-band float32 GeoTIFF."""
    if geotransform is None:
        raise ValueError("A geotransform is required to encode a raster.")
    data = np.asarray(band, dtype=np.float32)
    if data.size != width * height:
        raise ValueError(f"Band holds {data.size} values, expected {width * height}.")
    data = data.reshape((height, width))
    try:
        with rasterio.open(
            path,
            "w",
            driver="GTiff",
            height=height,
            width=width,
            count=1,
            dtype="float32",
            crs=raster_crs(spatial_ref),
            transform=Affine.from_gdal(*geotransform),
            nodata=NODATA,
        ) as dataset:
            dataset.write(data, 1)
    except (RasterioError, OSError) as exc:
        raise EncodeFailed(f"Could not write raster {path}: {exc}") from exc
    return path


def write_tile_raster(result: FetchResult, work_dir: Path) -> TileRaster:
    """Write the GeoTIFF for a successful fetch result into ``work_dir``."""
    if not result.success or result.grid is None or result.extent is None:
        raise ValueError(f"Tile {result.tile} has no elevation data to write.")
    grid = result.grid
    geotransform = tile_geotransform(result.extent, grid.width, grid.height)
    path = work_dir / tile_name(result.tile)
    LOGGER.debug("Writing raster %s", path, extra={"tile": result.tile.name})
    encode_geotiff(
        path,
        grid.width,
        grid.height,
        tile_band(grid),
        GEOGRAPHIC_CRS,
        geotransform,
    )
    return TileRaster(
        tile=result.tile,
        path=path,
        extent=result.extent,
        geotransform=geotransform,
    )
