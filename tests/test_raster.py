from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
import rasterio
from rasterio.transform import Affine

from terrainmap.errors import EncodeFailed
from terrainmap.terrain.models import NODATA, FetchResult, TileCoordinate, TileExtent
from terrainmap.terrain.processor import process_tile
from terrainmap.terrain.raster import (
    encode_geotiff,
    tile_band,
    tile_geotransform,
    write_tile_raster,
)
from tests.utils import FakeSource

TILE = TileCoordinate(500, 301, 10)


def test_geotransform_pixel_size_and_origin() -> None:
    extent = TileExtent(min_lng=8.0, min_lat=46.5, max_lng=8.5, max_lat=47.0)

    gt = tile_geotransform(extent)

    assert gt[1] == pytest.approx(0.5 / 256)
    assert gt[5] == pytest.approx(-0.5 / 256)
    assert gt[2] == 0.0 and gt[4] == 0.0
    transform = Affine.from_gdal(*gt)
    assert transform * (0, 0) == pytest.approx((extent.min_lng, extent.max_lat))
    assert transform * (256, 256) == pytest.approx((extent.max_lng, extent.min_lat))


def test_tile_band_uses_row_major_addressing(terrain_png, elevation_field) -> None:
    grid = process_tile(TILE, FakeSource(terrain_png)).grid
    band = tile_band(grid)
    assert band.shape == (256, 256)
    assert band.dtype == np.float32
    assert band[3, 7] == pytest.approx(grid.elevations[grid.index(7, 3)])
    assert np.allclose(band, elevation_field, atol=0.051)


def test_write_tile_raster_round_trip(tmp_path: Path, terrain_png, elevation_field) -> None:
    result = process_tile(TILE, FakeSource(terrain_png))

    raster = write_tile_raster(result, tmp_path)

    assert raster.path == tmp_path / "terrain_10_500_301.tif"
    with rasterio.open(raster.path) as dataset:
        assert dataset.crs.to_epsg() == 4326
        assert (dataset.width, dataset.height) == (256, 256)
        assert dataset.nodata == NODATA
        assert dataset.transform.to_gdal() == pytest.approx(raster.geotransform)
        left, bottom, right, top = dataset.bounds
        data = dataset.read(1)
    assert (left, bottom, right, top) == pytest.approx(result.extent.as_tuple())
    assert np.allclose(data, elevation_field, atol=0.051)


def test_write_tile_raster_rejects_failed_results(tmp_path: Path) -> None:
    failed = FetchResult(tile=TILE, error="gone", error_kind="NotFound")
    with pytest.raises(ValueError, match="no elevation data"):
        write_tile_raster(failed, tmp_path)


def test_write_tile_raster_missing_directory(tmp_path: Path, terrain_png) -> None:
    result = process_tile(TILE, FakeSource(terrain_png))
    with pytest.raises(EncodeFailed):
        write_tile_raster(result, tmp_path / "missing")


def test_encode_geotiff_validates_inputs(tmp_path: Path) -> None:
    gt = tile_geotransform(TileExtent(0.0, 0.0, 1.0, 1.0), 2, 2)
    with pytest.raises(ValueError, match="expected 4"):
        encode_geotiff(tmp_path / "a.tif", 2, 2, [1.0, 2.0, 3.0], "EPSG:4326", gt)
    with pytest.raises(ValueError, match="geotransform"):
        encode_geotiff(tmp_path / "a.tif", 2, 2, [1.0, 2.0, 3.0, 4.0], "EPSG:4326", None)

    path = encode_geotiff(tmp_path / "b.tif", 2, 2, [1.0, 2.0, 3.0, 4.0], 4326, gt)
    with rasterio.open(path) as dataset:
        assert dataset.read(1).tolist() == [[1.0, 2.0], [3.0, 4.0]]
        assert dataset.res == pytest.approx((0.5, 0.5))
