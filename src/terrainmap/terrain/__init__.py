"""Terrain tile processing helpers and exports."""

from terrainmap.terrain.geomath import location_to_pixel, pixel_to_location, tile_bounds, to_tile
from terrainmap.terrain.models import (
    DEFAULT_ZOOM,
    NODATA,
    TILE_SIZE,
    ZOOM_MAX,
    ZOOM_MIN,
    ElevationGrid,
    FetchResult,
    TileCoordinate,
    TileExtent,
    TileRaster,
    ViewWindow,
)
from terrainmap.terrain.mosaic import MosaicResult, build_mosaic, mosaic_directory
from terrainmap.terrain.pool import default_concurrency, run_fetch_pool
from terrainmap.terrain.processor import extract_grid, process_tile
from terrainmap.terrain.raster import (
    encode_geotiff,
    tile_band,
    tile_geotransform,
    write_tile_raster,
)
from terrainmap.terrain.source import (
    TerrainRGBSource,
    TerrainTile,
    TileSource,
    decode_terrain_rgb,
)
from terrainmap.terrain.tiling import MAX_TILES, TilePlan, plan_view, tile_name, tiles_for
from terrainmap.terrain.xyz import write_xyz

__all__ = [
    "DEFAULT_ZOOM",
    "ElevationGrid",
    "FetchResult",
    "MAX_TILES",
    "MosaicResult",
    "NODATA",
    "TILE_SIZE",
    "TerrainRGBSource",
    "TerrainTile",
    "TileCoordinate",
    "TileExtent",
    "TilePlan",
    "TileRaster",
    "TileSource",
    "ViewWindow",
    "ZOOM_MAX",
    "ZOOM_MIN",
    "build_mosaic",
    "decode_terrain_rgb",
    "default_concurrency",
    "encode_geotiff",
    "extract_grid",
    "location_to_pixel",
    "mosaic_directory",
    "pixel_to_location",
    "plan_view",
    "process_tile",
    "run_fetch_pool",
    "tile_band",
    "tile_bounds",
    "tile_geotransform",
    "tile_name",
    "tiles_for",
    "to_tile",
    "write_tile_raster",
    "write_xyz",
]
