"""Tile raster mosaic builder using rasterio merge."""

from __future__ import annotations

import logging
from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence, Tuple

import rasterio
from rasterio.merge import merge

Bounds = Tuple[float, float, float, float]

LOGGER = logging.getLogger("terrainmap.mosaic")


@dataclass(frozen=True)
class MosaicResult:
    """Result of merging tile rasters into one GeoTIFF."""

    path: Path
    crs: str
    bounds: Bounds
    resolution: Tuple[float, float]
    sources: int


def mosaic_path(value: Path | str) -> Path:
    """Ensure a mosaic output path carries a .tif suffix."""
    path = Path(value)
    if path.suffix.lower() not in {".tif", ".tiff"}:
        path = path.with_name(path.name + ".tif")
    return path


def build_mosaic(
    raster_paths: Sequence[Path],
    output_path: Path,
    *,
    method: str = "first",
    compression: str | None = None,
) -> MosaicResult:
    """Merge tile rasters into a single mosaic GeoTIFF."""
    if not raster_paths:
        raise ValueError("At least one tile raster is required.")
    output_path = mosaic_path(output_path)
    LOGGER.info("Rendering %s raster(s) to GeoTIFF: %s", len(raster_paths), output_path)

    with ExitStack() as stack:
        sources = [stack.enter_context(rasterio.open(path)) for path in raster_paths]
        crs = sources[0].crs
        if crs is None:
            raise ValueError("Tile rasters must declare a CRS.")
        for src in sources[1:]:
            if src.crs != crs:
                raise ValueError("All tile rasters must share the same CRS.")
        output_path.parent.mkdir(parents=True, exist_ok=True)
        dst_kwds = {"driver": "GTiff"}
        if compression:
            dst_kwds["compress"] = compression
        merge(
            sources,
            method=method,
            dst_path=output_path,
            dst_kwds=dst_kwds,
        )

    with rasterio.open(output_path) as dataset:
        bounds = dataset.bounds
        return MosaicResult(
            path=output_path,
            crs=dataset.crs.to_string(),
            bounds=(bounds.left, bounds.bottom, bounds.right, bounds.top),
            resolution=(abs(dataset.res[0]), abs(dataset.res[1])),
            sources=len(raster_paths),
        )


def mosaic_directory(directory: Path, output_path: Path, **kwargs) -> MosaicResult:
    """Merge every ``*.tif`` tile raster inside a directory."""
    output = mosaic_path(output_path).resolve()
    paths = sorted(path for path in directory.glob("*.tif") if path.resolve() != output)
    return build_mosaic(paths, output_path, **kwargs)
