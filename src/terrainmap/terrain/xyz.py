"""XYZ text export of elevation grids."""

from __future__ import annotations

import csv
from pathlib import Path

from terrainmap.terrain.models import FetchResult
from terrainmap.terrain.tiling import tile_name


def write_xyz(result: FetchResult, work_dir: Path) -> Path:
    """Write ``x,y,z`` rows (longitude, latitude, elevation) in pixel order."""
    if result.grid is None:
        raise ValueError(f"Tile {result.tile} has no elevation data to write.")
    path = work_dir / tile_name(result.tile, ".xyz")
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.writer(handle)
        writer.writerow(["x", "y", "z"])
        for lng, lat, elevation in result.grid.samples():
            writer.writerow([repr(lng), repr(lat), repr(elevation)])
    return path
