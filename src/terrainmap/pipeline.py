"""End-to-end run: plan, fetch, write rasters, merge."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from rasterio.errors import RasterioError

from terrainmap.contracts import validate_run_report
from terrainmap.errors import EncodeFailed, InvalidCoordinate
from terrainmap.reporting import build_run_report, write_json
from terrainmap.terrain.models import FetchResult, TileRaster, ViewWindow
from terrainmap.terrain.mosaic import MosaicResult, build_mosaic
from terrainmap.terrain.pool import ProgressCallback, run_fetch_pool
from terrainmap.terrain.raster import write_tile_raster
from terrainmap.terrain.source import TileSource
from terrainmap.terrain.tiling import MAX_TILES, TilePlan, plan_view
from terrainmap.terrain.xyz import write_xyz

REPORT_NAME = "run_report.json"

LOGGER = logging.getLogger("terrainmap.pipeline")


@dataclass(frozen=True)
class RunResult:
    """Outputs from a terrain run."""

    plan: TilePlan
    results: tuple[FetchResult, ...]
    rasters: Mapping[str, TileRaster]
    encode_errors: Mapping[str, str]
    report: Mapping[str, Any]
    report_path: Path
    mosaic: MosaicResult | None = None
    mosaic_error: str | None = None
    xyz_paths: tuple[Path, ...] = field(default_factory=tuple)

    @property
    def failed(self) -> int:
        return sum(1 for result in self.results if not result.success) + len(self.encode_errors)

    @property
    def succeeded(self) -> int:
        return len(self.rasters)


def write_rasters(
    results: tuple[FetchResult, ...],
    work_dir: Path,
) -> tuple[dict[str, TileRaster], dict[str, str]]:
    """Write one raster per successful result; EncodeFailed stays per tile."""
    rasters: dict[str, TileRaster] = {}
    errors: dict[str, str] = {}
    for result in results:
        if not result.success:
            continue
        name = result.tile.name
        try:
            rasters[name] = write_tile_raster(result, work_dir)
        except EncodeFailed as exc:
            LOGGER.warning("Raster write failed: %s", exc, extra={"tile": name})
            errors[name] = str(exc)
    return rasters, errors


def run_view(
    window: ViewWindow,
    source: TileSource,
    work_dir: Path,
    *,
    concurrency: int,
    max_tiles: int = MAX_TILES,
    write_xyz_files: bool = False,
    mosaic_path: Path | None = None,
    progress: ProgressCallback | None = None,
) -> RunResult:
    """Fetch a view into per-tile rasters inside an existing ``work_dir``.

    Raises TooManyTiles before any fetch when the view is over budget, and
    InvalidCoordinate when the view covers no tiles at all. A failed mosaic
    is recorded in the report instead of raised.
    """
    if not work_dir.is_dir():
        raise NotADirectoryError(f"Working directory does not exist: {work_dir}")
    plan = plan_view(window, max_tiles).require_within_budget()
    if not plan.tiles:
        raise InvalidCoordinate(f"View {window.as_dict()} covers no tiles.")
    LOGGER.info("Fetching %s tile(s) into %s", plan.count, work_dir)

    results = tuple(run_fetch_pool(plan.tiles, source, concurrency, progress=progress))

    LOGGER.info("Converting tiles to GeoTIFFs")
    rasters, encode_errors = write_rasters(results, work_dir)

    xyz_paths: list[Path] = []
    if write_xyz_files:
        for result in results:
            if result.success:
                xyz_paths.append(write_xyz(result, work_dir))

    mosaic = None
    mosaic_error = None
    if mosaic_path is not None:
        if rasters:
            try:
                mosaic = build_mosaic([raster.path for raster in rasters.values()], mosaic_path)
            except (RasterioError, OSError, ValueError) as exc:
                LOGGER.error("Mosaic failed: %s", exc)
                mosaic_error = str(exc)
        else:
            LOGGER.error("No tile rasters were written; skipping mosaic.")
            mosaic_error = "No tile rasters were written."

    report = build_run_report(
        plan=plan,
        results=results,
        rasters=rasters,
        encode_errors=encode_errors,
        work_dir=work_dir,
        mosaic=mosaic.path if mosaic else None,
        mosaic_error=mosaic_error,
    )
    validate_run_report(report)
    report_path = write_json(work_dir / REPORT_NAME, report)

    summary = report["summary"]
    LOGGER.info(
        "Wrote %s raster(s); %s tile(s) failed to fetch, %s failed to encode",
        summary["written"],
        summary["fetch_failed"],
        summary["encode_failed"],
    )
    for kind, count in summary["failures_by_kind"].items():
        LOGGER.warning("%s: %s tile(s)", kind, count)
    return RunResult(
        plan=plan,
        results=results,
        rasters=rasters,
        encode_errors=encode_errors,
        report=report,
        report_path=report_path,
        mosaic=mosaic,
        mosaic_error=mosaic_error,
        xyz_paths=tuple(xyz_paths),
    )
