"""Run report construction helpers."""

from __future__ import annotations

import json
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping

from terrainmap.contracts import SCHEMA_VERSION
from terrainmap.terrain.models import FetchResult, TileRaster
from terrainmap.terrain.tiling import TilePlan


def _utc_now() -> str:
    """Return the current UTC timestamp as ISO8601."""
    return datetime.now(timezone.utc).isoformat()


def _tile_entry(
    result: FetchResult,
    raster: TileRaster | None,
    encode_error: str | None,
) -> dict[str, Any]:
    tile = result.tile
    entry: dict[str, Any] = {
        "tile": tile.name,
        "x": tile.x,
        "y": tile.y,
        "z": tile.z,
        "status": "ok",
        "error_kind": result.error_kind,
        "error": result.error,
        "raster": str(raster.path) if raster else None,
    }
    if result.grid is not None:
        entry["failed_pixels"] = result.grid.failed_pixels
    if result.extent is not None:
        entry["extent"] = list(result.extent.as_tuple())
    if encode_error:
        entry["error_kind"] = "EncodeFailed"
        entry["error"] = encode_error
    if entry["error"]:
        entry["status"] = "error"
    return entry


def build_run_report(
    *,
    plan: TilePlan,
    results: Iterable[FetchResult],
    rasters: Mapping[str, TileRaster],
    encode_errors: Mapping[str, str],
    work_dir: Path | None = None,
    mosaic: Path | None = None,
    mosaic_error: str | None = None,
) -> dict[str, Any]:
    """Create a run report dictionary."""
    entries = [
        _tile_entry(result, rasters.get(result.tile.name), encode_errors.get(result.tile.name))
        for result in results
    ]
    kinds = Counter(entry["error_kind"] for entry in entries if entry["status"] == "error")
    fetch_failed = sum(1 for entry in entries if entry["error_kind"] and entry["error_kind"] != "EncodeFailed")
    report: dict[str, Any] = {
        "schema_version": SCHEMA_VERSION,
        "created_at": _utc_now(),
        "view": plan.window.as_dict(),
        "summary": {
            "planned": plan.count,
            "fetched": len(entries) - fetch_failed,
            "fetch_failed": fetch_failed,
            "written": len(rasters),
            "encode_failed": len(encode_errors),
            "failures_by_kind": dict(sorted(kinds.items())),
        },
        "tiles": entries,
        "rasters": [str(raster.path) for raster in rasters.values()],
        "mosaic": str(mosaic) if mosaic else None,
        "mosaic_error": mosaic_error,
    }
    if work_dir is not None:
        report["work_dir"] = str(work_dir)
    return report


def write_json(path: Path, payload: Mapping[str, Any]) -> Path:
    """Write a JSON payload to disk."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return path
