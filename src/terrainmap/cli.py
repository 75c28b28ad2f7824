"""Command-line interface for terrainmap."""

from __future__ import annotations

import argparse
import json
import logging
import tempfile
from pathlib import Path

import jsonschema

from terrainmap import __version__
from terrainmap.config import RunConfig, load_run_config
from terrainmap.errors import InvalidCoordinate, TooManyTiles, WorkerSpawnFailed
from terrainmap.logging_utils import LogOptions, configure_logging
from terrainmap.pipeline import run_view
from terrainmap.terrain.models import DEFAULT_ZOOM, FetchResult, ViewWindow
from terrainmap.terrain.mosaic import mosaic_directory
from terrainmap.terrain.source import TerrainRGBSource
from terrainmap.terrain.tiling import plan_view

LOGGER = logging.getLogger("terrainmap.cli")

EXIT_OK = 0
EXIT_TILE_FAILURES = 1
EXIT_FATAL = 2


def _add_view_arguments(parser: argparse.ArgumentParser) -> None:
    """Register bounding box and zoom arguments."""
    parser.add_argument("--min-lat", type=float, required=True, help="Southern latitude.")
    parser.add_argument("--max-lat", type=float, required=True, help="Northern latitude.")
    parser.add_argument("--min-lng", type=float, required=True, help="Western longitude.")
    parser.add_argument("--max-lng", type=float, required=True, help="Eastern longitude.")
    parser.add_argument(
        "--zoom",
        type=int,
        default=DEFAULT_ZOOM,
        help=f"Map zoom level (default {DEFAULT_ZOOM}).",
    )
    parser.add_argument(
        "--max-tiles",
        type=int,
        help="Refuse views needing more tiles than this.",
    )


def _add_plan_parser(subparsers: argparse._SubParsersAction) -> None:
    plan = subparsers.add_parser("plan", help="List the tiles a view needs.")
    _add_view_arguments(plan)
    plan.add_argument("--output", help="Write the plan JSON here instead of stdout.")


def _add_fetch_parser(subparsers: argparse._SubParsersAction) -> None:
    fetch = subparsers.add_parser("fetch", help="Fetch a view into per-tile GeoTIFFs.")
    _add_view_arguments(fetch)
    fetch.add_argument(
        "--work-dir",
        help="Directory for tile rasters (a temporary directory when omitted).",
    )
    fetch.add_argument("--token", help="Tile service access token.")
    fetch.add_argument("--url-template", help="Tile URL template with {z}, {x}, {y}, {token}.")
    fetch.add_argument("--concurrency", type=int, help="Number of fetch workers.")
    fetch.add_argument("--timeout", type=float, help="Per-request timeout in seconds.")
    fetch.add_argument("--retries", type=int, help="Retries for rate limits and transient errors.")
    fetch.add_argument("--xyz", action="store_true", help="Also write x,y,z text files.")
    fetch.add_argument("--mosaic", help="Merge the tile rasters into this GeoTIFF.")


def _add_mosaic_parser(subparsers: argparse._SubParsersAction) -> None:
    mosaic = subparsers.add_parser("mosaic", help="Merge tile GeoTIFFs from a directory.")
    mosaic.add_argument("directory", help="Directory holding terrain_*.tif rasters.")
    mosaic.add_argument("output", help="Output GeoTIFF path.")
    mosaic.add_argument("--compress", help="Optional GeoTIFF compression (e.g. deflate).")


def _add_version_parser(subparsers: argparse._SubParsersAction) -> None:
    subparsers.add_parser("version", help="Print the terrainmap version.")


def _window_from_args(args: argparse.Namespace) -> ViewWindow:
    return ViewWindow(
        min_lat=args.min_lat,
        max_lat=args.max_lat,
        min_lng=args.min_lng,
        max_lng=args.max_lng,
        zoom=args.zoom,
    )


def _config_from_args(args: argparse.Namespace, parser: argparse.ArgumentParser) -> RunConfig:
    config_path = Path(args.config) if getattr(args, "config", None) else None
    try:
        config = load_run_config(config_path)
        return config.with_overrides(
            access_token=getattr(args, "token", None),
            url_template=getattr(args, "url_template", None),
            concurrency=getattr(args, "concurrency", None),
            timeout=getattr(args, "timeout", None),
            retries=getattr(args, "retries", None),
            max_tiles=getattr(args, "max_tiles", None),
        )
    except jsonschema.ValidationError as exc:
        parser.error(f"Invalid run config: {exc.message}")


def _log_progress(completed: int, total: int, result: FetchResult) -> None:
    status = "ok" if result.success else result.error_kind
    LOGGER.debug("Fetched %s/%s (%s)", completed, total, status, extra={"tile": result.tile.name})


def _run_plan(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    config = _config_from_args(args, parser)
    plan = plan_view(_window_from_args(args), config.max_tiles)
    payload = json.dumps(plan.as_dict(), indent=2)
    if args.output:
        Path(args.output).write_text(payload, encoding="utf-8")
    else:
        print(payload)
    if plan.exceeds_budget:
        LOGGER.error(
            "View needs %s tiles (max %s). Please raise map zoom or change bounds.",
            plan.count,
            plan.max_tiles,
        )
        return EXIT_TILE_FAILURES
    LOGGER.info("View needs %s tile(s).", plan.count)
    return EXIT_OK


def _run_fetch(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    config = _config_from_args(args, parser)
    window = _window_from_args(args)
    try:
        source = TerrainRGBSource(
            config.url_template,
            access_token=config.access_token,
            timeout=config.timeout,
            retries=config.retries,
            backoff=config.backoff,
            user_agent=config.user_agent,
        )
    except ValueError as exc:
        parser.error(str(exc))
    if args.work_dir:
        work_dir = Path(args.work_dir)
        work_dir.mkdir(parents=True, exist_ok=True)
    else:
        work_dir = Path(tempfile.mkdtemp(prefix="terrain-rgb"))
    LOGGER.info("Working directory: %s", work_dir)

    result = run_view(
        window,
        source,
        work_dir,
        concurrency=config.workers,
        max_tiles=config.max_tiles,
        write_xyz_files=args.xyz,
        mosaic_path=Path(args.mosaic) if args.mosaic else None,
        progress=_log_progress,
    )
    LOGGER.info("Run report written to %s", result.report_path)
    if result.failed or not result.succeeded:
        LOGGER.error("%s of %s tile(s) failed.", result.failed, result.plan.count)
        return EXIT_TILE_FAILURES
    if result.mosaic_error:
        return EXIT_TILE_FAILURES
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """Run the CLI entrypoint and return an exit code."""
    parser = argparse.ArgumentParser(
        prog="terrainmap",
        description="Terrain-RGB tiles to georeferenced elevation rasters",
    )
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (repeatable).",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Reduce log output to warnings and errors.",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Emit logs as JSON on stderr.",
    )
    parser.add_argument(
        "--log-file",
        help="Optional path for JSON log output.",
    )
    parser.add_argument(
        "--config",
        help="Path to a JSON run config.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_plan_parser(subparsers)
    _add_fetch_parser(subparsers)
    _add_mosaic_parser(subparsers)
    _add_version_parser(subparsers)

    args = parser.parse_args(argv)
    log_file_value = getattr(args, "log_file", None)
    configure_logging(
        LogOptions(
            verbose=getattr(args, "verbose", 0) or 0,
            quiet=bool(getattr(args, "quiet", False)),
            log_file=Path(log_file_value) if log_file_value else None,
            json_console=bool(getattr(args, "log_json", False)),
        )
    )

    if args.command == "version":
        print(__version__)
        return EXIT_OK
    try:
        if args.command == "plan":
            return _run_plan(args, parser)
        if args.command == "fetch":
            return _run_fetch(args, parser)
    except (InvalidCoordinate, TooManyTiles, WorkerSpawnFailed) as exc:
        LOGGER.error("%s", exc)
        return EXIT_FATAL
    if args.command == "mosaic":
        try:
            result = mosaic_directory(
                Path(args.directory),
                Path(args.output),
                compression=args.compress,
            )
        except ValueError as exc:
            LOGGER.error("Mosaic failed: %s", exc)
            return EXIT_TILE_FAILURES
        LOGGER.info("Merged %s raster(s) into %s", result.sources, result.path)
        return EXIT_OK

    parser.error("Unknown command")
    return EXIT_FATAL


if __name__ == "__main__":
    raise SystemExit(main())
