"""Bounded worker pool that fetches and processes tiles."""

from __future__ import annotations

import logging
import os
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Callable, Sequence

from terrainmap.errors import WorkerSpawnFailed
from terrainmap.terrain.models import FetchResult, TileCoordinate
from terrainmap.terrain.processor import process_tile
from terrainmap.terrain.source import TileSource

Processor = Callable[[TileCoordinate, TileSource], FetchResult]
ProgressCallback = Callable[[int, int, FetchResult], None]

LOGGER = logging.getLogger("terrainmap.pool")


def default_concurrency() -> int:
    """Return the default worker count (two per CPU)."""
    return 2 * (os.cpu_count() or 1)


def _collect(tile: TileCoordinate, future: Future) -> FetchResult:
    """Return a future's result, recording unexpected errors against the tile."""
    try:
        return future.result()
    except Exception as exc:
        LOGGER.warning(
            "Tile %s raised %s: %s",
            tile,
            type(exc).__name__,
            exc,
            extra={"tile": tile.name},
        )
        return FetchResult.failed(tile, exc)


def run_fetch_pool(
    tiles: Sequence[TileCoordinate],
    source: TileSource,
    concurrency: int,
    *,
    processor: Processor = process_tile,
    progress: ProgressCallback | None = None,
) -> list[FetchResult]:
    """Process every tile with a fixed number of workers.

    Blocks until every tile has a result. Results come back in the order of
    ``tiles``; per-tile failures are included rather than raised.
    """
    if concurrency < 1:
        raise ValueError("concurrency must be >= 1")
    total = len(tiles)
    slots: list[FetchResult | None] = [None] * total
    if not total:
        return []

    completed = 0
    LOGGER.info("Fetching %s tile(s) with %s worker(s)", total, concurrency)
    with ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="tile-fetch") as executor:
        future_map: dict[Future, int] = {}
        try:
            for index, tile in enumerate(tiles):
                future_map[executor.submit(processor, tile, source)] = index
        except RuntimeError as exc:
            for future in future_map:
                future.cancel()
            raise WorkerSpawnFailed(f"Could not start fetch workers: {exc}") from exc
        for future in as_completed(future_map):
            index = future_map[future]
            result = _collect(tiles[index], future)
            slots[index] = result
            completed += 1
            if progress is not None:
                progress(completed, total, result)

    results = [slot for slot in slots if slot is not None]
    failed = sum(1 for result in results if not result.success)
    LOGGER.info("Fetched %s tile(s): %s succeeded, %s failed", total, total - failed, failed)
    return results
