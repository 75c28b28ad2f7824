"""Terrain-RGB tile sources and tile decoding."""

from __future__ import annotations

import logging
import time
import warnings
from dataclasses import dataclass
from typing import Callable, Protocol, Tuple
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

import numpy as np
from rasterio.errors import NotGeoreferencedWarning, RasterioError
from rasterio.io import MemoryFile

from terrainmap.errors import ElevationLookupFailed, FetchFailed, NotFound, RateLimited
from terrainmap.terrain.geomath import location_to_pixel, pixel_to_location
from terrainmap.terrain.models import NODATA, TILE_SIZE, TileCoordinate, TileExtent

# https://docs.mapbox.com/data/tilesets/guides/access-elevation-data/
DEFAULT_URL_TEMPLATE = (
    "https://api.mapbox.com/v4/mapbox.terrain-rgb/{z}/{x}/{y}.pngraw?access_token={token}"
)
DEFAULT_USER_AGENT = "terrainmap/0.1"
# Pixel offsets this close below an integer boundary snap to it.
PIXEL_EPSILON = 1e-6

LOGGER = logging.getLogger("terrainmap.source")


class TileSource(Protocol):
    """Anything able to return the raw Terrain-RGB buffer for a tile."""

    def fetch(self, x: int, y: int, z: int) -> bytes:
        """Return the encoded tile or raise NotFound/RateLimited/FetchFailed."""
        ...


def decode_elevation(rgb: np.ndarray) -> np.ndarray:
    """Decode Terrain-RGB bands (R, G, B, ...) into metres."""
    red = rgb[0].astype(np.float64)
    green = rgb[1].astype(np.float64)
    blue = rgb[2].astype(np.float64)
    return -10000.0 + (red * 65536.0 + green * 256.0 + blue) * 0.1


@dataclass(frozen=True, eq=False)
class TerrainTile:
    """Decoded Terrain-RGB tile with pixel/location/elevation lookups."""

    tile: TileCoordinate
    elevation: np.ndarray
    valid: np.ndarray

    @property
    def width(self) -> int:
        return int(self.elevation.shape[1])

    @property
    def height(self) -> int:
        return int(self.elevation.shape[0])

    def pixel_to_location(self, px, py) -> Tuple[object, object]:
        """Return (longitude, latitude) for pixel offsets."""
        if np.any(np.asarray(px) > self.width) or np.any(np.asarray(py) > self.height):
            raise ValueError(f"Pixel offsets fall outside tile {self.tile}.")
        return pixel_to_location(self.tile, px, py, size=self.width)

    def altitudes(self, lngs: np.ndarray, lats: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Look up elevations for locations, returning (values, failed mask).

        A lookup fails when the location does not fall on a pixel of this
        tile or the pixel carries no data (transparent). Failed positions hold
        NODATA.
        """
        px, py = location_to_pixel(self.tile, lngs, lats, size=self.width)
        with np.errstate(invalid="ignore"):
            cols = np.floor(np.asarray(px) + PIXEL_EPSILON)
            rows = np.floor(np.asarray(py) + PIXEL_EPSILON)
        inside = (
            np.isfinite(cols)
            & np.isfinite(rows)
            & (cols >= 0)
            & (cols < self.width)
            & (rows >= 0)
            & (rows < self.height)
        )
        cols_idx = np.where(inside, cols, 0).astype(np.intp)
        rows_idx = np.where(inside, rows, 0).astype(np.intp)
        ok = inside & self.valid[rows_idx, cols_idx]
        values = np.where(ok, self.elevation[rows_idx, cols_idx], NODATA)
        return values.astype(np.float64), ~ok

    def altitude(self, lng: float, lat: float) -> float:
        """Return the elevation at one location."""
        values, failed = self.altitudes(np.array([lng]), np.array([lat]))
        if failed[0]:
            raise ElevationLookupFailed(f"No elevation at ({lng}, {lat}) in tile {self.tile}.")
        return float(values[0])

    def extent(self) -> TileExtent:
        """Extent from the north-west and south-east corner pixels."""
        west, north = self.pixel_to_location(0, 0)
        east, south = self.pixel_to_location(self.width, self.height)
        return TileExtent(min_lng=west, min_lat=south, max_lng=east, max_lat=north)


def decode_terrain_rgb(buffer: bytes, tile: TileCoordinate) -> TerrainTile:
    """Decode an encoded (PNG/WebP) Terrain-RGB buffer."""
    if not buffer:
        raise FetchFailed(f"Empty tile buffer for {tile}.")
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", NotGeoreferencedWarning)
            with MemoryFile(buffer) as memfile, memfile.open() as dataset:
                data = dataset.read()
    except RasterioError as exc:
        raise FetchFailed(f"Could not decode tile {tile}: {exc}") from exc
    bands, height, width = data.shape
    if bands < 3:
        raise FetchFailed(f"Tile {tile} has {bands} band(s); Terrain-RGB needs 3.")
    if (width, height) != (TILE_SIZE, TILE_SIZE):
        raise FetchFailed(f"Tile {tile} is {width}x{height}, expected {TILE_SIZE}x{TILE_SIZE}.")
    valid = data[3] > 0 if bands >= 4 else np.ones((height, width), dtype=bool)
    return TerrainTile(tile=tile, elevation=decode_elevation(data), valid=valid)


class TerrainRGBSource:
    """HTTP tile source for Terrain-RGB tiles.

    Instances are read-only after construction and shared by all fetch
    workers.
    """

    def __init__(
        self,
        url_template: str = DEFAULT_URL_TEMPLATE,
        *,
        access_token: str | None = None,
        timeout: float = 30.0,
        retries: int = 2,
        backoff: float = 1.0,
        user_agent: str = DEFAULT_USER_AGENT,
        opener: Callable[..., object] = urlopen,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if "{token}" in url_template and not access_token:
            raise ValueError("An access token is required for this tile URL template.")
        if retries < 0:
            raise ValueError("retries must be >= 0")
        self.url_template = url_template
        self.access_token = access_token
        self.timeout = timeout
        self.retries = retries
        self.backoff = backoff
        self.user_agent = user_agent
        self._opener = opener
        self._sleep = sleep

    def url_for(self, x: int, y: int, z: int) -> str:
        return self.url_template.format(x=x, y=y, z=z, token=self.access_token or "")

    def _request(self, url: str) -> bytes:
        request = Request(url, headers={"User-Agent": self.user_agent})
        with self._opener(request, timeout=self.timeout) as response:  # noqa: S310
            return response.read()

    def fetch(self, x: int, y: int, z: int) -> bytes:
        """Fetch one tile, retrying rate limits and transient failures."""
        url = self.url_for(x, y, z)
        tile = f"{z}/{x}/{y}"
        last_error: FetchFailed | None = None
        for attempt in range(self.retries + 1):
            if attempt:
                self._sleep(self.backoff * attempt)
            LOGGER.debug("Fetch tile %s (attempt %s)", tile, attempt + 1, extra={"tile": tile})
            try:
                return self._request(url)
            except HTTPError as exc:
                if exc.code == 404:
                    raise NotFound(f"Tile {tile} not found.") from exc
                if exc.code == 429:
                    last_error = RateLimited(f"Rate limited fetching tile {tile}.")
                elif exc.code in (401, 403):
                    raise FetchFailed(f"Authentication failed for tile {tile} (HTTP {exc.code}).") from exc
                else:
                    last_error = FetchFailed(f"HTTP {exc.code} fetching tile {tile}.")
            except URLError as exc:
                if isinstance(exc.reason, FileNotFoundError):
                    raise NotFound(f"Tile {tile} not found.") from exc
                last_error = FetchFailed(f"Could not fetch tile {tile}: {exc.reason}")
            except (TimeoutError, OSError) as exc:
                last_error = FetchFailed(f"Could not fetch tile {tile}: {exc}")
            LOGGER.debug("Tile %s attempt failed: %s", tile, last_error, extra={"tile": tile})
        raise last_error or FetchFailed(f"Could not fetch tile {tile}.")
