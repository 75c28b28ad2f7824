"""Slippy-map tile math (Web Mercator tile numbering)."""

from __future__ import annotations

import math
from typing import Tuple, TypeVar

import numpy as np

from terrainmap.errors import InvalidCoordinate
from terrainmap.terrain.models import TILE_SIZE, TileCoordinate, TileExtent

Number = TypeVar("Number", float, np.ndarray)


def _check_latlng(lat: float, lng: float, zoom: int) -> None:
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise InvalidCoordinate(f"Coordinates must be finite: ({lat}, {lng})")
    if abs(lat) >= 90.0:
        raise InvalidCoordinate(f"Latitude {lat} cannot be projected to a tile.")
    if zoom < 0:
        raise InvalidCoordinate(f"Zoom must be non-negative: {zoom}")


def to_tile(lat: float, lng: float, zoom: int) -> Tuple[int, int]:
    """Convert latitude/longitude to the tile number containing it."""
    _check_latlng(lat, lng, zoom)
    lat_rad = math.radians(lat)
    n = 2.0**zoom
    x = math.floor((lng + 180.0) / 360.0 * n)
    y = math.floor((1.0 - math.log(math.tan(lat_rad) + 1.0 / math.cos(lat_rad)) / math.pi) / 2.0 * n)
    return int(x), int(y)


def tile_origin(x: float, y: float, zoom: int) -> Tuple[float, float]:
    """Return the (longitude, latitude) of a tile's north-west corner."""
    n = 2.0**zoom
    lng = x / n * 360.0 - 180.0
    lat = math.degrees(math.atan(math.sinh(math.pi * (1.0 - 2.0 * y / n))))
    return lng, lat


def tile_bounds(tile: TileCoordinate) -> TileExtent:
    """Nominal extent of a tile from its tile numbers alone."""
    west, north = tile_origin(tile.x, tile.y, tile.z)
    east, south = tile_origin(tile.x + 1, tile.y + 1, tile.z)
    return TileExtent(min_lng=west, min_lat=south, max_lng=east, max_lat=north)


def pixel_to_location(
    tile: TileCoordinate,
    px: Number,
    py: Number,
    *,
    size: int = TILE_SIZE,
) -> Tuple[Number, Number]:
    """Map pixel offsets inside a tile to (longitude, latitude)."""
    n = 2.0**tile.z
    gx = tile.x + np.asarray(px, dtype=np.float64) / size
    gy = tile.y + np.asarray(py, dtype=np.float64) / size
    lng = gx / n * 360.0 - 180.0
    lat = np.degrees(np.arctan(np.sinh(np.pi * (1.0 - 2.0 * gy / n))))
    if np.ndim(lng) == 0:
        return float(lng), float(lat)
    return lng, lat


def location_to_pixel(
    tile: TileCoordinate,
    lng: Number,
    lat: Number,
    *,
    size: int = TILE_SIZE,
) -> Tuple[Number, Number]:
    """Map (longitude, latitude) to fractional pixel offsets inside a tile."""
    n = 2.0**tile.z
    lat_rad = np.radians(np.asarray(lat, dtype=np.float64))
    gx = (np.asarray(lng, dtype=np.float64) + 180.0) / 360.0 * n
    gy = (1.0 - np.arcsinh(np.tan(lat_rad)) / np.pi) / 2.0 * n
    px = (gx - tile.x) * size
    py = (gy - tile.y) * size
    if np.ndim(px) == 0:
        return float(px), float(py)
    return px, py
