"""CRS normalization helpers."""

from __future__ import annotations

import rasterio
from pyproj import CRS

GEOGRAPHIC_CRS = "EPSG:4326"


def normalize_crs(value: str | int | CRS) -> CRS:
    """Normalize CRS input into a pyproj CRS object."""
    return CRS.from_user_input(value)


def raster_crs(value: str | int | CRS = GEOGRAPHIC_CRS) -> rasterio.CRS:
    """Return a rasterio CRS for a spatial reference identifier."""
    crs = normalize_crs(value)
    epsg = crs.to_epsg()
    if epsg is not None:
        return rasterio.CRS.from_epsg(epsg)
    return rasterio.CRS.from_wkt(crs.to_wkt())
