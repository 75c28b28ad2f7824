"""Fetch Terrain-RGB map tiles into georeferenced elevation rasters."""

__version__ = "0.1.0"
