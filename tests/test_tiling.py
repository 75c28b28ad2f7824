from __future__ import annotations

import pytest

from terrainmap.errors import TooManyTiles
from terrainmap.terrain.geomath import pixel_to_location, to_tile
from terrainmap.terrain.models import TileCoordinate, ViewWindow
from terrainmap.terrain.tiling import MAX_TILES, plan_view, tile_name, tiles_for


def _window_between(lower_left: TileCoordinate, upper_right: TileCoordinate) -> ViewWindow:
    """Window whose corners sit in the middle of the given tiles."""
    min_lng, min_lat = pixel_to_location(lower_left, 128, 128)
    max_lng, max_lat = pixel_to_location(upper_right, 128, 128)
    return ViewWindow(
        min_lat=min_lat,
        max_lat=max_lat,
        min_lng=min_lng,
        max_lng=max_lng,
        zoom=lower_left.z,
    )


def test_tile_name() -> None:
    tile = TileCoordinate(500, 301, 10)
    assert tile.name == "10_500_301"
    assert tile_name(tile) == "terrain_10_500_301.tif"
    assert tile_name(tile, ".xyz") == "terrain_10_500_301.xyz"


def test_two_by_two_window_yields_buffered_four_by_four() -> None:
    window = _window_between(TileCoordinate(500, 301, 10), TileCoordinate(501, 300, 10))

    tiles = tiles_for(window)

    assert len(tiles) == 16
    assert len(set(tiles)) == 16
    assert {tile.x for tile in tiles} == {499, 500, 501, 502}
    assert {tile.y for tile in tiles} == {299, 300, 301, 302}
    assert all(tile.z == 10 for tile in tiles)


def test_tiles_are_x_major_and_deterministic() -> None:
    window = _window_between(TileCoordinate(500, 301, 10), TileCoordinate(501, 300, 10))
    tiles = tiles_for(window)
    assert tiles == tiles_for(window)
    assert [(tile.x, tile.y) for tile in tiles[:5]] == [
        (499, 299),
        (499, 300),
        (499, 301),
        (499, 302),
        (500, 299),
    ]


def test_tiles_include_all_corners() -> None:
    window = ViewWindow(min_lat=46.9, max_lat=47.6, min_lng=7.9, max_lng=9.1, zoom=9)
    tiles = {(tile.x, tile.y) for tile in tiles_for(window)}
    for lat in (window.min_lat, window.max_lat):
        for lng in (window.min_lng, window.max_lng):
            assert to_tile(lat, lng, window.zoom) in tiles


def test_tiles_clamp_to_world_edges() -> None:
    window = ViewWindow(min_lat=80.0, max_lat=84.0, min_lng=-180.0, max_lng=-170.0, zoom=3)
    tiles = tiles_for(window)
    assert tiles
    assert min(tile.x for tile in tiles) == 0
    assert min(tile.y for tile in tiles) == 0
    assert all(tile.x >= 0 and tile.y >= 0 for tile in tiles)
    assert len(tiles) == len(set(tiles))

    east = ViewWindow(min_lat=-84.0, max_lat=-80.0, min_lng=170.0, max_lng=180.0, zoom=3)
    assert all(tile.x <= 7 and tile.y <= 7 for tile in tiles_for(east))


def test_plan_view_within_budget() -> None:
    window = _window_between(TileCoordinate(500, 301, 10), TileCoordinate(501, 300, 10))
    plan = plan_view(window)
    assert plan.max_tiles == MAX_TILES == 100
    assert plan.count == 16
    assert not plan.exceeds_budget
    assert plan.require_within_budget() is plan
    assert plan.as_dict()["tiles"][0] == [499, 299, 10]


def test_plan_view_detects_overflow_before_fetch() -> None:
    # 9x9 tiles plus buffer -> 11x11 = 121 tiles.
    window = _window_between(TileCoordinate(500, 308, 10), TileCoordinate(508, 300, 10))
    plan = plan_view(window)
    assert plan.count == 121
    assert plan.exceeds_budget
    with pytest.raises(TooManyTiles) as excinfo:
        plan.require_within_budget()
    assert excinfo.value.count == 121
    assert excinfo.value.max_tiles == 100


def test_plan_view_budget_boundary() -> None:
    window = _window_between(TileCoordinate(500, 301, 10), TileCoordinate(501, 300, 10))
    assert not plan_view(window, max_tiles=16).exceeds_budget
    assert plan_view(window, max_tiles=15).exceeds_budget
    with pytest.raises(ValueError):
        plan_view(window, max_tiles=0)


def _clamped_corners(window: ViewWindow) -> set[tuple[int, int]]:
    last = 2**window.zoom - 1
    corners = set()
    for lat in (window.min_lat, window.max_lat):
        for lng in (window.min_lng, window.max_lng):
            x, y = to_tile(lat, lng, window.zoom)
            corners.add((min(last, max(0, x)), min(last, max(0, y))))
    return corners


def test_window_north_of_mercator_limit_uses_top_row() -> None:
    window = ViewWindow(min_lat=88.0, max_lat=89.0, min_lng=10.0, max_lng=20.0, zoom=5)

    tiles = tiles_for(window)

    assert tiles
    assert {tile.y for tile in tiles} == {0}
    assert {tile.x for tile in tiles} == {15, 16, 17, 18}
    assert _clamped_corners(window) <= {(tile.x, tile.y) for tile in tiles}


def test_window_south_of_mercator_limit_uses_bottom_row() -> None:
    window = ViewWindow(min_lat=-89.0, max_lat=-87.0, min_lng=10.0, max_lng=20.0, zoom=5)

    tiles = tiles_for(window)

    assert tiles
    assert {tile.y for tile in tiles} == {31}
    assert _clamped_corners(window) <= {(tile.x, tile.y) for tile in tiles}
    assert not plan_view(window).exceeds_budget


def test_window_past_antimeridian_clamps_to_last_column() -> None:
    window = ViewWindow(min_lat=10.0, max_lat=20.0, min_lng=179.0, max_lng=180.0, zoom=2)
    tiles = tiles_for(window)
    assert tiles
    assert {tile.x for tile in tiles} == {2, 3}
    assert all(0 <= tile.y <= 3 for tile in tiles)
