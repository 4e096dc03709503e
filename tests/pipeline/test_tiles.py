import pytest
import numpy as np

from grasshift.pipeline.tiles import Tile, paste, split_grid, tile_view

pytestmark = pytest.mark.unit


def test_split_grid_ids_and_order():
    tiles = split_grid((3, 5), (2, 4))

    assert [t.tile_id for t in tiles] == ['r0000_c0000', 'r0000_c0004', 'r0002_c0000', 'r0002_c0004']
    assert [t.shape for t in tiles] == [(2, 4), (2, 1), (1, 4), (1, 1)]


def test_split_grid_covers_every_pixel_once():
    coverage = np.zeros((7, 11), dtype=int)
    for tile in split_grid((7, 11), (3, 4)):
        coverage[tile.rows, tile.cols] += 1

    assert (coverage == 1).all()


def test_tile_larger_than_grid():
    tiles = split_grid((3, 5), (512, 512))

    assert len(tiles) == 1
    assert tiles[0].shape == (3, 5)


def test_invalid_tile_shape():
    with pytest.raises(ValueError):
        split_grid((3, 5), (0, 4))


def test_paste_round_trip():
    full = np.zeros((2, 4, 6))
    source = np.arange(48, dtype=float).reshape(2, 4, 6)
    for tile in split_grid((4, 6), (3, 4)):
        paste(full, source[:, tile.rows, tile.cols], tile)

    np.testing.assert_array_equal(full, source)


def test_tile_view_tags_grid_attrs(cover_series, grid):
    tile = Tile("r0005_c0007", slice(5, 6), slice(7, 8))
    sub = tile_view(cover_series, tile, grid.window(tile.rows, tile.cols))

    assert sub.sizes["y"] == 1 and sub.sizes["x"] == 1
    assert sub.attrs["res"] == [-30.0, 30.0]
    assert sub.attrs["crs"] == cover_series.attrs["crs"]


def test_tile_view_of_none(grid):
    tile = Tile("r0000_c0000", slice(0, 1), slice(0, 1))
    assert tile_view(None, tile, grid) is None
