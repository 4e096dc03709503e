"""Tile windows over the grid and the helpers that paste tile outputs back.

Tiles cover the grid exactly once, in row-major order. Every per-tile
output is either a raster window (pasted back by slicing) or a table whose
rows are summed on merge.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np
import xarray as xr

from grasshift.core.grid import Grid, Y_DIM, X_DIM

__all__ = ['Tile', 'split_grid', 'tile_view', 'paste']


@dataclass(frozen=True)
class Tile:
    """A rectangular window of the grid."""
    tile_id: str
    rows: slice
    cols: slice

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.rows.stop - self.rows.start, self.cols.stop - self.cols.start)


def split_grid(shape: Tuple[int, int], tile_shape: Tuple[int, int]) -> List[Tile]:
    """Cut a ``(ny, nx)`` grid into windows of at most ``tile_shape``.

    Examples
    --------
    >>> [t.tile_id for t in split_grid((3, 5), (2, 4))]
    ['r0000_c0000', 'r0000_c0004', 'r0002_c0000', 'r0002_c0004']
    """
    ny, nx = shape
    th, tw = tile_shape
    if th < 1 or tw < 1:
        raise ValueError(f"tile_shape entries must be >= 1, got {tile_shape}")

    tiles = []
    for r0 in range(0, ny, th):
        for c0 in range(0, nx, tw):
            tiles.append(Tile(tile_id=f"r{r0:04d}_c{c0:04d}",
                              rows=slice(r0, min(r0 + th, ny)),
                              cols=slice(c0, min(c0 + tw, nx))))
    return tiles


def tile_view(obj: Optional[xr.Dataset], tile: Tile, tile_grid: Grid):
    """Window of a dataset or data array, tagged with the tile grid attrs."""
    if obj is None:
        return None
    sub = obj.isel({Y_DIM: tile.rows, X_DIM: tile.cols})
    return sub.assign_attrs(**tile_grid.attrs())


def paste(full: np.ndarray, part: np.ndarray, tile: Tile) -> None:
    """Write a tile's ``(..., ny, nx)`` output into the full-grid array."""
    full[..., tile.rows, tile.cols] = part
