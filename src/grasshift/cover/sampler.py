"""Spatially stratified training sample drawn from the raw cover series.

The grid is cut into ``strata_shape`` blocks and an equal number of
candidate pixels is drawn uniformly inside each block. Every candidate also
draws its own year. Candidates off the analysis mask, outside the study
polygon, or with a non-finite band vector are dropped, and the survivors are
truncated to ``sample_size``. A fixed seed gives a reproducible sample.
"""

import logging
import math
from typing import Optional, Tuple, TYPE_CHECKING

import numpy as np
import pandas as pd
import xarray as xr
from shapely.geometry.base import BaseGeometry

from grasshift.contracts import (
    InsufficientSampleError,
    assert_cover_series,
    assert_mask,
)
from grasshift.core.grid import Grid, YEAR_DIM
from grasshift.cover.zones import polygon_mask

if TYPE_CHECKING:
    from grasshift.schemas import InternalConfig

__all__ = ['TrainingSampler', 'stratified_pixels']

logger = logging.getLogger(__name__)


def stratified_pixels(rng: np.random.Generator, shape: Tuple[int, int],
                      strata_shape: Tuple[int, int],
                      n_candidates: int) -> Tuple[np.ndarray, np.ndarray]:
    """Draw ``(row, col)`` candidates evenly across rectangular strata.

    Blocks never outnumber pixels along an axis. Candidates are returned in
    random order so truncation does not favour the first blocks.
    """
    ny, nx = shape
    row_edges = np.linspace(0, ny, min(strata_shape[0], ny) + 1).astype(int)
    col_edges = np.linspace(0, nx, min(strata_shape[1], nx) + 1).astype(int)
    n_blocks = (row_edges.size - 1) * (col_edges.size - 1)
    per_block = math.ceil(n_candidates / n_blocks)

    rows, cols = [], []
    for r0, r1 in zip(row_edges[:-1], row_edges[1:]):
        for c0, c1 in zip(col_edges[:-1], col_edges[1:]):
            rows.append(rng.integers(r0, r1, size=per_block))
            cols.append(rng.integers(c0, c1, size=per_block))

    rows = np.concatenate(rows)
    cols = np.concatenate(cols)
    order = rng.permutation(rows.size)
    return rows[order], cols[order]


class TrainingSampler:
    """Draw the k-means training sample from a raw cover series."""

    def __init__(self, config: "InternalConfig"):
        """Store sampler parameters.

        Parameters
        ----------
        config : InternalConfig
            Fully validated runtime configuration.
        """
        self.sample_size = config.sampler.sample_size
        self.seed = config.sampler.seed
        self.oversample_factor = config.sampler.oversample_factor
        self.strata_shape = tuple(config.sampler.strata_shape)
        self.bands = list(config.global_.var_names.bands)

        logger.info("TrainingSampler initialized: sample_size=%d, seed=%d, strata=%s",
                    self.sample_size, self.seed, self.strata_shape)

    def sample(self, ds: xr.Dataset, analysis_mask: Optional[xr.DataArray] = None,
               study_area: Optional[BaseGeometry] = None) -> pd.DataFrame:
        """Draw ``sample_size`` band vectors.

        Parameters
        ----------
        ds : xr.Dataset
            Raw cover series on ``(year, y, x)``.
        analysis_mask : xr.DataArray, optional
            Boolean ``(y, x)`` raster; only True pixels are sampled.
        study_area : shapely geometry, optional
            Polygon in the grid CRS; only pixels whose centre lies inside
            are sampled.

        Returns
        -------
        pd.DataFrame
            Columns ``y_index``, ``x_index``, ``year`` and one per band.

        Raises
        ------
        DataShapeError
            If the series or mask is malformed.
        InsufficientSampleError
            If fewer than ``sample_size`` candidates survive filtering.
        """
        assert_cover_series(ds, self.bands)
        grid = Grid.from_dataset(ds)

        valid = np.ones(grid.shape, dtype=bool)
        if analysis_mask is not None:
            assert_mask(analysis_mask, grid)
            valid &= analysis_mask.values
        if study_area is not None:
            valid &= polygon_mask(study_area, grid)

        rng = np.random.default_rng(self.seed)
        n_candidates = math.ceil(self.sample_size * self.oversample_factor)
        rows, cols = stratified_pixels(rng, grid.shape, self.strata_shape, n_candidates)
        years = np.asarray(ds[YEAR_DIM].values)
        year_idx = rng.integers(0, years.size, size=rows.size)

        vectors = np.column_stack([
            np.asarray(ds[band].values)[year_idx, rows, cols] for band in self.bands
        ])
        keep = valid[rows, cols] & np.all(np.isfinite(vectors), axis=1)
        n_valid = int(keep.sum())

        logger.debug("Sampler drew %d candidates, %d valid", rows.size, n_valid)
        if n_valid < self.sample_size:
            raise InsufficientSampleError(
                f"Only {n_valid} valid candidates for a sample of {self.sample_size} "
                f"({rows.size} drawn); enlarge the mask or raise oversample_factor"
            )

        idx = np.flatnonzero(keep)[:self.sample_size]
        df = pd.DataFrame({
            "y_index": rows[idx],
            "x_index": cols[idx],
            "year": years[year_idx[idx]],
        })
        for i, band in enumerate(self.bands):
            df[band] = vectors[idx, i]

        logger.info("Training sample drawn: %d vectors over %d years",
                    len(df), df["year"].nunique())
        return df
