"""Zonal areal totals and directional histograms.

Both reducers work per tile and produce tables whose rows merge by plain
summation, so totals over a tiled grid equal those of a single-tile run.
Histogram proportions are only computed once all tiles are merged.
"""

import logging
from typing import Iterable, Mapping, TYPE_CHECKING

import numpy as np
import pandas as pd
import xarray as xr

from grasshift.contracts import (
    assert_histogram_records,
    assert_same_grid,
    assert_zonal_records,
)
from grasshift.contracts.tables import HISTOGRAM_COLUMNS, ZONAL_COLUMNS
from grasshift.contracts.transition import FIRST_YEAR_VAR, DATA_MASK_VAR
from grasshift.core.grid import Grid, YEAR_DIM

if TYPE_CHECKING:
    from grasshift.schemas import InternalConfig

__all__ = ['ArealTotals', 'DirectionalHistogram', 'northness']

logger = logging.getLogger(__name__)

_ZONAL_KEYS = ["zone_id", "year"]
_HISTOGRAM_KEYS = ["zone_id", "period", "period_start", "period_end",
                   "bin_index", "bin_lower", "bin_upper"]


def northness(aspect_deg) -> np.ndarray:
    """cos(aspect): 1 facing north, -1 facing south."""
    return np.cos(np.deg2rad(np.asarray(aspect_deg, dtype=np.float64)))


class ArealTotals:
    """Target-state area per zone and year."""

    def __init__(self, config: "InternalConfig"):
        self.area_units = config.zonal.area_units

    def compute(self, indicators: xr.Dataset, masks: Mapping[str, np.ndarray],
                grid: Grid) -> pd.DataFrame:
        """Sum target and valid pixels (and their area) within each zone.

        Parameters
        ----------
        indicators : xr.Dataset
            ``in_target``/``valid`` booleans on ``(year, y, x)``.
        masks : mapping of str to np.ndarray
            Zone masks on ``grid``.
        grid : Grid
            Grid of ``indicators``; supplies the pixel area.
        """
        area = grid.pixel_area(self.area_units)
        years = np.asarray(indicators[YEAR_DIM].values)
        valid = indicators["valid"].values
        target = indicators["in_target"].values & valid

        rows = []
        for zone_id, zone in masks.items():
            zone_valid = valid & zone
            zone_target = target & zone
            valid_pixels = zone_valid.sum(axis=(1, 2))
            target_pixels = zone_target.sum(axis=(1, 2))
            valid_area = np.where(zone_valid, area, 0.0).sum(axis=(1, 2))
            target_area = np.where(zone_target, area, 0.0).sum(axis=(1, 2))
            for i, year in enumerate(years):
                rows.append((zone_id, int(year), int(target_pixels[i]), int(valid_pixels[i]),
                             float(target_area[i]), float(valid_area[i])))

        return pd.DataFrame(rows, columns=ZONAL_COLUMNS)

    @staticmethod
    def merge(frames: Iterable[pd.DataFrame]) -> pd.DataFrame:
        """Sum per-tile rows into one row per (zone, year)."""
        frames = [df for df in frames if df is not None and len(df)]
        if not frames:
            return pd.DataFrame(columns=ZONAL_COLUMNS)

        merged = (pd.concat(frames, ignore_index=True)
                  .groupby(_ZONAL_KEYS, sort=False, as_index=False)
                  .sum())
        merged = merged.sort_values(_ZONAL_KEYS, kind="stable").reset_index(drop=True)
        merged = merged[ZONAL_COLUMNS]
        assert_zonal_records(merged)
        return merged


class DirectionalHistogram:
    """Northness histograms of newly converted pixels per zone and period."""

    def __init__(self, config: "InternalConfig"):
        self.n_bins = config.histogram.n_bins
        self.value_range = tuple(config.histogram.value_range)
        self.min_slope = config.histogram.min_slope
        self.periods = [tuple(p) for p in config.histogram.periods]
        self.aspect_var = config.global_.var_names.aspect
        self.slope_var = config.global_.var_names.slope
        self.edges = np.linspace(self.value_range[0], self.value_range[1], self.n_bins + 1)

    def counts(self, transition: xr.Dataset, terrain: xr.Dataset,
               masks: Mapping[str, np.ndarray], grid: Grid) -> pd.DataFrame:
        """Bin counts for every zone and period; ``proportion`` is left out.

        Pixels count when they were observed in the target state, their
        first year falls in the period (inclusive), their slope is at least
        ``min_slope`` and their northness is finite.
        """
        assert_same_grid(grid, terrain, "terrain")
        covariate = northness(terrain[self.aspect_var].values)
        slope = np.asarray(terrain[self.slope_var].values, dtype=np.float64)
        first = transition[FIRST_YEAR_VAR].values
        observed = transition[DATA_MASK_VAR].values

        with np.errstate(invalid="ignore"):
            eligible = observed & (slope >= self.min_slope) & np.isfinite(covariate)

        lower, upper = self.edges[:-1], self.edges[1:]
        bin_index = np.arange(self.n_bins)
        frames = []
        for zone_id, zone in masks.items():
            for start, end in self.periods:
                selected = eligible & zone & (first >= start) & (first <= end)
                hist, _ = np.histogram(covariate[selected], bins=self.edges)
                frames.append(pd.DataFrame({
                    "zone_id": zone_id,
                    "period": f"{start}-{end}",
                    "period_start": start,
                    "period_end": end,
                    "bin_index": bin_index,
                    "bin_lower": lower,
                    "bin_upper": upper,
                    "count": hist.astype(np.int64),
                }))

        if not frames:
            return pd.DataFrame(columns=HISTOGRAM_COLUMNS[:-1])
        return pd.concat(frames, ignore_index=True)

    @staticmethod
    def merge(frames: Iterable[pd.DataFrame]) -> pd.DataFrame:
        """Element-wise sum of per-tile bin counts."""
        frames = [df for df in frames if df is not None and len(df)]
        if not frames:
            return pd.DataFrame(columns=HISTOGRAM_COLUMNS[:-1])
        return (pd.concat(frames, ignore_index=True)
                .groupby(_HISTOGRAM_KEYS, sort=False, as_index=False)["count"]
                .sum())

    @staticmethod
    def finalize(counts: pd.DataFrame) -> pd.DataFrame:
        """Turn merged counts into proportions per (zone, period).

        A cell with no selected pixels gets ``<NA>`` proportions.
        """
        df = counts.copy()
        proportion = pd.Series(pd.NA, index=df.index, dtype="Float64")
        if len(df):
            totals = df.groupby(["zone_id", "period"], sort=False)["count"].transform("sum")
            nonzero = totals > 0
            proportion[nonzero] = df.loc[nonzero, "count"] / totals[nonzero]
        df["proportion"] = proportion
        df = df[HISTOGRAM_COLUMNS].reset_index(drop=True)
        assert_histogram_records(df)

        empty = df.groupby(["zone_id", "period"], sort=False)["count"].sum()
        for (zone_id, period) in empty[empty == 0].index:
            logger.info("No eligible pixels for zone %s, period %s", zone_id, period)
        return df

    def compute(self, transition: xr.Dataset, terrain: xr.Dataset,
                masks: Mapping[str, np.ndarray], grid: Grid) -> pd.DataFrame:
        """Single-tile shortcut: counts then proportions."""
        return self.finalize(self.counts(transition, terrain, masks, grid))
