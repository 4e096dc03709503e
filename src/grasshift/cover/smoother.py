"""Holt double-exponential smoothing of cover time series.

Each band of every pixel carries a ``(level, trend)`` pair that is folded
over the years in order. Pixels are independent, so the fold runs on whole
``(y, x)`` arrays at once; years are strictly sequential.
"""

import logging
from typing import NamedTuple, Tuple, TYPE_CHECKING

import numpy as np
import xarray as xr

from grasshift.contracts import assert_cover_series
from grasshift.core.grid import YEAR_DIM

if TYPE_CHECKING:
    from grasshift.schemas import InternalConfig

__all__ = ['HoltState', 'holt_init', 'holt_step', 'smooth_sequence', 'HoltSmoother']

logger = logging.getLogger(__name__)


class HoltState(NamedTuple):
    """Smoothing state carried from one year to the next."""
    level: np.ndarray
    trend: np.ndarray


def holt_init(observation) -> Tuple[HoltState, np.ndarray]:
    """State and output for the first year: level = raw, trend = 0."""
    level = np.asarray(observation, dtype=np.float32)
    return HoltState(level, np.zeros_like(level)), level


def holt_step(state: HoltState, observation, alpha: float,
              beta: float) -> Tuple[HoltState, np.ndarray]:
    """Advance the smoother by one year.

    Pure function of ``(state, observation)``. Works on scalars or on arrays
    of any shape. Negative levels are clamped to zero.

    A NaN (nodata) observation yields NaN for that year only; the state is
    carried forward unchanged so later years resume from the last valid
    level and trend. A pixel with no valid year yet starts on its first
    valid observation as ``holt_init`` would.
    """
    observation = np.asarray(observation, dtype=np.float32)
    observed = np.isfinite(observation)
    started = np.isfinite(state.level)

    blended = alpha * observation + (1.0 - alpha) * (state.level + state.trend)
    level = np.where(started, blended, observation)
    level = np.maximum(level, 0.0)
    trend = np.where(started, beta * (level - state.level) + (1.0 - beta) * state.trend, 0.0)

    level = np.where(observed, level, state.level).astype(np.float32)
    trend = np.where(observed, trend, state.trend).astype(np.float32)
    output = np.where(observed, level, np.nan).astype(np.float32)
    return HoltState(level, trend), output


def smooth_sequence(values: np.ndarray, alpha: float, beta: float) -> np.ndarray:
    """Smooth along the first axis of ``values`` (years first)."""
    values = np.asarray(values, dtype=np.float32)
    out = np.empty_like(values)

    state, out[0] = holt_init(values[0])
    for t in range(1, values.shape[0]):
        state, out[t] = holt_step(state, values[t], alpha, beta)
    return out


class HoltSmoother:
    """Config-driven Holt smoother for cover time series."""

    def __init__(self, config: "InternalConfig"):
        """Store smoothing parameters.

        Parameters
        ----------
        config : InternalConfig
            Fully validated runtime configuration.
        """
        self.alpha = config.smoothing.alpha
        self.beta = config.smoothing.beta
        self.bands = list(config.global_.var_names.bands)

        logger.info("HoltSmoother initialized: alpha=%s, beta=%s", self.alpha, self.beta)

    def smooth(self, ds: xr.Dataset) -> xr.Dataset:
        """Return a new series holding the smoothed level of every band.

        Raises
        ------
        DataShapeError
            If years are not strictly increasing or a band is missing,
            before any output is produced.
        """
        assert_cover_series(ds, self.bands, check_values=False)

        smoothed = {}
        for band in self.bands:
            var = ds[band]
            values = smooth_sequence(var.values, self.alpha, self.beta)
            attrs = dict(var.attrs)
            attrs.update({"method": "holt", "alpha": self.alpha, "beta": self.beta})
            smoothed[band] = (var.dims, values, attrs)

        dims = ds[self.bands[0]].dims
        out = xr.Dataset(smoothed, coords={name: ds.coords[name] for name in dims},
                         attrs=dict(ds.attrs))
        logger.debug("Smoothed %d bands over %d years",
                     len(self.bands), out.sizes[YEAR_DIM])
        return out
