"""First year each pixel is labelled as the annual-grass state.

The reduction over years is a masked minimum: a pixel that never reaches the
target state stays masked. The "never" sentinel and the nodata fill only
appear when the result is written out with ``TransitionResult.to_dataset``.
"""

import logging
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

import numpy as np
import xarray as xr

from grasshift.contracts import assert_labeled, assert_transition_raster, require
from grasshift.contracts.labels import LABEL_VAR
from grasshift.contracts.transition import FIRST_YEAR_VAR, DATA_MASK_VAR
from grasshift.core.grid import Grid, YEAR_DIM, Y_DIM, X_DIM

if TYPE_CHECKING:
    from grasshift.schemas import InternalConfig

__all__ = ['first_target_year', 'TransitionResult', 'TransitionDetector',
           'FIRST_YEAR_VAR', 'DATA_MASK_VAR']

logger = logging.getLogger(__name__)


def first_target_year(years, flags) -> Optional[int]:
    """Earliest year whose flag is set, or None if none is."""
    years = np.asarray(years)
    flags = np.asarray(flags, dtype=bool)
    if not flags.any():
        return None
    return int(years[flags].min())


@dataclass(frozen=True)
class TransitionResult:
    """Per-pixel first target year.

    Attributes
    ----------
    first_year : np.ma.MaskedArray
        ``(ny, nx)`` years; masked where the target state was never seen.
    valid : np.ndarray
        ``(ny, nx)`` bool; pixel has at least one labelled (non-nodata) year.
    grid : Grid
        Grid the result lives on.
    last_year : int
        Final year of the series.
    """

    first_year: np.ma.MaskedArray
    valid: np.ndarray
    grid: Grid
    last_year: int

    @property
    def observed(self) -> np.ndarray:
        return ~np.ma.getmaskarray(self.first_year)

    def to_dataset(self, never_value: int = 9999, nodata_value: int = -1) -> xr.Dataset:
        """Materialise the transition raster.

        Pixels never seen in the target state get ``never_value``; pixels
        with no valid year at all get ``nodata_value``. ``data_mask`` is True
        only where a real year is stored.
        """
        require(never_value > self.last_year,
                f"never_value {never_value} must exceed the last year {self.last_year}",
                ValueError)
        require(nodata_value != never_value, "nodata_value must differ from never_value",
                ValueError)

        observed = self.observed
        unobserved = np.where(self.valid, never_value, nodata_value)
        first = np.where(observed, self.first_year.filled(0), unobserved).astype(np.int32)

        ds = xr.Dataset(
            {
                FIRST_YEAR_VAR: ((Y_DIM, X_DIM), first,
                                 {"never_value": never_value, "nodata_value": nodata_value}),
                DATA_MASK_VAR: ((Y_DIM, X_DIM), observed),
            },
            coords=self.grid.coords(),
            attrs=self.grid.attrs(),
        )
        assert_transition_raster(ds, never_value, nodata_value)
        return ds


class TransitionDetector:
    """Reduce a label series to the first annual-grass year per pixel."""

    def __init__(self, config: "InternalConfig"):
        self.never_value = config.transition.never_value
        self.nodata_value = config.transition.nodata_value
        self.n_clusters = config.classifier.n_clusters

    def _target(self, labels: xr.Dataset, target_label: Optional[int]) -> int:
        if target_label is None:
            target_label = labels[LABEL_VAR].attrs.get("target_label")
        require(target_label is not None,
                "No target_label given and the label raster does not record one")
        return int(target_label)

    def indicator(self, labels: xr.Dataset, target_label: Optional[int] = None) -> xr.Dataset:
        """Per pixel-year target membership.

        Returns
        -------
        xr.Dataset
            ``in_target`` and ``valid`` booleans on ``(year, y, x)``.
        """
        assert_labeled(labels, self.n_clusters)
        target = self._target(labels, target_label)
        label = labels[LABEL_VAR]
        return xr.Dataset(
            {"in_target": label == target, "valid": label >= 0},
            attrs={**labels.attrs, "target_label": target},
        )

    def detect(self, labels: xr.Dataset, target_label: Optional[int] = None) -> TransitionResult:
        """First year labelled ``target_label`` for every pixel."""
        ind = self.indicator(labels, target_label)
        years = np.asarray(labels[YEAR_DIM].values)
        in_target = ind["in_target"].values

        year_stack = np.broadcast_to(years[:, None, None], in_target.shape)
        first = np.ma.masked_array(year_stack, mask=~in_target).min(axis=0)
        first = np.ma.masked_array(first, mask=np.ma.getmaskarray(first))

        result = TransitionResult(
            first_year=first,
            valid=ind["valid"].values.any(axis=0),
            grid=Grid.from_dataset(labels),
            last_year=int(years[-1]),
        )
        logger.debug("Transition detected for %d of %d pixels",
                     int(result.observed.sum()), result.observed.size)
        return result

    def to_dataset(self, result: TransitionResult) -> xr.Dataset:
        """Write ``result`` with the configured sentinel and nodata fill."""
        return result.to_dataset(self.never_value, self.nodata_value)
