"""Cover time series contracts.

Enforces the shape guarantees every stage relies on: a ``(year, y, x)``
dataset with the configured bands, strictly increasing years, non-negative
cover, and static rasters on the same grid.
"""

from typing import Sequence

import numpy as np
import xarray as xr

from grasshift.contracts.base import require
from grasshift.contracts.failure import DataShapeError
from grasshift.contracts.invariants import YEAR_DIM, Y_DIM, X_DIM


def assert_cover_series(ds: xr.Dataset, bands: Sequence[str],
                        check_values: bool = True) -> None:
    """Enforce the cover time series contract.

    Parameters
    ----------
    ds : xr.Dataset
        Raw or smoothed cover series.

    bands : sequence of str
        Band variables that must be present.

    check_values : bool, optional
        Also reject negative cover values (NaN is nodata and allowed).

    Raises
    ------
    DataShapeError
        If any invariant is violated
    """
    require(isinstance(ds, xr.Dataset),
            f"Series contract violated: got {type(ds).__name__}, expected Dataset",
            DataShapeError)
    require(YEAR_DIM in ds.coords,
            f"Series contract violated: missing '{YEAR_DIM}' coordinate", DataShapeError)
    require(len(bands) > 0, "Series contract violated: no bands configured", DataShapeError)

    years = np.asarray(ds[YEAR_DIM].values)
    require(years.ndim == 1 and years.size > 0,
            "Series contract violated: empty year axis", DataShapeError)
    require(bool(np.all(np.diff(years) > 0)),
            f"Series contract violated: years must be strictly increasing, got {years.tolist()}",
            DataShapeError)

    for band in bands:
        require(band in ds.data_vars,
                f"Series contract violated: missing band '{band}'", DataShapeError)
        var = ds[band]
        require(var.dims == (YEAR_DIM, Y_DIM, X_DIM),
                f"Series contract violated: band '{band}' has dims {var.dims}, "
                f"expected ({YEAR_DIM}, {Y_DIM}, {X_DIM})", DataShapeError)
        if check_values:
            vmin = float(var.min(skipna=True))
            require(np.isnan(vmin) or vmin >= 0,
                    f"Series contract violated: band '{band}' has negative cover (min={vmin})",
                    DataShapeError)


def assert_same_grid(grid, obj, name: str) -> None:
    """Enforce that a static raster lies on ``grid``.

    Raises
    ------
    DataShapeError
        If the raster's y/x coordinates differ from the grid.
    """
    require(Y_DIM in obj.coords and X_DIM in obj.coords,
            f"Grid contract violated: '{name}' has no y/x coordinates", DataShapeError)
    y = np.asarray(obj[Y_DIM].values, dtype=np.float64)
    x = np.asarray(obj[X_DIM].values, dtype=np.float64)
    require(
        (y.size, x.size) == grid.shape and np.allclose(y, grid.y) and np.allclose(x, grid.x),
        f"Grid contract violated: '{name}' shape {(y.size, x.size)} does not match grid {grid.shape}",
        DataShapeError
    )


def assert_mask(mask: xr.DataArray, grid) -> None:
    """Enforce that the analysis mask is a boolean 2-D raster on the grid."""
    require(mask.dims == (Y_DIM, X_DIM),
            f"Mask contract violated: dims {mask.dims}, expected ({Y_DIM}, {X_DIM})",
            DataShapeError)
    require(mask.dtype == bool,
            f"Mask contract violated: dtype is {mask.dtype}, expected bool", DataShapeError)
    assert_same_grid(grid, mask, "analysis mask")
