"""Transition stage contract.

Enforces the guarantee that the transition raster has its two bands, that
every observed pixel carries a real year, and that unobserved pixels carry
either the "never" sentinel or the nodata fill.
"""

import numpy as np
import xarray as xr

from grasshift.contracts.base import require
from grasshift.contracts.invariants import Y_DIM, X_DIM

FIRST_YEAR_VAR = "first_transition_year"
DATA_MASK_VAR = "data_mask"


def assert_transition_raster(ds: xr.Dataset, never_value: int, nodata_value: int) -> None:
    """Enforce transition stage contract.

    Parameters
    ----------
    ds : xr.Dataset
        Output of ``TransitionResult.to_dataset``.

    never_value, nodata_value : int
        Serialisation values for "never observed" and masked pixels.

    Raises
    ------
    ContractViolation
        If any invariant is violated
    """
    for var in (FIRST_YEAR_VAR, DATA_MASK_VAR):
        require(var in ds.data_vars, f"Transition contract violated: missing '{var}'")
        require(ds[var].dims == (Y_DIM, X_DIM),
                f"Transition contract violated: '{var}' has dims {ds[var].dims}")

    first = ds[FIRST_YEAR_VAR].values
    observed = ds[DATA_MASK_VAR].values
    require(observed.dtype == bool,
            f"Transition contract violated: '{DATA_MASK_VAR}' dtype is {observed.dtype}")

    if observed.any():
        years = first[observed]
        require(
            bool(np.all(years < never_value)) and bool(np.all(years != nodata_value)),
            "Transition contract violated: observed pixels must carry a real year"
        )
    unobserved = first[~observed]
    require(
        bool(np.all((unobserved == never_value) | (unobserved == nodata_value))),
        "Transition contract violated: unobserved pixels must carry the sentinel or nodata"
    )
