"""Classification stage contract.

Enforces the guarantee that after classification every pixel-year carries an
integer cluster id in [0, k), or -1 for nodata.
"""

import numpy as np
import xarray as xr

from grasshift.contracts.base import require
from grasshift.contracts.invariants import YEAR_DIM, Y_DIM, X_DIM

LABEL_VAR = "cluster_label"


def assert_labeled(ds: xr.Dataset, n_clusters: int) -> None:
    """Enforce classification stage contract.

    Called immediately after classification.

    Parameters
    ----------
    ds : xr.Dataset
        Output of ``classify``.

    n_clusters : int
        Number of centroids of the model that produced the labels.

    Raises
    ------
    ContractViolation
        If any invariant is violated
    """
    require(
        LABEL_VAR in ds.data_vars,
        f"Classification contract violated: '{LABEL_VAR}' not found"
    )
    labels = ds[LABEL_VAR]

    require(
        labels.dtype.kind == "i",
        f"Classification contract violated: '{LABEL_VAR}' dtype is {labels.dtype}, expected signed integer"
    )
    require(
        labels.dims == (YEAR_DIM, Y_DIM, X_DIM),
        f"Classification contract violated: '{LABEL_VAR}' has dims {labels.dims}"
    )

    values = labels.values
    if values.size:
        require(
            int(np.min(values)) >= -1 and int(np.max(values)) < n_clusters,
            f"Classification contract violated: labels outside [-1, {n_clusters}) "
            f"(min={np.min(values)}, max={np.max(values)})"
        )
