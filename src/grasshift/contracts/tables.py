"""Aggregation stage contracts.

Enforces the guarantee that zonal and histogram record sets have their stable
column keys. We do NOT validate the statistics themselves, only structure.
"""

import numpy as np
import pandas as pd

from grasshift.contracts.base import require

ZONAL_COLUMNS = [
    "zone_id",
    "year",
    "target_pixels",
    "valid_pixels",
    "target_area",
    "valid_area",
]

HISTOGRAM_COLUMNS = [
    "zone_id",
    "period",
    "period_start",
    "period_end",
    "bin_index",
    "bin_lower",
    "bin_upper",
    "count",
    "proportion",
]


def _require_columns(df: pd.DataFrame, columns, stage: str) -> None:
    require(
        isinstance(df, pd.DataFrame),
        f"{stage} contract violated: output is {type(df)}, expected DataFrame"
    )
    for col in columns:
        require(
            col in df.columns,
            f"{stage} contract violated: missing required column '{col}'"
        )


def assert_zonal_records(df: pd.DataFrame) -> None:
    """Enforce areal-total record contract.

    Raises
    ------
    ContractViolation
        If required columns are missing or counts are inconsistent
    """
    _require_columns(df, ZONAL_COLUMNS, "Zonal")
    if len(df) > 0:
        require(
            bool((df["target_pixels"] <= df["valid_pixels"]).all()),
            "Zonal contract violated: target_pixels exceeds valid_pixels"
        )
        require(
            not df.duplicated(["zone_id", "year"]).any(),
            "Zonal contract violated: duplicate (zone_id, year) rows"
        )


def assert_histogram_records(df: pd.DataFrame) -> None:
    """Enforce histogram record contract.

    Proportions must be undefined (<NA>) or a density summing to one per
    (zone, period) cell.

    Raises
    ------
    ContractViolation
        If required columns are missing or proportions are malformed
    """
    _require_columns(df, HISTOGRAM_COLUMNS, "Histogram")
    if len(df) == 0:
        return

    for (zone_id, period), cell in df.groupby(["zone_id", "period"], sort=False):
        props = cell["proportion"]
        if props.isna().all():
            require(
                int(cell["count"].sum()) == 0,
                f"Histogram contract violated: ({zone_id}, {period}) has counts but no proportions"
            )
        else:
            require(
                not props.isna().any(),
                f"Histogram contract violated: ({zone_id}, {period}) has partial proportions"
            )
            require(
                bool(np.isclose(float(props.sum()), 1.0, atol=1e-6)),
                f"Histogram contract violated: ({zone_id}, {period}) proportions sum to {props.sum()}"
            )
