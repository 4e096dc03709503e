"""Pipeline contracts: fail-fast enforcement of stage invariants.

This package enforces semantic guarantees between pipeline stages and the
shape guarantees of the rasters handed in by collaborators. Contracts fail
immediately and loudly when a stage doesn't produce its promised invariants.

Key principle:
- Pydantic validates config correctness
- Contracts validate data shape and pipeline correctness
- Algorithms handle numeric edge cases (clamping, empty histograms)
"""

from grasshift.contracts.failure import (
    ContractViolation,
    DataShapeError,
    FailurePolicy,
    InsufficientSampleError,
    ModelNotFittedError,
    TileProcessingError,
)
from grasshift.contracts.base import require
from grasshift.contracts.series import assert_cover_series, assert_same_grid, assert_mask
from grasshift.contracts.labels import assert_labeled
from grasshift.contracts.transition import assert_transition_raster
from grasshift.contracts.tables import assert_zonal_records, assert_histogram_records

__all__ = [
    "ContractViolation",
    "DataShapeError",
    "FailurePolicy",
    "InsufficientSampleError",
    "ModelNotFittedError",
    "TileProcessingError",
    "require",
    "assert_cover_series",
    "assert_same_grid",
    "assert_mask",
    "assert_labeled",
    "assert_transition_raster",
    "assert_zonal_records",
    "assert_histogram_records",
]
