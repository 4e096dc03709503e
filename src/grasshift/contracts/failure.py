"""Centralized failure types for the transition pipeline.

Contracts fail fast, loud, and once. Input-shape problems and pipeline bugs
raise different exception types so callers can tell bad data from bad code.
"""

from enum import Enum


class FailurePolicy(str, Enum):
    """Failure policy for a tile that keeps failing.

    FAIL_FAST: Raise immediately, abort the run
    SKIP_TILE (default): Mark the tile failed, keep processing the others
    """
    FAIL_FAST = "fail_fast"
    SKIP_TILE = "skip_tile"


class ContractViolation(RuntimeError):
    """Raised when a pipeline contract is violated.

    This indicates a bug in pipeline logic, not bad input data. It means a
    pipeline stage did not produce the invariants it promised.

    Key distinction:
    - ValidationError: config error (handled by Pydantic)
    - DataShapeError: malformed input rasters (caller's data)
    - ContractViolation: pipeline bug (programmer error)
    """
    pass


class ModelNotFittedError(ContractViolation):
    """Raised when classification is requested before the cluster model exists."""
    pass


class DataShapeError(ValueError):
    """Raised when input rasters are malformed.

    Covers band mismatches, non-increasing or duplicate years, grids that do
    not line up between a raster and its mask, terrain or zones, and cover
    values outside the allowed range.
    """
    pass


class InsufficientSampleError(ValueError):
    """Raised when too few valid training vectors remain after filtering."""
    pass


class TileProcessingError(RuntimeError):
    """Raised under the fail_fast policy when a tile exhausts its retries."""
    pass
