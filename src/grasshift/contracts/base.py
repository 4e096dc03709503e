"""Base contract enforcement utilities.

The require() function is the single enforcement mechanism for all contracts.
"""

from typing import Type

from grasshift.contracts.failure import ContractViolation


def require(condition: bool, message: str,
            exc: Type[Exception] = ContractViolation) -> None:
    """Enforce a pipeline contract.

    This is called at stage boundaries to verify the preceding stage
    produced the guaranteed invariants, or that the caller handed in
    well-formed rasters. It is fail-fast: no recovery, no fallback.

    Parameters
    ----------
    condition : bool
        The invariant that must be true.

    message : str
        Error message explaining the violation (for debugging).

    exc : type, optional
        Exception class to raise. ContractViolation for pipeline bugs,
        DataShapeError for malformed inputs.

    Raises
    ------
    ContractViolation
        If condition is False (or ``exc`` when given).

    Examples
    --------
    >>> require("year" in ds.dims, "Series contract: missing 'year' dim", DataShapeError)
    >>> require(df.shape[0] > 0, "Zonal contract: at least one row expected")
    """
    if not condition:
        raise exc(message)
