"""`grasshift` - first year of exotic annual grass dominance from cover time series.

Subpackages:
- core: Shared spatial grid
- cover: Smoothing, sampling, classification, transition, aggregation
- pipeline: Orchestrator, tile worker, tile tracking
- schemas: Layered configuration
- contracts: Stage invariants and error types
"""

__version__ = "0.1.0"
