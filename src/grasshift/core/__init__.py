"""Core data model for the grasshift pipeline.

This module provides the shared spatial grid every raster is checked against.
"""

from grasshift.core.grid import Grid, YEAR_DIM, Y_DIM, X_DIM

__all__ = ['Grid', 'YEAR_DIM', 'Y_DIM', 'X_DIM']
