"""Spatial grid shared by every raster in the pipeline.

A ``Grid`` is built from the pixel-centre coordinates of a dataset. It knows
its affine transform (for burning zone polygons), can cut out the sub-grid of
a tile window, and computes per-pixel area.

Time series are ``xarray.Dataset`` objects on ``(year, y, x)`` with one data
variable per cover band. Static rasters live on ``(y, x)``.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import xarray as xr
from rasterio.crs import CRS
from rasterio.transform import Affine

from grasshift.contracts.base import require
from grasshift.contracts.failure import DataShapeError
from grasshift.contracts.invariants import YEAR_DIM, Y_DIM, X_DIM

__all__ = ["Grid", "YEAR_DIM", "Y_DIM", "X_DIM", "AREA_FACTORS"]

logger = logging.getLogger(__name__)

# square metres -> output unit
AREA_FACTORS = {"m2": 1.0, "ha": 1e-4, "km2": 1e-6}

EARTH_RADIUS_M = 6371008.8


@dataclass(frozen=True, eq=False)
class Grid:
    """Immutable 2-D pixel domain.

    Parameters
    ----------
    y, x : np.ndarray
        Pixel-centre coordinates, evenly spaced.
    res : tuple of float
        Signed pixel size ``(res_y, res_x)``. ``res_y`` is usually negative
        (north-up rasters).
    crs : str, optional
        Any CRS string rasterio understands. ``None`` means planar units.
    """

    y: np.ndarray
    x: np.ndarray
    res: Tuple[float, float]
    crs: Optional[str] = None

    def __post_init__(self):
        for name in ("y", "x"):
            arr = np.array(getattr(self, name))
            arr.setflags(write=False)
            object.__setattr__(self, name, arr)

    @classmethod
    def from_coords(cls, y, x, crs: Optional[str] = None,
                    res: Optional[Tuple[float, float]] = None) -> "Grid":
        """Build a grid from coordinate vectors, inferring resolution."""
        y = np.array(y)
        x = np.array(x)
        require(y.ndim == 1 and x.ndim == 1 and y.size > 0 and x.size > 0,
                "Grid requires non-empty 1-D 'y' and 'x' coordinates", DataShapeError)

        res_y = cls._spacing(y, res[0] if res else None, "y")
        res_x = cls._spacing(x, res[1] if res else None, "x")
        return cls(y=y, x=x, res=(res_y, res_x), crs=crs)

    @classmethod
    def from_dataset(cls, obj) -> "Grid":
        """Build the grid of a Dataset or DataArray.

        Reads the CRS from ``attrs['crs']`` and the resolution from
        ``attrs['res']`` when the raster is a single pixel wide.
        """
        require(Y_DIM in obj.coords and X_DIM in obj.coords,
                "Grid requires 'y' and 'x' coordinates", DataShapeError)
        res = obj.attrs.get("res")
        return cls.from_coords(obj[Y_DIM].values, obj[X_DIM].values,
                               crs=obj.attrs.get("crs"),
                               res=tuple(res) if res is not None else None)

    @staticmethod
    def _spacing(coord: np.ndarray, given: Optional[float], name: str) -> float:
        if coord.size == 1:
            require(given is not None,
                    f"Grid '{name}' has one pixel; resolution must be given", DataShapeError)
            return float(given)
        steps = np.diff(coord)
        step = float(steps[0]) if given is None else float(given)
        require(step != 0 and np.allclose(steps, step),
                f"Grid '{name}' coordinates are not evenly spaced", DataShapeError)
        return step

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.y.size, self.x.size)

    @property
    def transform(self) -> Affine:
        """Affine transform mapping (col, row) to the pixel's upper-left corner."""
        res_y, res_x = self.res
        return Affine(res_x, 0.0, self.x[0] - res_x / 2.0,
                      0.0, res_y, self.y[0] - res_y / 2.0)

    @property
    def is_geographic(self) -> bool:
        if self.crs is None:
            return False
        return CRS.from_user_input(self.crs).is_geographic

    def window(self, rows: slice, cols: slice) -> "Grid":
        """Sub-grid for a tile window."""
        return Grid(y=np.array(self.y[rows]), x=np.array(self.x[cols]),
                    res=self.res, crs=self.crs)

    def same_as(self, other: "Grid") -> bool:
        return (self.shape == other.shape
                and np.allclose(self.y, other.y)
                and np.allclose(self.x, other.x))

    def coords(self) -> dict:
        return {Y_DIM: self.y.copy(), X_DIM: self.x.copy()}

    def attrs(self) -> dict:
        attrs = {"res": list(self.res)}
        if self.crs is not None:
            attrs["crs"] = self.crs
        return attrs

    def pixel_area(self, units: str = "ha") -> np.ndarray:
        """Per-pixel area as a ``(ny, nx)`` float64 array.

        Projected grids have constant area ``|res_x * res_y|``. Geographic
        grids (degrees) use the spherical band area between pixel edges.
        """
        res_y, res_x = self.res
        if self.is_geographic:
            lat_a = np.deg2rad(self.y - res_y / 2.0)
            lat_b = np.deg2rad(self.y + res_y / 2.0)
            band = np.abs(np.sin(lat_b) - np.sin(lat_a))
            row_area = EARTH_RADIUS_M ** 2 * np.deg2rad(abs(res_x)) * band
            area = np.repeat(row_area[:, None], self.x.size, axis=1)
        else:
            area = np.full(self.shape, abs(res_x * res_y), dtype=np.float64)
        return area * AREA_FACTORS[units]

    def to_dataarray(self, values: np.ndarray, name: str, attrs: dict = None) -> xr.DataArray:
        """Wrap a ``(ny, nx)`` array on this grid."""
        return xr.DataArray(values, dims=(Y_DIM, X_DIM), coords=self.coords(),
                            name=name, attrs=attrs or {})
