"""Named zone polygons and their pixel masks.

Zones (ecoregions, study areas) are shapely geometries in the grid's CRS.
They are burned onto a grid with the pixel-centre rule, so a pixel belongs
to the same zone whether it is rasterized as part of the whole grid or of a
single tile.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import numpy as np
from rasterio.crs import CRS
from rasterio.features import geometry_mask
from shapely.geometry import mapping, shape
from shapely.geometry.base import BaseGeometry

from grasshift.contracts import DataShapeError, require
from grasshift.core.grid import Grid

__all__ = ['Zone', 'ALL_ZONE_ID', 'polygon_mask', 'zone_masks', 'load_zones_geojson']

logger = logging.getLogger(__name__)

# zone id used when no zones are supplied
ALL_ZONE_ID = "all"


@dataclass(frozen=True)
class Zone:
    """A named aggregation region."""
    zone_id: str
    geometry: BaseGeometry
    crs: Optional[str] = None


def _check_crs(zone_crs: Optional[str], grid: Grid, name: str) -> None:
    if zone_crs is None or grid.crs is None:
        return
    require(CRS.from_user_input(zone_crs) == CRS.from_user_input(grid.crs),
            f"Grid contract violated: zone '{name}' CRS {zone_crs} differs from grid CRS {grid.crs}",
            DataShapeError)


def polygon_mask(geometry: BaseGeometry, grid: Grid) -> np.ndarray:
    """Boolean ``(ny, nx)`` mask, True where the pixel centre is inside."""
    if geometry.is_empty:
        return np.zeros(grid.shape, dtype=bool)
    return geometry_mask(
        [mapping(geometry)],
        out_shape=grid.shape,
        transform=grid.transform,
        all_touched=False,
        invert=True,
    )


def zone_masks(zones: Sequence[Zone], grid: Grid) -> Dict[str, np.ndarray]:
    """Burn every zone onto ``grid``.

    Raises
    ------
    DataShapeError
        If a zone's CRS differs from the grid's, or zone ids repeat.
    """
    ids = [zone.zone_id for zone in zones]
    require(len(set(ids)) == len(ids), f"Zone ids must be unique, got {ids}", DataShapeError)

    masks = {}
    for zone in zones:
        _check_crs(zone.crs, grid, zone.zone_id)
        masks[zone.zone_id] = polygon_mask(zone.geometry, grid)
    return masks


def load_zones_geojson(path, id_property: str = "name") -> List[Zone]:
    """Read zones from a GeoJSON FeatureCollection.

    Parameters
    ----------
    path : str or Path
        GeoJSON file.
    id_property : str
        Feature property holding the zone identifier.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Zones not found: {path}")

    with open(path) as f:
        collection = json.load(f)

    crs = collection.get("crs", {}).get("properties", {}).get("name")
    zones = []
    for feature in collection["features"]:
        props = feature.get("properties") or {}
        if id_property not in props:
            raise ValueError(f"Feature without '{id_property}' property in {path}")
        zones.append(Zone(str(props[id_property]), shape(feature["geometry"]), crs))

    logger.info("Loaded %d zones from %s", len(zones), path.name)
    return zones
