"""Vegetation cover processing modules.

- smoother: Holt double-exponential smoothing
- sampler: Stratified training sample
- classifier: K-means vegetation states
- transition: First annual-grass year per pixel
- zones: Zone polygons and pixel masks
- aggregator: Areal totals and directional histograms
"""

from grasshift.cover.smoother import HoltSmoother, holt_step
from grasshift.cover.sampler import TrainingSampler
from grasshift.cover.classifier import ClusterModel, CoverClusterer
from grasshift.cover.transition import TransitionDetector, TransitionResult, first_target_year
from grasshift.cover.zones import Zone, zone_masks, load_zones_geojson
from grasshift.cover.aggregator import ArealTotals, DirectionalHistogram

__all__ = [
    "HoltSmoother",
    "holt_step",
    "TrainingSampler",
    "ClusterModel",
    "CoverClusterer",
    "TransitionDetector",
    "TransitionResult",
    "first_target_year",
    "Zone",
    "zone_masks",
    "load_zones_geojson",
    "ArealTotals",
    "DirectionalHistogram",
]
