"""Multi-threaded pipeline orchestration.

Validates inputs, fits the cluster model once, fans tiles out to worker
threads through a queue and merges their outputs into full-grid rasters and
tables.
"""

import queue
import time
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, TYPE_CHECKING

import numpy as np
import pandas as pd
import xarray as xr
from shapely.geometry.base import BaseGeometry

from grasshift.contracts import (
    ContractViolation,
    DataShapeError,
    FailurePolicy,
    TileProcessingError,
    assert_cover_series,
    assert_labeled,
    assert_mask,
    assert_same_grid,
    assert_transition_raster,
    require,
)
from grasshift.contracts.labels import LABEL_VAR
from grasshift.contracts.tables import HISTOGRAM_COLUMNS
from grasshift.contracts.transition import FIRST_YEAR_VAR, DATA_MASK_VAR
from grasshift.core.grid import Grid, YEAR_DIM, Y_DIM, X_DIM
from grasshift.cover.aggregator import ArealTotals, DirectionalHistogram
from grasshift.cover.classifier import ClusterModel, CoverClusterer
from grasshift.cover.sampler import TrainingSampler
from grasshift.cover.zones import Zone, zone_masks
from grasshift.pipeline.processor import TileOutcome, TileProcessor
from grasshift.pipeline.tiles import Tile, paste, split_grid
from grasshift.pipeline.tracker import TileProcessingTracker
from grasshift.setup_directories import get_log_path, get_raster_path, get_tracker_path

if TYPE_CHECKING:
    from grasshift.schemas import InternalConfig

__all__ = ['PipelineOrchestrator', 'PipelineResult']

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Merged outputs of one pipeline run."""
    model: ClusterModel
    sample: pd.DataFrame
    labels: xr.Dataset
    indicators: xr.Dataset
    transition: xr.Dataset
    zonal: pd.DataFrame
    histograms: pd.DataFrame
    failed_tiles: List[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed_tiles


class PipelineOrchestrator:
    """Runs the transition-year pipeline over a tiled grid.

    **Stages:**

    1. **Validate**: the series, analysis mask, terrain and zones must share
       one grid; malformed inputs raise ``DataShapeError`` before any work.

    2. **Fit**: the training sample is drawn from the raw series and k-means
       is fit once, blocking, before any tile is queued.

    3. **Tiles**: ``TileProcessor`` threads smooth, classify, detect the
       first transition year and tally zonal totals and histogram counts
       for each tile. Failing tiles are retried whole.

    4. **Merge**: raster windows are pasted back, tables are summed, and
       histogram proportions are computed once over the merged counts.

    **Failure policy:**

    ``skip_tile`` leaves a failed tile's pixels as nodata and reports it in
    ``PipelineResult.failed_tiles``. ``fail_fast`` raises
    ``TileProcessingError`` on the first tile that exhausts its retries.
    A contract violation always aborts the run.

    **Logging:**

    When output directories are given, all output goes to both console and
    ``logs/pipeline_{run_name}_*.log`` at the configured level.

    Example usage::

        from grasshift.pipeline.orchestrator import PipelineOrchestrator

        orch = PipelineOrchestrator(config, output_dirs)
        result = orch.run(series, analysis_mask=mask, terrain=terrain, zones=zones)
        result.transition["first_transition_year"]
    """

    def __init__(self, config: "InternalConfig", output_dirs: Optional[Dict[str, Path]] = None):
        """Initialize orchestrator with validated configuration.

        Parameters
        ----------
        config : InternalConfig
            Fully validated runtime configuration.
        output_dirs : dict, optional
            Output directory paths (from setup_output_directories). Without
            them nothing is written and logging is left as configured.
        """
        self.config = config
        self.output_dirs = output_dirs
        self.run_name = config.global_.run_name
        self.bands = list(config.global_.var_names.bands)
        self.failure_policy = FailurePolicy(config.tiling.failure_policy)

        self.tile_queue = queue.Queue()
        self.outcome_queue = queue.Queue()
        self.workers: List[TileProcessor] = []
        self.tracker: Optional[TileProcessingTracker] = None

        self._start_time = None

    def _setup_logging(self):
        """Configure root logger with file and console handlers."""
        log_level = getattr(logging, self.config.logging.level, logging.INFO)
        log_path = get_log_path(self.output_dirs, self.run_name)

        formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        root = logging.getLogger()
        root.setLevel(log_level)
        for handler in root.handlers[:]:
            root.removeHandler(handler)

        fh = logging.FileHandler(log_path)
        fh.setLevel(log_level)
        fh.setFormatter(formatter)
        root.addHandler(fh)

        ch = logging.StreamHandler()
        ch.setLevel(log_level)
        ch.setFormatter(formatter)
        root.addHandler(ch)

        logger.info("Logging: level=%s, file=%s", self.config.logging.level, log_path)

    def _setup_tracker(self):
        if self.output_dirs:
            tracker_path = get_tracker_path(self.output_dirs, self.run_name)
        else:
            tracker_path = ":memory:"
        self.tracker = TileProcessingTracker(tracker_path, run_name=self.run_name)

    def validate_inputs(self, series: xr.Dataset,
                        analysis_mask: Optional[xr.DataArray] = None,
                        terrain: Optional[xr.Dataset] = None,
                        zones: Sequence[Zone] = ()) -> Grid:
        """Check every raster against the series grid and return that grid.

        Raises
        ------
        DataShapeError
            If any input is malformed or off-grid.
        """
        assert_cover_series(series, self.bands)
        grid = Grid.from_dataset(series)
        last_year = int(series[YEAR_DIM].values[-1])
        require(self.config.transition.never_value > last_year,
                f"never_value {self.config.transition.never_value} must exceed the last year {last_year}",
                DataShapeError)

        if analysis_mask is not None:
            assert_mask(analysis_mask, grid)

        if terrain is not None:
            var_names = self.config.global_.var_names
            for var in (var_names.aspect, var_names.slope):
                require(var in terrain.data_vars,
                        f"Terrain contract violated: missing '{var}'", DataShapeError)
                require(terrain[var].dims == (Y_DIM, X_DIM),
                        f"Terrain contract violated: '{var}' has dims {terrain[var].dims}",
                        DataShapeError)
            assert_same_grid(grid, terrain, "terrain")

        if zones:
            zone_masks(zones, grid)

        logger.info("Inputs valid: %d years x %d x %d pixels, bands=%s",
                    series.sizes[YEAR_DIM], grid.shape[0], grid.shape[1], self.bands)
        return grid

    def fit_model(self, series: xr.Dataset, analysis_mask: Optional[xr.DataArray] = None,
                  study_area: Optional[BaseGeometry] = None) -> Tuple[pd.DataFrame, ClusterModel]:
        """Draw the training sample from the raw series and fit k-means once."""
        sample = TrainingSampler(self.config).sample(series, analysis_mask, study_area)
        model = CoverClusterer(self.config).fit(sample)
        return sample, model

    def run(self, series: xr.Dataset, analysis_mask: Optional[xr.DataArray] = None,
            terrain: Optional[xr.Dataset] = None, zones: Sequence[Zone] = (),
            study_area: Optional[BaseGeometry] = None,
            model: Optional[ClusterModel] = None) -> PipelineResult:
        """Run the pipeline to completion.

        Parameters
        ----------
        series : xr.Dataset
            Raw cover series on ``(year, y, x)``.
        analysis_mask : xr.DataArray, optional
            Boolean ``(y, x)``; pixels outside are nodata.
        terrain : xr.Dataset, optional
            Aspect and slope in degrees. Without it no histograms are made.
        zones : sequence of Zone
            Aggregation zones. Empty means one zone covering the grid.
        study_area : shapely geometry, optional
            Polygon restricting where training pixels are drawn.
        model : ClusterModel, optional
            Previously fitted model. When given, sampling and fitting are
            skipped and ``PipelineResult.sample`` is empty.

        Returns
        -------
        PipelineResult

        Raises
        ------
        DataShapeError
            If inputs are malformed.
        InsufficientSampleError
            If too few training vectors are available.
        ContractViolation
            If a stage broke its contract on any tile.
        TileProcessingError
            Under ``fail_fast`` when a tile exhausts its retries.
        """
        if self.output_dirs:
            self._setup_logging()

        logger.info("=" * 60)
        logger.info("Starting Transition Pipeline: %s", self.run_name)
        logger.info("=" * 60)
        self._start_time = time.time()
        self.tile_queue = queue.Queue()
        self.outcome_queue = queue.Queue()

        grid = self.validate_inputs(series, analysis_mask, terrain, zones)

        if model is None:
            sample, model = self.fit_model(series, analysis_mask, study_area)
        else:
            sample = pd.DataFrame(columns=["y_index", "x_index", "year", *self.bands])
            logger.info("Using supplied model: k=%d, target_label=%d",
                        model.n_clusters, model.target_label)

        tiles = split_grid(grid.shape, tuple(self.config.tiling.tile_shape))
        self._setup_tracker()
        try:
            outcomes = self._run_tiles(tiles, model, series, grid, analysis_mask, terrain, zones)
            result = self._merge(tiles, outcomes, model, sample, series, grid, terrain)
            if self.output_dirs and self.config.output.save_netcdf:
                self._save_outputs(result)
        finally:
            self.stop()

        return result

    def _run_tiles(self, tiles: List[Tile], model: ClusterModel, series: xr.Dataset,
                   grid: Grid, analysis_mask, terrain, zones) -> Dict[str, TileOutcome]:
        """Queue every tile, start workers and collect one outcome per tile."""
        n_workers = min(self.config.tiling.n_workers, len(tiles))

        for tile in tiles:
            self.tracker.register_tile(tile)
            self.tile_queue.put(tile)
        for _ in range(n_workers):
            self.tile_queue.put(None)

        logger.info("Starting %d workers for %d tiles of %s",
                    n_workers, len(tiles), tuple(self.config.tiling.tile_shape))
        for i in range(n_workers):
            worker = TileProcessor(
                input_queue=self.tile_queue,
                output_queue=self.outcome_queue,
                config=self.config,
                model=model,
                series=series,
                grid=grid,
                analysis_mask=analysis_mask,
                terrain=terrain,
                zones=zones,
                tracker=self.tracker,
                name=f"TileProcessor-{i}",
            )
            worker.start()
            self.workers.append(worker)

        outcomes: Dict[str, TileOutcome] = {}
        while len(outcomes) < len(tiles):
            try:
                outcome = self.outcome_queue.get(timeout=1)
            except queue.Empty:
                if not any(w.is_alive() for w in self.workers):
                    logger.error("All workers exited with %d of %d tiles done",
                                 len(outcomes), len(tiles))
                    break
                continue

            outcomes[outcome.tile.tile_id] = outcome
            if not outcome.ok:
                if outcome.fatal:
                    raise ContractViolation(f"Tile {outcome.tile.tile_id}: {outcome.error}")
                if self.failure_policy is FailurePolicy.FAIL_FAST:
                    raise TileProcessingError(
                        f"Tile {outcome.tile.tile_id} failed after {outcome.attempts} "
                        f"attempts: {outcome.error}"
                    )

            if len(outcomes) % max(1, len(tiles) // 10) == 0:
                self._log_status(len(outcomes), len(tiles))

        return outcomes

    def _merge(self, tiles: List[Tile], outcomes: Dict[str, TileOutcome], model: ClusterModel,
               sample: pd.DataFrame, series: xr.Dataset, grid: Grid,
               terrain: Optional[xr.Dataset]) -> PipelineResult:
        """Paste raster windows and sum tables into full-grid outputs."""
        years = np.asarray(series[YEAR_DIM].values)
        full_shape = (years.size, *grid.shape)
        never_value = self.config.transition.never_value
        nodata_value = self.config.transition.nodata_value

        labels = np.full(full_shape, -1, dtype=np.int16)
        in_target = np.zeros(full_shape, dtype=bool)
        valid = np.zeros(full_shape, dtype=bool)
        first_year = np.full(grid.shape, nodata_value, dtype=np.int32)
        data_mask = np.zeros(grid.shape, dtype=bool)

        zonal_parts, hist_parts, failed = [], [], []
        for tile in tiles:
            outcome = outcomes.get(tile.tile_id)
            if outcome is None or not outcome.ok:
                failed.append(tile.tile_id)
                continue
            part = outcome.result
            paste(labels, part.labels, tile)
            paste(in_target, part.in_target, tile)
            paste(valid, part.valid, tile)
            paste(first_year, part.first_year, tile)
            paste(data_mask, part.data_mask, tile)
            zonal_parts.append(part.zonal)
            hist_parts.append(part.histogram_counts)

        coords = {YEAR_DIM: years, **grid.coords()}
        dims = (YEAR_DIM, Y_DIM, X_DIM)
        labels_ds = xr.Dataset(
            {LABEL_VAR: (dims, labels, {"n_clusters": model.n_clusters,
                                        "target_label": model.target_label,
                                        "nodata": -1})},
            coords=coords, attrs=grid.attrs())
        assert_labeled(labels_ds, model.n_clusters)

        indicators = xr.Dataset(
            {"in_target": (dims, in_target), "valid": (dims, valid)},
            coords=coords, attrs={**grid.attrs(), "target_label": model.target_label})

        transition = xr.Dataset(
            {FIRST_YEAR_VAR: ((Y_DIM, X_DIM), first_year,
                              {"never_value": never_value, "nodata_value": nodata_value}),
             DATA_MASK_VAR: ((Y_DIM, X_DIM), data_mask)},
            coords=grid.coords(), attrs=grid.attrs())
        assert_transition_raster(transition, never_value, nodata_value)

        zonal = ArealTotals.merge(zonal_parts)
        if terrain is not None:
            histograms = DirectionalHistogram.finalize(DirectionalHistogram.merge(hist_parts))
        else:
            histograms = pd.DataFrame(columns=HISTOGRAM_COLUMNS)

        if failed:
            logger.warning("%d of %d tiles failed: %s", len(failed), len(tiles), failed)
        logger.info("Merged %d tiles: %d zonal rows, %d histogram rows",
                    len(tiles) - len(failed), len(zonal), len(histograms))

        return PipelineResult(
            model=model,
            sample=sample,
            labels=labels_ds,
            indicators=indicators,
            transition=transition,
            zonal=zonal,
            histograms=histograms,
            failed_tiles=failed,
        )

    def _save_outputs(self, result: PipelineResult):
        """Write raster products to NetCDF."""
        for product, ds in (("labels", result.labels),
                            ("indicators", result.indicators),
                            ("transition", result.transition)):
            path = get_raster_path(self.output_dirs, self.run_name, product)
            ds.to_netcdf(path)
            logger.info("Saved %s: %s", product, path)

    def stop(self):
        """Stop workers and close the tracker. Safe to call multiple times."""
        for worker in self.workers:
            if worker.is_alive():
                worker.stop()
                worker.join(timeout=5)
                if worker.is_alive():
                    logger.warning("%s did not stop cleanly", worker.name)
        self.workers = []

        elapsed = time.time() - self._start_time if self._start_time else 0
        if self.tracker:
            stats = self.tracker.get_statistics()
            logger.info("Tiles: total=%d, completed=%d, failed=%d, attempts=%d",
                        stats['total'], stats['completed'], stats['failed'], stats['attempts'])
            self.tracker.close()
            self.tracker = None

        logger.info("=" * 60)
        logger.info("Pipeline stopped. Runtime: %.1f seconds", elapsed)
        logger.info("=" * 60)

    def _log_status(self, done: int, total: int):
        """Log current pipeline status."""
        logger.info(
            "Status: tiles %d/%d, workers alive=%d",
            done, total, sum(w.is_alive() for w in self.workers),
        )
