"""Tile worker for the transition-year pipeline.

Each worker pulls tiles from a queue and runs the per-tile transform:
smooth, classify, reduce to the first transition year, then tally areal
totals and histogram counts. The fitted model and all static inputs are
shared read-only between workers.
"""

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Optional, Sequence, TYPE_CHECKING

import numpy as np
import pandas as pd
import xarray as xr

from grasshift.contracts import ContractViolation, FailurePolicy
from grasshift.contracts.labels import LABEL_VAR
from grasshift.contracts.tables import HISTOGRAM_COLUMNS
from grasshift.contracts.transition import FIRST_YEAR_VAR, DATA_MASK_VAR
from grasshift.core.grid import Grid
from grasshift.cover.aggregator import ArealTotals, DirectionalHistogram
from grasshift.cover.classifier import ClusterModel, CoverClusterer
from grasshift.cover.smoother import HoltSmoother
from grasshift.cover.transition import TransitionDetector
from grasshift.cover.zones import ALL_ZONE_ID, Zone, zone_masks
from grasshift.pipeline.tiles import Tile, tile_view

if TYPE_CHECKING:
    from grasshift.schemas import InternalConfig
    from grasshift.pipeline.tracker import TileProcessingTracker

__all__ = ['TileResult', 'TileOutcome', 'TileProcessor']

logger = logging.getLogger(__name__)


@dataclass
class TileResult:
    """Everything one tile contributes to the merged outputs."""
    tile: Tile
    labels: np.ndarray
    in_target: np.ndarray
    valid: np.ndarray
    first_year: np.ndarray
    data_mask: np.ndarray
    zonal: pd.DataFrame
    histogram_counts: pd.DataFrame


@dataclass
class TileOutcome:
    """Final status of a tile after all attempts."""
    tile: Tile
    result: Optional[TileResult] = None
    error: Optional[str] = None
    attempts: int = 0
    fatal: bool = False

    @property
    def ok(self) -> bool:
        return self.result is not None


class TileProcessor(threading.Thread):
    """Queue-fed worker thread running the per-tile transform.

    Tiles arrive on ``input_queue``; one ``TileOutcome`` per tile is put on
    ``output_queue``. A tile that raises is retried as a whole up to
    ``max_retries`` times. Contract violations signal a pipeline bug, are
    never retried, and stop the worker.

    Example usage (typically called by orchestrator)::

        worker = TileProcessor(tile_queue, outcome_queue, config, model,
                               series=ds, grid=grid, zones=zones)
        worker.start()
        ...
        worker.stop()
    """

    def __init__(self, input_queue: queue.Queue, output_queue: queue.Queue,
                 config: "InternalConfig", model: ClusterModel,
                 series: xr.Dataset, grid: Grid,
                 analysis_mask: Optional[xr.DataArray] = None,
                 terrain: Optional[xr.Dataset] = None,
                 zones: Sequence[Zone] = (),
                 tracker: Optional["TileProcessingTracker"] = None,
                 name: str = "TileProcessor"):
        """Initialize worker with validated configuration and shared inputs.

        Parameters
        ----------
        input_queue : queue.Queue
            Queue of ``Tile`` windows. None signals shutdown.
        output_queue : queue.Queue
            Receives one ``TileOutcome`` per tile.
        config : InternalConfig
            Fully validated runtime configuration.
        model : ClusterModel
            Fitted model, shared read-only.
        series : xr.Dataset
            Raw cover series on the full grid.
        grid : Grid
            Full grid of ``series``.
        analysis_mask, terrain : optional
            Static rasters on the full grid.
        zones : sequence of Zone
            Aggregation zones. Empty means one zone covering the grid.
        tracker : TileProcessingTracker, optional
            Records tile state.
        name : str, optional
            Thread name for logging.
        """
        super().__init__(daemon=True, name=name)

        self.input_queue = input_queue
        self.output_queue = output_queue
        self.config = config
        self.model = model
        self.series = series
        self.grid = grid
        self.analysis_mask = analysis_mask
        self.terrain = terrain
        self.zones = list(zones)
        self.tracker = tracker
        self.max_retries = config.tiling.max_retries
        self.failure_policy = FailurePolicy(config.tiling.failure_policy)
        self._stop_event = threading.Event()

        self.smoother = HoltSmoother(config)
        self.clusterer = CoverClusterer(config)
        self.detector = TransitionDetector(config)
        self.areal = ArealTotals(config)
        self.histogram = DirectionalHistogram(config)

    def stop(self):
        """Signal worker to stop after the current tile."""
        self._stop_event.set()

    def stopped(self):
        """Check if worker should stop."""
        return self._stop_event.is_set()

    def process_tile(self, tile: Tile) -> TileResult:
        """Run the full per-tile transform. Pure with respect to shared state."""
        tile_grid = self.grid.window(tile.rows, tile.cols)
        series = tile_view(self.series, tile, tile_grid)
        mask = tile_view(self.analysis_mask, tile, tile_grid)
        terrain = tile_view(self.terrain, tile, tile_grid)

        smoothed = self.smoother.smooth(series)
        labels = self.clusterer.classify(self.model, smoothed, mask)
        indicators = self.detector.indicator(labels, self.model.target_label)
        transition = self.detector.to_dataset(
            self.detector.detect(labels, self.model.target_label))

        if self.zones:
            masks = zone_masks(self.zones, tile_grid)
        else:
            masks = {ALL_ZONE_ID: np.ones(tile_grid.shape, dtype=bool)}

        zonal = self.areal.compute(indicators, masks, tile_grid)
        if terrain is not None:
            counts = self.histogram.counts(transition, terrain, masks, tile_grid)
        else:
            counts = pd.DataFrame(columns=HISTOGRAM_COLUMNS[:-1])

        return TileResult(
            tile=tile,
            labels=labels[LABEL_VAR].values,
            in_target=indicators["in_target"].values,
            valid=indicators["valid"].values,
            first_year=transition[FIRST_YEAR_VAR].values,
            data_mask=transition[DATA_MASK_VAR].values,
            zonal=zonal,
            histogram_counts=counts,
        )

    def run_tile(self, tile: Tile) -> TileOutcome:
        """Process one tile with whole-tile retries."""
        outcome = TileOutcome(tile=tile)

        for attempt in range(1, self.max_retries + 2):
            outcome.attempts = attempt
            if self.tracker:
                self.tracker.mark_processing(tile.tile_id)
            try:
                outcome.result = self.process_tile(tile)
                outcome.error = None
                if self.tracker:
                    self.tracker.mark_completed(tile.tile_id)
                logger.debug("Tile %s done (attempt %d)", tile.tile_id, attempt)
                return outcome

            except ContractViolation as e:
                logger.critical("CRITICAL: Pipeline contract violated on tile %s: %s",
                                tile.tile_id, e)
                logger.critical("This indicates a bug in pipeline logic. Stopping worker.")
                outcome.error = f"Contract violation: {e}"
                outcome.fatal = True
                self.stop()
                break

            except Exception as e:
                outcome.error = f"{type(e).__name__}: {e}"
                if attempt <= self.max_retries:
                    logger.warning("Tile %s failed (attempt %d/%d), retrying: %s",
                                   tile.tile_id, attempt, self.max_retries + 1, e)
                else:
                    logger.exception("Tile %s failed after %d attempts", tile.tile_id, attempt)

        if self.tracker:
            self.tracker.mark_failed(tile.tile_id, outcome.error)
        return outcome

    def run(self):
        """Main worker loop (runs in thread).

        Reads tiles from ``input_queue`` until None (sentinel) arrives or
        ``stop()`` is called.
        """
        logger.debug("%s started", self.name)

        while not self.stopped():
            try:
                tile = self.input_queue.get(timeout=1)
            except queue.Empty:
                continue

            try:
                if tile is None:
                    break
                outcome = self.run_tile(tile)
                self.output_queue.put(outcome)
                if not outcome.ok and self.failure_policy is FailurePolicy.FAIL_FAST:
                    self.stop()
            finally:
                # Always mark task as done to prevent queue from blocking
                self.input_queue.task_done()

        logger.debug("%s stopped", self.name)
