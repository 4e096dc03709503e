"""Pipeline modules.

- orchestrator: Main pipeline controller
- processor: Tile worker thread
- tiles: Tile windows and merge helpers
- tracker: SQLite-based tile tracking
"""

from grasshift.pipeline.orchestrator import PipelineOrchestrator, PipelineResult
from grasshift.pipeline.processor import TileProcessor
from grasshift.pipeline.tiles import Tile, split_grid
from grasshift.pipeline.tracker import TileProcessingTracker

__all__ = [
    "PipelineOrchestrator",
    "PipelineResult",
    "TileProcessor",
    "Tile",
    "split_grid",
    "TileProcessingTracker",
]
