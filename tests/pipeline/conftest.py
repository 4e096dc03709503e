import pytest
import queue

from grasshift.core.grid import Grid
from grasshift.cover.classifier import CoverClusterer
from grasshift.cover.sampler import TrainingSampler
from grasshift.pipeline.tracker import TileProcessingTracker


@pytest.fixture
def tracker(temp_dir):
    db_path = temp_dir / "tiles.db"
    t = TileProcessingTracker(db_path, run_name="test_run")
    yield t
    t.close()


@pytest.fixture
def pipeline_config(make_config):
    """Small tiles and several workers on the 6 x 8 synthetic grid."""
    return make_config(
        alpha=1.0,
        beta=0.0,
        n_clusters=2,
        sample_size=40,
        n_bins=4,
        periods=[(2000, 2004), (2005, 2009)],
        tile_shape=(2, 3),
        n_workers=3,
    )


@pytest.fixture
def fitted_model(small_config, cover_series):
    sample = TrainingSampler(small_config).sample(cover_series)
    return CoverClusterer(small_config).fit(sample)


@pytest.fixture
def grid(cover_series):
    return Grid.from_dataset(cover_series)


# made for processor tests
@pytest.fixture
def processor_queues():
    return queue.Queue(), queue.Queue()
