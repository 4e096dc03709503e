"""Root-level pytest fixtures for the grasshift test suite.

Provides shared configuration fixtures following Pydantic-based architecture.
All tests must use these fixtures instead of creating raw dict configs.
"""

import logging
import pytest
from pathlib import Path
import tempfile
import shutil

from grasshift.schemas import ParamConfig, UserConfig, resolve_config
from grasshift.setup_directories import setup_output_directories

from tests.helpers.fake_series import make_cover_series, make_mask, make_terrain


# =============================================================================
# Configuration Fixtures (Pydantic-based)
# =============================================================================

@pytest.fixture
def param_config():
    """Expert configuration with all defaults.

    Use this as the base for all test configs. Override specific values
    using user_config or by creating custom UserConfig instances.
    """
    return ParamConfig()


@pytest.fixture
def internal_config(param_config):
    """Fully validated runtime configuration (no overrides).

    Use this when tests don't care about specific config values and just
    need a valid InternalConfig to pass to constructors.

    Examples
    --------
    >>> def test_smoother_init(internal_config):
    ...     smoother = HoltSmoother(internal_config)
    ...     assert smoother.alpha == 0.25
    """
    return resolve_config(param_config, None, None)


@pytest.fixture
def make_config(param_config):
    """Factory fixture for creating custom test configs.

    Use this when you need to override specific values for a test.
    Returns a callable that accepts UserConfig-compatible kwargs.

    Examples
    --------
    >>> def test_custom_alpha(make_config):
    ...     config = make_config(alpha=0.5)
    ...     smoother = HoltSmoother(config)
    ...     assert smoother.alpha == 0.5
    """
    def _make(**user_overrides):
        """Create InternalConfig with user overrides."""
        if user_overrides:
            user = UserConfig(**user_overrides)
            return resolve_config(param_config, user, None)
        else:
            return resolve_config(param_config, None, None)

    return _make


@pytest.fixture
def small_config(make_config):
    """Config sized for the 6 x 8 synthetic series.

    Identity smoothing (alpha=1, beta=0) keeps the raw states, so the
    right half of the grid transitions exactly at the shift year.
    """
    return make_config(
        alpha=1.0,
        beta=0.0,
        n_clusters=2,
        sample_size=40,
        n_bins=4,
        periods=[(2000, 2004), (2005, 2009)],
        tile_shape=(6, 8),
        n_workers=1,
    )


# =============================================================================
# Data Fixtures
# =============================================================================

@pytest.fixture
def cover_series():
    """6 x 8 pixels, 2000-2009; the right half is invaded from 2004."""
    return make_cover_series()


@pytest.fixture
def stable_series():
    """6 x 8 pixels, 2000-2009; nothing ever changes."""
    return make_cover_series(shift_year=None)


@pytest.fixture
def full_mask(cover_series):
    return make_mask(cover_series)


@pytest.fixture
def terrain(cover_series):
    """North-facing (aspect 0) terrain with a 10 degree slope everywhere."""
    return make_terrain(cover_series)


# =============================================================================
# Directory Fixtures
# =============================================================================

@pytest.fixture
def temp_dir():
    """Temporary directory that is cleaned up after test."""
    d = tempfile.mkdtemp()
    yield Path(d)
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def output_dirs(temp_dir):
    """Standard grasshift output directory structure.

    Returns dict with keys: base, rasters, tracking, config, logs
    All directories are created and cleaned up automatically.
    """
    return setup_output_directories(temp_dir)


@pytest.fixture
def restore_root_logging():
    """The orchestrator reconfigures the root logger when writing outputs."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            handler.close()
            root.removeHandler(handler)
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
