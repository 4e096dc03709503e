"""
Directory setup for the transition-year pipeline.

One flat directory per output kind under the base directory. File names
carry the run name so several runs can share a base directory.
"""

from pathlib import Path
from datetime import datetime, timezone


def setup_output_directories(base_output_dir=None):
    """
    Set up organized output directory structure.

    Parameters
    ----------
    base_output_dir : str or Path, optional
        Base output directory. If None, ``./output`` in the current
        working directory.

    Returns
    -------
    dict
        Dictionary with paths: 'base', 'rasters', 'tracking', 'config', 'logs'
    """
    if base_output_dir is None:
        base_output_dir = Path.cwd() / "output"

    base_output_dir = Path(base_output_dir).expanduser().resolve()

    directories = {
        "base": base_output_dir,
        "rasters": base_output_dir / "rasters",
        "tracking": base_output_dir / "tracking",
        "config": base_output_dir / "config",
        "logs": base_output_dir / "logs",
    }

    for path in directories.values():
        path.mkdir(parents=True, exist_ok=True)

    return directories


def get_raster_path(output_dirs, run_name, product):
    """
    Get NetCDF path for a raster product.

    Parameters
    ----------
    output_dirs : dict
        Output directories from setup_output_directories()
    run_name : str
        Pipeline run name
    product : str
        Product name: 'labels', 'indicators' or 'transition'

    Returns
    -------
    Path
        Full path: rasters/{run_name}_{product}.nc

    Example
    -------
    >>> get_raster_path(dirs, 'great_basin', 'transition')
    Path('output/rasters/great_basin_transition.nc')
    """
    raster_dir = Path(output_dirs["rasters"])
    raster_dir.mkdir(parents=True, exist_ok=True)
    return raster_dir / f"{run_name}_{product}.nc"


def get_tracker_path(output_dirs, run_name):
    """Get SQLite tile tracker path: tracking/{run_name}_tiles.db"""
    tracking_dir = Path(output_dirs["tracking"])
    tracking_dir.mkdir(parents=True, exist_ok=True)
    return tracking_dir / f"{run_name}_tiles.db"


def get_log_path(output_dirs, run_name=None):
    """
    Get organized log file path.

    Parameters
    ----------
    output_dirs : dict
        Output directories from setup_output_directories()
    run_name : str, optional
        Pipeline run name

    Returns
    -------
    Path
        Full path to log file
    """
    log_dir = Path(output_dirs["logs"])
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")

    if run_name:
        filename = f"pipeline_{run_name}_{timestamp}.log"
    else:
        filename = "pipeline_latest.log"

    return log_dir / filename
