"""Core transition pipeline execution logic.

This module contains the actual pipeline runner, separated from argument parsing.
Scripts are thin wrappers; this is the real implementation.
"""

import json
import shutil
import logging
import importlib.util
from pathlib import Path
from typing import Optional, Dict, Any

import numpy as np
import xarray as xr

from grasshift.setup_directories import setup_output_directories
from grasshift.core.grid import YEAR_DIM, Y_DIM, X_DIM
from grasshift.cover.zones import load_zones_geojson
from grasshift.pipeline.orchestrator import PipelineOrchestrator, PipelineResult
from grasshift.schemas import resolve_config, ParamConfig, UserConfig, CLIConfig, InternalConfig


logger = logging.getLogger(__name__)


def load_user_config_dict(config_path: str) -> dict:
    """Load user config dict from Python file.

    Returns the raw dict before Pydantic validation.

    Parameters
    ----------
    config_path : str
        Path to user config Python file containing CONFIG dict.

    Returns
    -------
    dict
        Raw user configuration dictionary.

    Raises
    ------
    FileNotFoundError
        If config file does not exist.
    ValueError
        If no CONFIG dict found in file.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")

    spec = importlib.util.spec_from_file_location("config_module", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    for name in dir(module):
        if name.startswith('CONFIG'):
            obj = getattr(module, name)
            if isinstance(obj, dict):
                return obj

    raise ValueError(f"No CONFIG dict found in {path}")


def normalize_raster(obj, config: InternalConfig):
    """Rename input coordinates to ``year``/``y``/``x`` and pick up the CRS.

    A CF ``spatial_ref`` variable (as written by rioxarray) supplies the
    CRS when ``attrs['crs']`` is absent.
    """
    names = config.global_.coord_names
    rename = {src: dst for src, dst in ((names.year, YEAR_DIM), (names.y, Y_DIM), (names.x, X_DIM))
              if src != dst and (src in obj.dims or src in obj.coords)}
    if rename:
        obj = obj.rename(rename)

    # time-stamped epochs -> integer years
    if YEAR_DIM in obj.coords and np.issubdtype(obj[YEAR_DIM].dtype, np.datetime64):
        obj = obj.assign_coords({YEAR_DIM: obj[YEAR_DIM].dt.year.values})

    if "crs" not in obj.attrs and "spatial_ref" in obj.coords:
        wkt = obj["spatial_ref"].attrs.get("crs_wkt")
        if wkt:
            obj = obj.assign_attrs(crs=wkt)
    return obj


def load_inputs(config: InternalConfig, series_path: str, mask_path: Optional[str] = None,
                terrain_path: Optional[str] = None, zones_path: Optional[str] = None,
                zone_id_property: str = "name", study_area_path: Optional[str] = None) -> dict:
    """Open every input raster and vector for ``PipelineOrchestrator.run``.

    The analysis mask is read from ``mask_path`` or, when absent, from the
    series file itself if it holds the configured mask variable.
    """
    var_names = config.global_.var_names

    series = normalize_raster(xr.open_dataset(series_path), config)
    logger.info("Loaded series: %s (%d years)", Path(series_path).name, series.sizes[YEAR_DIM])

    mask = None
    mask_source = normalize_raster(xr.open_dataset(mask_path), config) if mask_path else series
    if var_names.analysis_mask in mask_source.data_vars:
        mask = mask_source[var_names.analysis_mask].fillna(0).astype(bool)
        mask = mask.assign_attrs(**series.attrs)
        logger.info("Analysis mask: %d of %d pixels", int(mask.sum()), mask.size)
    elif mask_path:
        raise ValueError(f"'{var_names.analysis_mask}' not found in {mask_path}")

    terrain = None
    if terrain_path:
        terrain = normalize_raster(xr.open_dataset(terrain_path), config)
        terrain = terrain[[var_names.aspect, var_names.slope]]

    zones = load_zones_geojson(zones_path, zone_id_property) if zones_path else []

    study_area = None
    if study_area_path:
        areas = load_zones_geojson(study_area_path, zone_id_property)
        study_area = areas[0].geometry
        for area in areas[1:]:
            study_area = study_area.union(area.geometry)

    return {
        "series": series,
        "analysis_mask": mask,
        "terrain": terrain,
        "zones": zones,
        "study_area": study_area,
    }


def _persist_runtime_config(config: InternalConfig, output_dirs: Dict[str, Path]) -> Path:
    """Save the resolved configuration next to the outputs for reproducibility."""
    path = Path(output_dirs["config"]) / f"{config.global_.run_name}_runtime_config.json"
    with open(path, "w") as f:
        json.dump(config.model_dump(mode="json", by_alias=True), f, indent=2)
    return path


def run_transition_pipeline(
    user_config_path: str,
    series_path: str,
    mask_path: Optional[str] = None,
    terrain_path: Optional[str] = None,
    zones_path: Optional[str] = None,
    zone_id_property: str = "name",
    study_area_path: Optional[str] = None,
    cli_args: Optional[Dict[str, Any]] = None,
    rerun: bool = False,
    verbose: bool = False
) -> PipelineResult:
    """Execute the transition-year pipeline.

    This is the core pipeline execution function. It:
    1. Loads and resolves configuration (Param < User < CLI)
    2. Sets up output directories
    3. Optionally cleans directories if rerun=True
    4. Opens the input rasters and zone polygons
    5. Runs the orchestrator to completion

    Parameters
    ----------
    user_config_path : str
        Path to user config file (Python file with CONFIG dict).

    series_path : str
        NetCDF cover series with one variable per band.

    mask_path, terrain_path : str, optional
        NetCDF analysis mask and terrain (aspect, slope in degrees).

    zones_path, study_area_path : str, optional
        GeoJSON FeatureCollections of aggregation zones and of the
        sampling region.

    zone_id_property : str, optional
        Feature property naming each zone.

    cli_args : dict, optional
        CLI argument overrides. Keys: base_dir, run_name, n_workers,
        log_level. All optional.

    rerun : bool, optional
        If True, delete output directories before running.

    verbose : bool, optional
        If True, enable DEBUG logging and print full resolved config.

    Returns
    -------
    PipelineResult

    Raises
    ------
    FileNotFoundError
        If a config or input file does not exist.
    ValueError
        If configuration validation fails or inputs are malformed.

    Examples
    --------
    Run with CLI overrides::

        run_transition_pipeline(
            "config/my_config.py",
            "data/rap_cover.nc",
            terrain_path="data/terrain.nc",
            zones_path="data/ecoregions.geojson",
            cli_args={"n_workers": 8},
        )
    """
    param_cfg = ParamConfig()

    user_cfg_dict = load_user_config_dict(user_config_path)
    user_cfg = UserConfig.model_validate(user_cfg_dict)

    cli_args = dict(cli_args or {})
    if verbose and "log_level" not in cli_args:
        cli_args["log_level"] = "DEBUG"

    cli_dict = {k: v for k, v in cli_args.items() if v is not None}
    cli_cfg = CLIConfig.model_validate(cli_dict) if cli_dict else CLIConfig()

    config = resolve_config(param_cfg, user_cfg, cli_cfg)

    if rerun and config.base_dir:
        base_dir_path = Path(config.base_dir)
        if base_dir_path.exists():
            print(f"Cleaning output directory: {base_dir_path}")
            shutil.rmtree(base_dir_path)
            print("Output directory cleaned")

    output_dirs = setup_output_directories(config.base_dir)
    config_path = _persist_runtime_config(config, output_dirs)

    print(f"\n{'='*60}")
    print("grasshift Transition Pipeline")
    print('='*60)
    print(f"Config: {user_config_path}")
    print(f"Series: {series_path}")
    print(f"Run:    {config.global_.run_name}")
    print(f"Output: {output_dirs['base']}")
    print('='*60)

    if verbose:
        print("\nFull Internal Configuration:")
        print(json.dumps(config.model_dump(mode="json", by_alias=True), indent=2))
        print('='*60)

    inputs = load_inputs(config, series_path, mask_path, terrain_path,
                         zones_path, zone_id_property, study_area_path)

    orchestrator = PipelineOrchestrator(config, output_dirs)
    result = orchestrator.run(**inputs)
    logger.info("Runtime config: %s", config_path)
    return result
