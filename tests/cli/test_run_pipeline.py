import json

import pytest
import numpy as np
import pandas as pd
import xarray as xr
from shapely.geometry import box, mapping

from grasshift.cli.run_pipeline import (
    load_inputs,
    load_user_config_dict,
    normalize_raster,
    run_transition_pipeline,
)
from grasshift.schemas import ParamConfig, resolve_config

from tests.helpers.fake_series import CRS, make_cover_series, make_mask

pytestmark = pytest.mark.pipeline

CONFIG_TEXT = """
CONFIG = {
    "RUN_NAME": "cli_test",
    "ALPHA": 1,
    "BETA": 0,
    "N_CLUSTERS": 2,
    "SAMPLE_SIZE": 40,
    "N_BINS": 4,
    "PERIODS": [(2000, 2004), (2005, 2009)],
    "TILE_SHAPE": (3, 4),
    "N_WORKERS": 2,
}
"""


def _geojson(path, features, crs=CRS):
    collection = {
        "type": "FeatureCollection",
        "crs": {"type": "name", "properties": {"name": crs}},
        "features": [{"type": "Feature", "properties": {"name": name},
                      "geometry": mapping(geom)} for name, geom in features],
    }
    path.write_text(json.dumps(collection))
    return path


@pytest.fixture
def inputs(tmp_path, cover_series, terrain):
    series = cover_series.copy()
    series["analysis_mask"] = make_mask(cover_series, cols=slice(0, 6))
    series_path = tmp_path / "series.nc"
    series.to_netcdf(series_path)

    terrain_path = tmp_path / "terrain.nc"
    terrain.to_netcdf(terrain_path)

    y, x = cover_series["y"].values, cover_series["x"].values
    zones_path = _geojson(tmp_path / "zones.geojson", [
        ("west", box(x[0] - 15, y[-1] - 15, x[3] + 15, y[0] + 15)),
        ("east", box(x[4] - 15, y[-1] - 15, x[7] + 15, y[0] + 15)),
    ])

    config_path = tmp_path / "user_config.py"
    config_path.write_text(CONFIG_TEXT)

    return {"config": config_path, "series": series_path,
            "terrain": terrain_path, "zones": zones_path}


def test_load_user_config_dict(inputs):
    config = load_user_config_dict(inputs["config"])
    assert config["RUN_NAME"] == "cli_test"


def test_load_user_config_dict_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_user_config_dict(tmp_path / "nope.py")


def test_load_user_config_dict_without_config(tmp_path):
    path = tmp_path / "empty.py"
    path.write_text("SETTINGS = {}\n")
    with pytest.raises(ValueError, match="No CONFIG dict"):
        load_user_config_dict(path)


def test_normalize_raster_renames_and_converts_years(cover_series):
    config = resolve_config(
        ParamConfig(**{"global": {"coord_names": {"year": "time", "y": "lat", "x": "lon"}}}))
    raw = cover_series.rename({"year": "time", "y": "lat", "x": "lon"})
    raw = raw.assign_coords(time=pd.to_datetime([f"{y}-07-01" for y in cover_series["year"].values]))
    raw.attrs = {"res": [-30.0, 30.0]}
    raw = raw.assign_coords(spatial_ref=xr.DataArray(0, attrs={"crs_wkt": "WKT_PLACEHOLDER"}))

    ds = normalize_raster(raw, config)

    assert ds["afg"].dims == ("year", "y", "x")
    np.testing.assert_array_equal(ds["year"].values, cover_series["year"].values)
    assert ds.attrs["crs"] == "WKT_PLACEHOLDER"


def test_load_inputs(inputs, internal_config):
    loaded = load_inputs(internal_config, inputs["series"], terrain_path=inputs["terrain"],
                         zones_path=inputs["zones"], study_area_path=inputs["zones"])

    assert loaded["analysis_mask"].dtype == bool
    assert int(loaded["analysis_mask"].sum()) == 36
    assert set(loaded["terrain"].data_vars) == {"aspect", "slope"}
    assert [z.zone_id for z in loaded["zones"]] == ["west", "east"]
    assert loaded["study_area"].area == pytest.approx(240 * 180)


def test_missing_mask_variable(inputs, internal_config, tmp_path):
    other = tmp_path / "mask.nc"
    xr.Dataset({"rangeland": make_mask(make_cover_series())}).to_netcdf(other)

    with pytest.raises(ValueError, match="'analysis_mask' not found"):
        load_inputs(internal_config, inputs["series"], mask_path=other)


def test_run_transition_pipeline(inputs, tmp_path, restore_root_logging):
    out = tmp_path / "out"
    result = run_transition_pipeline(
        str(inputs["config"]),
        str(inputs["series"]),
        terrain_path=str(inputs["terrain"]),
        zones_path=str(inputs["zones"]),
        cli_args={"base_dir": str(out), "n_workers": None},
    )

    assert result.complete
    first = result.transition["first_transition_year"].values
    assert (first[:, 4:6] == 2004).all()
    assert (first[:, 6:] == -1).all()
    assert set(result.zonal["zone_id"]) == {"west", "east"}

    assert (out / "rasters" / "cli_test_transition.nc").exists()
    runtime = json.loads((out / "config" / "cli_test_runtime_config.json").read_text())
    assert runtime["global"]["run_name"] == "cli_test"
    assert runtime["tiling"]["n_workers"] == 2


def test_rerun_cleans_base_dir(inputs, tmp_path, restore_root_logging):
    out = tmp_path / "out"
    stale = out / "rasters" / "stale.nc"
    stale.parent.mkdir(parents=True)
    stale.write_text("old")

    run_transition_pipeline(str(inputs["config"]), str(inputs["series"]),
                            cli_args={"base_dir": str(out)}, rerun=True)

    assert not stale.exists()
