import numpy as np
import xarray as xr

BANDS = ("afg", "pfg", "shr", "tre", "ltr", "bgr")

# mixed perennial vegetation vs annual-grass dominated cover
BASELINE = np.array([5.0, 30.0, 25.0, 2.0, 15.0, 23.0])
INVADED = np.array([60.0, 5.0, 5.0, 0.0, 20.0, 10.0])

RES = 30.0
CRS = "EPSG:32611"


def make_coords(shape, res=RES, origin=(4_000_000.0, 500_000.0)):
    """North-up pixel-centre coordinates."""
    top, left = origin
    y = top - res * (np.arange(shape[0]) + 0.5)
    x = left + res * (np.arange(shape[1]) + 0.5)
    return y, x


def make_cover_series(
    years=range(2000, 2010),
    shape=(6, 8),
    shift_year=2004,
    noise=0.5,
    seed=0,
    crs=CRS,
):
    """
    Create a cover series in which the right half of the grid switches
    from the baseline to the invaded state at ``shift_year`` and stays.
    Pass ``shift_year=None`` for a series that never changes.
    """
    years = np.asarray(list(years))
    rng = np.random.default_rng(seed)
    y, x = make_coords(shape)

    invaded = np.zeros((years.size,) + tuple(shape), dtype=bool)
    if shift_year is not None:
        invaded[years >= shift_year, :, shape[1] // 2:] = True

    data_vars = {}
    for i, band in enumerate(BANDS):
        values = np.where(invaded, INVADED[i], BASELINE[i])
        values = values + rng.uniform(0, noise, size=values.shape)
        data_vars[band] = (("year", "y", "x"), values.astype(np.float32))

    attrs = {"res": [-RES, RES]}
    if crs is not None:
        attrs["crs"] = crs
    return xr.Dataset(data_vars, coords={"year": years, "y": y, "x": x}, attrs=attrs)


def make_mask(series, cols=None):
    """Boolean analysis mask; only the given column slice is True."""
    shape = (series.sizes["y"], series.sizes["x"])
    values = np.ones(shape, dtype=bool)
    if cols is not None:
        values[:] = False
        values[:, cols] = True
    return xr.DataArray(values, dims=("y", "x"),
                        coords={"y": series["y"].values, "x": series["x"].values},
                        attrs=dict(series.attrs))


def make_terrain(series, aspect=0.0, slope=10.0):
    """Terrain with constant or per-pixel aspect and slope (degrees)."""
    shape = (series.sizes["y"], series.sizes["x"])
    aspect = np.broadcast_to(np.asarray(aspect, dtype=np.float64), shape).copy()
    slope = np.broadcast_to(np.asarray(slope, dtype=np.float64), shape).copy()
    return xr.Dataset(
        {"aspect": (("y", "x"), aspect), "slope": (("y", "x"), slope)},
        coords={"y": series["y"].values, "x": series["x"].values},
        attrs=dict(series.attrs),
    )


def make_labels(values, years=None, target_label=0):
    """Wrap a (year, y, x) integer array as a label raster."""
    values = np.asarray(values, dtype=np.int16)
    n_years, ny, nx = values.shape
    years = np.arange(2000, 2000 + n_years) if years is None else np.asarray(years)
    y, x = make_coords((ny, nx))
    return xr.Dataset(
        {"cluster_label": (("year", "y", "x"), values, {"target_label": target_label})},
        coords={"year": years, "y": y, "x": x},
        attrs={"res": [-RES, RES], "crs": CRS},
    )
