"""Test Holt smoothing of cover time series."""

import pytest
import numpy as np
import xarray as xr

from grasshift.contracts import DataShapeError
from grasshift.cover.smoother import HoltSmoother, HoltState, holt_init, holt_step, smooth_sequence

from tests.helpers.fake_series import BANDS, make_cover_series

pytestmark = pytest.mark.unit


class TestHoltStep:
    """Test the pure one-year update."""

    def test_hand_computed_sequence(self):
        """[10, 20, 30] with alpha=0.25, beta=0.01."""
        out = smooth_sequence(np.array([10.0, 20.0, 30.0]), alpha=0.25, beta=0.01)

        assert out[0] == pytest.approx(10.0)
        assert out[1] == pytest.approx(12.5)
        # trend after year 1 is 0.01 * 2.5 = 0.025
        assert out[2] == pytest.approx(0.25 * 30 + 0.75 * (12.5 + 0.025), rel=1e-6)

    def test_scalar_and_array_agree(self):
        state, _ = holt_init(np.array([10.0, 40.0]))
        state, out = holt_step(state, np.array([20.0, 0.0]), 0.5, 0.1)

        s_state, _ = holt_init(10.0)
        _, s_out = holt_step(s_state, 20.0, 0.5, 0.1)

        assert out[0] == pytest.approx(float(s_out))

    def test_negative_level_is_clamped(self):
        """A steep downward trend cannot drive the level below zero."""
        state = HoltState(np.float32(1.0), np.float32(-50.0))
        state, out = holt_step(state, 0.0, 0.25, 0.5)

        assert out == 0.0
        assert state.level == 0.0

    def test_nan_propagates(self):
        state, _ = holt_init(np.array([10.0, 10.0]))
        _, out = holt_step(state, np.array([np.nan, 20.0]), 0.25, 0.01)

        assert np.isnan(out[0])
        assert out[1] == pytest.approx(12.5)

    def test_nan_year_keeps_state(self):
        """A missing year leaves the state untouched for the next one."""
        state, _ = holt_init(np.array([10.0]))
        state, out = holt_step(state, np.array([20.0]), 0.25, 0.01)
        gap_state, gap_out = holt_step(state, np.array([np.nan]), 0.25, 0.01)

        assert np.isnan(gap_out[0])
        assert gap_state.level[0] == pytest.approx(state.level[0])
        assert gap_state.trend[0] == pytest.approx(state.trend[0])

    def test_sequence_resumes_after_gap(self):
        out = smooth_sequence(np.array([10.0, 20.0, np.nan, 30.0]), alpha=0.25, beta=0.01)

        assert np.isnan(out[2])
        # year 3 continues from year 1's level and trend
        assert out[3] == pytest.approx(0.25 * 30 + 0.75 * (12.5 + 0.025), rel=1e-6)

    def test_leading_nan_starts_on_first_valid_year(self):
        out = smooth_sequence(np.array([np.nan, np.nan, 40.0, 40.0]), alpha=0.25, beta=0.01)

        assert np.isnan(out[:2]).all()
        np.testing.assert_allclose(out[2:], [40.0, 40.0])

    def test_alpha_one_beta_zero_is_identity(self):
        values = np.array([3.0, 50.0, 0.0, 7.5, 100.0])
        out = smooth_sequence(values, alpha=1.0, beta=0.0)

        np.testing.assert_allclose(out, values)

    def test_float32_output(self):
        out = smooth_sequence(np.arange(4, dtype=np.float64), 0.25, 0.01)
        assert out.dtype == np.float32


class TestHoltSmoother:
    """Test the config-driven smoother on datasets."""

    def test_init_reads_config(self, internal_config):
        smoother = HoltSmoother(internal_config)

        assert smoother.alpha == 0.25
        assert smoother.beta == 0.01
        assert smoother.bands == list(BANDS)

    def test_output_shape_and_non_negative(self, internal_config, cover_series):
        out = HoltSmoother(internal_config).smooth(cover_series)

        for band in BANDS:
            assert out[band].dims == ("year", "y", "x")
            assert out[band].shape == cover_series[band].shape
            assert float(out[band].min()) >= 0
        np.testing.assert_array_equal(out["year"].values, cover_series["year"].values)

    def test_first_year_equals_raw(self, internal_config, cover_series):
        out = HoltSmoother(internal_config).smooth(cover_series)

        np.testing.assert_allclose(out["afg"].isel(year=0).values,
                                   cover_series["afg"].isel(year=0).values)

    def test_single_year_series_is_unchanged(self, internal_config):
        ds = make_cover_series(years=[2010], shift_year=None)
        out = HoltSmoother(internal_config).smooth(ds)

        for band in BANDS:
            np.testing.assert_allclose(out[band].values, ds[band].values)

    def test_input_not_mutated(self, internal_config, cover_series):
        before = cover_series["afg"].values.copy()
        HoltSmoother(internal_config).smooth(cover_series)

        np.testing.assert_array_equal(cover_series["afg"].values, before)

    def test_provenance_attrs(self, make_config, cover_series):
        out = HoltSmoother(make_config(alpha=0.5, beta=0.2)).smooth(cover_series)

        assert out["afg"].attrs["method"] == "holt"
        assert out["afg"].attrs["alpha"] == 0.5
        assert out["afg"].attrs["beta"] == 0.2

    def test_non_increasing_years_rejected(self, internal_config, cover_series):
        years = cover_series["year"].values.copy()
        years[3] = years[2]
        bad = cover_series.assign_coords(year=years)

        with pytest.raises(DataShapeError, match="strictly increasing"):
            HoltSmoother(internal_config).smooth(bad)

    def test_missing_band_rejected(self, internal_config, cover_series):
        with pytest.raises(DataShapeError, match="missing band 'bgr'"):
            HoltSmoother(internal_config).smooth(cover_series.drop_vars("bgr"))

    def test_year_gaps_are_tolerated(self, internal_config):
        ds = make_cover_series(years=[2000, 2001, 2005, 2010])
        out = HoltSmoother(internal_config).smooth(ds)

        assert out.sizes["year"] == 4

    def test_nodata_pixel_stays_nan(self, internal_config, cover_series):
        ds = cover_series.copy(deep=True)
        ds["afg"][:, 0, 0] = np.nan
        out = HoltSmoother(internal_config).smooth(ds)

        assert bool(np.all(np.isnan(out["afg"].values[:, 0, 0])))
        assert not np.isnan(out["afg"].values[:, 1, 1]).any()

    def test_single_missing_year_does_not_spread(self, internal_config, cover_series):
        ds = cover_series.copy(deep=True)
        ds["afg"][2, 0, 0] = np.nan
        out = HoltSmoother(internal_config).smooth(ds)
        pixel = out["afg"].values[:, 0, 0]

        assert np.isnan(pixel[2])
        assert np.isfinite(np.delete(pixel, 2)).all()
        assert (np.delete(pixel, 2) >= 0).all()
