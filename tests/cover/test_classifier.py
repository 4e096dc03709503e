"""Test k-means fitting and nearest-centroid classification."""

import pytest
import numpy as np
import pandas as pd

from grasshift.contracts import (
    ContractViolation,
    DataShapeError,
    InsufficientSampleError,
    ModelNotFittedError,
)
from grasshift.cover.classifier import ClusterModel, CoverClusterer, select_target
from grasshift.cover.sampler import TrainingSampler

from tests.helpers.fake_series import BANDS, INVADED, make_mask

pytestmark = pytest.mark.unit


@pytest.fixture
def sample(small_config, cover_series):
    return TrainingSampler(small_config).sample(cover_series)


@pytest.fixture
def model(small_config, sample):
    return CoverClusterer(small_config).fit(sample)


class TestClusterModel:
    """Test the immutable fitted model."""

    def test_tie_goes_to_lowest_index(self):
        m = ClusterModel(np.array([[0.0, 0.0], [2.0, 0.0]]), ("a", "b"), target_label=1)
        labels = m.predict(np.array([[1.0, 0.0], [1.9, 0.0], [0.1, 0.0]]))

        np.testing.assert_array_equal(labels, [0, 1, 0])

    def test_non_finite_vectors_are_nodata(self):
        m = ClusterModel(np.array([[0.0, 0.0], [2.0, 0.0]]), ("a", "b"), target_label=1)
        labels = m.predict(np.array([[np.nan, 0.0], [2.0, np.inf], [2.0, 0.0]]))

        np.testing.assert_array_equal(labels, [-1, -1, 1])
        assert labels.dtype == np.int16

    def test_centroids_are_read_only(self):
        m = ClusterModel([[0.0, 1.0], [1.0, 0.0]], ("a", "b"), target_label=0)

        with pytest.raises(ValueError):
            m.centroids[0, 0] = 5.0

    def test_target_out_of_range(self):
        with pytest.raises(ContractViolation, match="target_label 2"):
            ClusterModel(np.zeros((2, 2)), ("a", "b"), target_label=2)

    def test_band_count_mismatch(self):
        with pytest.raises(DataShapeError):
            ClusterModel(np.zeros((2, 3)), ("a", "b"), target_label=0)

    def test_wrong_vector_width(self):
        m = ClusterModel(np.zeros((2, 2)), ("a", "b"), target_label=0)

        with pytest.raises(DataShapeError):
            m.predict(np.zeros((4, 3)))


class TestSelectTarget:
    """Test choosing the annual-grass centroid."""

    def test_max_band(self):
        centroids = np.array([[5.0, 30.0], [60.0, 5.0], [20.0, 20.0]])
        assert select_target(centroids, ["afg", "pfg"], "max_band", "afg") == 1

    def test_max_band_uses_named_column(self):
        centroids = np.array([[5.0, 30.0], [60.0, 5.0]])
        assert select_target(centroids, ["pfg", "afg"], "max_band", "afg") == 0

    def test_fixed(self):
        centroids = np.array([[5.0, 30.0], [60.0, 5.0]])
        assert select_target(centroids, ["afg", "pfg"], "fixed", "afg", target_label=0) == 0


class TestCoverClusterer:
    """Test fitting and classifying with config-driven k-means."""

    def test_fit_finds_invaded_state(self, model):
        assert model.n_clusters == 2
        assert model.bands == BANDS
        target = model.centroids[model.target_label]
        np.testing.assert_allclose(target, INVADED, atol=1.0)
        assert model.n_iter >= 1
        assert np.isfinite(model.inertia)

    def test_fit_is_deterministic(self, small_config, sample):
        a = CoverClusterer(small_config).fit(sample)
        b = CoverClusterer(small_config).fit(sample)

        np.testing.assert_array_equal(a.centroids, b.centroids)
        assert a.target_label == b.target_label

    def test_fixed_target_label(self, make_config, sample):
        config = make_config(n_clusters=2, target_label=1)
        m = CoverClusterer(config).fit(sample)

        assert m.target_label == 1

    def test_fewer_samples_than_clusters(self, small_config, sample):
        with pytest.raises(InsufficientSampleError, match="cannot support 2 clusters"):
            CoverClusterer(small_config).fit(sample.head(1))

    def test_missing_band_column(self, small_config, sample):
        with pytest.raises(DataShapeError, match="missing band columns"):
            CoverClusterer(small_config).fit(sample.drop(columns=["ltr"]))

    def test_non_finite_sample(self, small_config, sample):
        bad = sample.copy()
        bad.loc[0, "afg"] = np.nan

        with pytest.raises(DataShapeError, match="non-finite"):
            CoverClusterer(small_config).fit(bad)

    def test_classify_before_fit(self, small_config, cover_series):
        with pytest.raises(ModelNotFittedError):
            CoverClusterer(small_config).classify(None, cover_series)

    def test_classify_labels_shift(self, small_config, model, cover_series):
        labels = CoverClusterer(small_config).classify(model, cover_series)["cluster_label"]
        target = model.target_label

        assert labels.dims == ("year", "y", "x")
        assert labels.dtype == np.int16
        assert (labels.sel(year=slice(2004, None)).values[:, :, 4:] == target).all()
        assert (labels.sel(year=slice(None, 2003)).values[:, :, 4:] != target).all()
        assert (labels.values[:, :, :4] != target).all()

    def test_classify_records_model(self, small_config, model, cover_series):
        labels = CoverClusterer(small_config).classify(model, cover_series)

        assert labels["cluster_label"].attrs["target_label"] == model.target_label
        assert labels["cluster_label"].attrs["n_clusters"] == 2
        assert labels.attrs["crs"] == cover_series.attrs["crs"]

    def test_classify_is_idempotent(self, small_config, model, cover_series):
        clusterer = CoverClusterer(small_config)
        a = clusterer.classify(model, cover_series)
        b = clusterer.classify(model, cover_series)

        np.testing.assert_array_equal(a["cluster_label"].values, b["cluster_label"].values)

    def test_mask_and_nodata_become_minus_one(self, small_config, model, cover_series):
        ds = cover_series.copy(deep=True)
        ds["bgr"][3, 5, 5] = np.nan
        mask = make_mask(cover_series, cols=slice(2, 8))

        labels = CoverClusterer(small_config).classify(model, ds, mask)["cluster_label"].values

        assert (labels[:, :, :2] == -1).all()
        assert labels[3, 5, 5] == -1
        assert (labels[:, :, 2:] >= 0).sum() == labels[:, :, 2:].size - 1

    def test_fit_sample_is_dataframe_of_raw_vectors(self, sample):
        assert isinstance(sample, pd.DataFrame)
        assert len(sample) == 40
