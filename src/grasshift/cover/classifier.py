"""K-means vegetation-state classifier.

``CoverClusterer.fit`` trains k-means once on the raw training sample and
returns an immutable ``ClusterModel``. The model is then applied to the
smoothed series, pixel-year by pixel-year, by nearest-centroid assignment.
Which centroid is the exotic-annual-grass state is decided after fitting,
from the centroids themselves.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, TYPE_CHECKING

import numpy as np
import pandas as pd
import xarray as xr
from scipy.spatial.distance import cdist
from sklearn.cluster import KMeans

from grasshift.contracts import (
    DataShapeError,
    InsufficientSampleError,
    ModelNotFittedError,
    assert_cover_series,
    assert_labeled,
    assert_mask,
    require,
)
from grasshift.contracts.labels import LABEL_VAR
from grasshift.core.grid import Grid, YEAR_DIM, Y_DIM, X_DIM

if TYPE_CHECKING:
    from grasshift.schemas import InternalConfig

__all__ = ['ClusterModel', 'CoverClusterer', 'select_target', 'LABEL_VAR']

logger = logging.getLogger(__name__)

NODATA_LABEL = -1


@dataclass(frozen=True)
class ClusterModel:
    """Fitted k-means centroids and the chosen target state.

    Immutable once built; ``predict`` is a pure function and may be shared by
    any number of tile workers.
    """

    centroids: np.ndarray
    bands: Tuple[str, ...]
    target_label: int
    inertia: float = float("nan")
    n_iter: int = 0

    def __post_init__(self):
        centroids = np.array(self.centroids, dtype=np.float64)
        require(centroids.ndim == 2 and centroids.shape[1] == len(self.bands),
                f"Centroids shape {centroids.shape} does not match {len(self.bands)} bands",
                DataShapeError)
        require(0 <= self.target_label < centroids.shape[0],
                f"target_label {self.target_label} outside [0, {centroids.shape[0]})")
        centroids.setflags(write=False)
        object.__setattr__(self, "centroids", centroids)
        object.__setattr__(self, "bands", tuple(self.bands))

    @property
    def n_clusters(self) -> int:
        return self.centroids.shape[0]

    def predict(self, vectors) -> np.ndarray:
        """Nearest-centroid label of each row of ``vectors``.

        Ties go to the lowest cluster index. Rows with any non-finite value
        get ``-1``.
        """
        vectors = np.asarray(vectors, dtype=np.float64)
        require(vectors.ndim == 2 and vectors.shape[1] == len(self.bands),
                f"Expected vectors of shape (n, {len(self.bands)}), got {vectors.shape}",
                DataShapeError)

        labels = np.full(vectors.shape[0], NODATA_LABEL, dtype=np.int16)
        finite = np.all(np.isfinite(vectors), axis=1)
        if finite.any():
            distances = cdist(vectors[finite], self.centroids, metric="euclidean")
            labels[finite] = np.argmin(distances, axis=1)
        return labels


def select_target(centroids: np.ndarray, bands: Sequence[str], selection: str,
                  annual_grass_band: str, target_label: Optional[int] = None) -> int:
    """Choose the centroid that represents annual-grass dominance.

    ``"max_band"`` picks the centroid with the highest annual-grass cover
    (lowest index on ties). ``"fixed"`` returns ``target_label``.
    """
    if selection == "fixed":
        require(target_label is not None and 0 <= target_label < len(centroids),
                f"Fixed target_label {target_label} outside [0, {len(centroids)})")
        return int(target_label)

    band_idx = list(bands).index(annual_grass_band)
    return int(np.argmax(np.asarray(centroids)[:, band_idx]))


class CoverClusterer:
    """Fit and apply the k-means vegetation-state model."""

    def __init__(self, config: "InternalConfig"):
        """Store classifier parameters.

        Parameters
        ----------
        config : InternalConfig
            Fully validated runtime configuration.
        """
        self.n_clusters = config.classifier.n_clusters
        self.max_iter = config.classifier.max_iter
        self.seed = config.classifier.seed
        self.target_selection = config.classifier.target_selection
        self.target_label = config.classifier.target_label
        self.bands = list(config.global_.var_names.bands)
        self.annual_grass_band = config.global_.var_names.annual_grass_band

        logger.info("CoverClusterer initialized: k=%d, max_iter=%d, target=%s",
                    self.n_clusters, self.max_iter, self.target_selection)

    def fit(self, sample: pd.DataFrame) -> ClusterModel:
        """Run k-means on the training sample.

        Lloyd iterations from a single k-means++ start stop at the earlier
        of ``max_iter`` or an iteration with no assignment change.

        Raises
        ------
        DataShapeError
            If a band column is missing or a vector is not finite.
        InsufficientSampleError
            If the sample has fewer rows than clusters.
        """
        missing = [band for band in self.bands if band not in sample.columns]
        require(not missing, f"Training sample is missing band columns {missing}", DataShapeError)

        X = sample[self.bands].to_numpy(dtype=np.float64)
        require(bool(np.all(np.isfinite(X))),
                "Training sample contains non-finite band values", DataShapeError)
        if X.shape[0] < self.n_clusters:
            raise InsufficientSampleError(
                f"{X.shape[0]} samples cannot support {self.n_clusters} clusters"
            )

        km = KMeans(
            n_clusters=self.n_clusters,
            init="k-means++",
            n_init=1,
            max_iter=self.max_iter,
            tol=0.0,
            algorithm="lloyd",
            random_state=self.seed,
        ).fit(X)

        target = select_target(km.cluster_centers_, self.bands, self.target_selection,
                               self.annual_grass_band, self.target_label)
        model = ClusterModel(
            centroids=km.cluster_centers_,
            bands=tuple(self.bands),
            target_label=target,
            inertia=float(km.inertia_),
            n_iter=int(km.n_iter_),
        )

        logger.info("K-means fit on %d samples: inertia=%.3f, n_iter=%d, target_label=%d",
                    X.shape[0], model.inertia, model.n_iter, target)
        logger.debug("Centroids (%s):\n%s", ", ".join(self.bands), model.centroids)
        return model

    def classify(self, model: Optional[ClusterModel], ds: xr.Dataset,
                 analysis_mask: Optional[xr.DataArray] = None) -> xr.Dataset:
        """Label every pixel-year of a smoothed series.

        Returns
        -------
        xr.Dataset
            ``cluster_label`` (int16) on ``(year, y, x)``; ``-1`` outside
            the mask and where any band is nodata.

        Raises
        ------
        ModelNotFittedError
            If ``model`` is not a fitted ``ClusterModel``.
        DataShapeError
            If the series or mask is malformed.
        """
        if not isinstance(model, ClusterModel):
            raise ModelNotFittedError("classify() requires a fitted ClusterModel; call fit() first")

        bands = list(model.bands)
        assert_cover_series(ds, bands, check_values=False)
        grid = Grid.from_dataset(ds)

        n_years = ds.sizes[YEAR_DIM]
        stack = np.stack([np.asarray(ds[band].values) for band in bands], axis=-1)
        labels = model.predict(stack.reshape(-1, len(bands)))
        labels = labels.reshape(n_years, *grid.shape)

        if analysis_mask is not None:
            assert_mask(analysis_mask, grid)
            labels[:, ~analysis_mask.values] = NODATA_LABEL

        out = xr.Dataset(
            {LABEL_VAR: ((YEAR_DIM, Y_DIM, X_DIM), labels,
                         {"n_clusters": model.n_clusters,
                          "target_label": model.target_label,
                          "nodata": NODATA_LABEL})},
            coords={YEAR_DIM: ds[YEAR_DIM].values, **grid.coords()},
            attrs={**ds.attrs, **grid.attrs()},
        )
        assert_labeled(out, model.n_clusters)

        logger.debug("Classified %d pixel-years (%d nodata)",
                     labels.size, int((labels == NODATA_LABEL).sum()))
        return out
