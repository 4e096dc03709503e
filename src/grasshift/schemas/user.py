"""UserConfig: Forgiving, minimal user-facing configuration.

This schema accepts user inputs with aliases for common naming patterns
(e.g., ALPHA → alpha, N_CLUSTERS → classifier.n_clusters).

UserConfig is intentionally minimal - users only specify what they want
to override from the expert defaults. Validation is lenient to accept
both uppercase and lowercase keys, integers where floats are expected, etc.
"""

from typing import Literal, Optional
from pydantic import Field, field_validator
from grasshift.schemas.base import GrassBaseModel


class UserSmoothingConfig(GrassBaseModel):
    """User-facing smoothing config."""
    alpha: Optional[float] = None
    beta: Optional[float] = None


class UserSamplerConfig(GrassBaseModel):
    """User-facing sampler config."""
    sample_size: Optional[int] = None
    seed: Optional[int] = None
    oversample_factor: Optional[float] = None
    strata_shape: Optional[tuple[int, int]] = None


class UserClassifierConfig(GrassBaseModel):
    """User-facing classifier config."""
    n_clusters: Optional[int] = None
    max_iter: Optional[int] = None
    seed: Optional[int] = None
    target_selection: Optional[str] = None
    target_label: Optional[int] = None

    @field_validator("target_selection", mode="before")
    @classmethod
    def normalize_selection(cls, v):
        """Normalize rule names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v


class UserHistogramConfig(GrassBaseModel):
    """User-facing histogram config."""
    n_bins: Optional[int] = None
    value_range: Optional[tuple[float, float]] = None
    min_slope: Optional[float] = None
    periods: Optional[list[tuple[int, int]]] = None


class UserTilingConfig(GrassBaseModel):
    """User-facing tiling config."""
    tile_shape: Optional[tuple[int, int]] = None
    n_workers: Optional[int] = None
    max_retries: Optional[int] = None
    failure_policy: Optional[Literal["fail_fast", "skip_tile"]] = None


class UserConfig(GrassBaseModel):
    """User-facing configuration schema.

    Minimal, forgiving, and uses common aliases. Users only specify
    what they want to override from ParamConfig defaults.

    Usage
    -----
        user_cfg = UserConfig(
            base_dir="/data/grasshift",
            alpha=0.3,
            n_clusters=6,
            periods=[(1990, 1999), (2000, 2009)],
        )

        internal = resolve_config(param_cfg, user_cfg, cli_cfg)
    """

    # Top-level operational settings
    base_dir: Optional[str] = Field(None, alias="BASE_DIR")
    run_name: Optional[str] = Field(None, alias="RUN_NAME")

    # Input naming (flat aliases)
    bands: Optional[list[str]] = Field(None, alias="BANDS")
    annual_grass_band: Optional[str] = Field(None, alias="ANNUAL_GRASS_BAND")
    mask_var: Optional[str] = Field(None, alias="MASK_VAR")

    # Smoothing (flat aliases)
    alpha: Optional[float] = Field(None, alias="ALPHA")
    beta: Optional[float] = Field(None, alias="BETA")

    # Sampling (flat aliases)
    sample_size: Optional[int] = Field(None, alias="SAMPLE_SIZE")
    sample_seed: Optional[int] = Field(None, alias="SAMPLE_SEED")

    # Clustering (flat aliases)
    n_clusters: Optional[int] = Field(None, alias="N_CLUSTERS")
    max_iter: Optional[int] = Field(None, alias="MAX_ITER")
    cluster_seed: Optional[int] = Field(None, alias="CLUSTER_SEED")
    target_label: Optional[int] = Field(None, alias="TARGET_LABEL")

    # Aggregation (flat aliases)
    area_units: Optional[Literal["m2", "ha", "km2"]] = Field(None, alias="AREA_UNITS")
    n_bins: Optional[int] = Field(None, alias="N_BINS")
    min_slope: Optional[float] = Field(None, alias="MIN_SLOPE")
    periods: Optional[list[tuple[int, int]]] = Field(None, alias="PERIODS")

    # Tiling (flat aliases)
    tile_shape: Optional[tuple[int, int]] = Field(None, alias="TILE_SHAPE")
    n_workers: Optional[int] = Field(None, alias="N_WORKERS")

    # Nested overrides (advanced users)
    smoothing: Optional[UserSmoothingConfig] = None
    sampler: Optional[UserSamplerConfig] = None
    classifier: Optional[UserClassifierConfig] = None
    histogram: Optional[UserHistogramConfig] = None
    tiling: Optional[UserTilingConfig] = None

    model_config = GrassBaseModel.model_config.copy()
    # Allow forgiving input dictionaries (ignore unknown legacy keys)
    model_config.update({"populate_by_name": True, "extra": "ignore"})

    @field_validator("alpha", "beta", "min_slope", mode="before")
    @classmethod
    def coerce_numeric_fields(cls, v):
        """Accept int or float for numeric fields."""
        if v is not None:
            return float(v)
        return v

    def to_internal_overrides(self) -> dict:
        """Convert flat UserConfig to nested InternalConfig structure.

        A fixed ``target_label`` implies ``target_selection='fixed'``.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        if self.base_dir is not None:
            overrides["base_dir"] = str(self.base_dir)

        # Global section
        global_cfg = {}
        if self.run_name is not None:
            global_cfg["run_name"] = self.run_name
        var_names = {}
        if self.bands is not None:
            var_names["bands"] = self.bands
        if self.annual_grass_band is not None:
            var_names["annual_grass_band"] = self.annual_grass_band
        if self.mask_var is not None:
            var_names["analysis_mask"] = self.mask_var
        if var_names:
            global_cfg["var_names"] = var_names
        if global_cfg:
            overrides["global"] = global_cfg

        # Smoothing section
        smoothing = {}
        if self.alpha is not None:
            smoothing["alpha"] = self.alpha
        if self.beta is not None:
            smoothing["beta"] = self.beta
        if self.smoothing is not None:
            smoothing.update(self.smoothing.model_dump(exclude_none=True))
        if smoothing:
            overrides["smoothing"] = smoothing

        # Sampler section
        sampler = {}
        if self.sample_size is not None:
            sampler["sample_size"] = self.sample_size
        if self.sample_seed is not None:
            sampler["seed"] = self.sample_seed
        if self.sampler is not None:
            sampler.update(self.sampler.model_dump(exclude_none=True))
        if sampler:
            overrides["sampler"] = sampler

        # Classifier section
        classifier = {}
        if self.n_clusters is not None:
            classifier["n_clusters"] = self.n_clusters
        if self.max_iter is not None:
            classifier["max_iter"] = self.max_iter
        if self.cluster_seed is not None:
            classifier["seed"] = self.cluster_seed
        if self.target_label is not None:
            classifier["target_label"] = self.target_label
            classifier["target_selection"] = "fixed"
        if self.classifier is not None:
            classifier.update(self.classifier.model_dump(exclude_none=True))
        if classifier:
            overrides["classifier"] = classifier

        # Zonal section
        if self.area_units is not None:
            overrides["zonal"] = {"area_units": self.area_units}

        # Histogram section
        histogram = {}
        if self.n_bins is not None:
            histogram["n_bins"] = self.n_bins
        if self.min_slope is not None:
            histogram["min_slope"] = self.min_slope
        if self.periods is not None:
            histogram["periods"] = self.periods
        if self.histogram is not None:
            histogram.update(self.histogram.model_dump(exclude_none=True))
        if histogram:
            overrides["histogram"] = histogram

        # Tiling section
        tiling = {}
        if self.tile_shape is not None:
            tiling["tile_shape"] = self.tile_shape
        if self.n_workers is not None:
            tiling["n_workers"] = self.n_workers
        if self.tiling is not None:
            tiling.update(self.tiling.model_dump(exclude_none=True))
        if tiling:
            overrides["tiling"] = tiling

        return overrides
