"""InternalConfig: Authoritative runtime configuration.

This is the ONLY config schema that runtime code sees. It is fully validated,
normalized, and contains NO optional fields that processing code depends on.

Cross-field rules (target cluster, histogram periods, band names) are checked
here, after all layers are merged, so that no combination of overrides can
slip past them.
"""

from typing import Literal, Optional
from pydantic import Field, ConfigDict, model_validator
from grasshift.schemas.base import GrassBaseModel


# =============================================================================
# Nested Configuration Models (Runtime)
# =============================================================================

class InternalVarNamesConfig(GrassBaseModel):
    """Runtime variable name mappings."""
    bands: list[str] = Field(min_length=1)
    annual_grass_band: str
    analysis_mask: str
    aspect: str
    slope: str

    @model_validator(mode="after")
    def annual_grass_band_is_a_band(self):
        if self.annual_grass_band not in self.bands:
            raise ValueError(
                f"annual_grass_band '{self.annual_grass_band}' is not one of bands {self.bands}"
            )
        if len(set(self.bands)) != len(self.bands):
            raise ValueError(f"bands must be unique, got {self.bands}")
        return self


class InternalCoordNamesConfig(GrassBaseModel):
    """Runtime coordinate name mappings."""
    year: str
    y: str
    x: str


class InternalGlobalConfig(GrassBaseModel):
    """Runtime global settings."""
    run_name: str
    var_names: InternalVarNamesConfig
    coord_names: InternalCoordNamesConfig


class InternalSmoothingConfig(GrassBaseModel):
    """Runtime smoothing parameters."""
    alpha: float = Field(gt=0, le=1.0)
    beta: float = Field(ge=0, le=1.0)


class InternalSamplerConfig(GrassBaseModel):
    """Runtime sampler configuration."""
    sample_size: int = Field(ge=1)
    seed: int
    oversample_factor: float = Field(ge=1.0)
    strata_shape: tuple[int, int]


class InternalClassifierConfig(GrassBaseModel):
    """Runtime k-means configuration."""
    n_clusters: int = Field(ge=2)
    max_iter: int = Field(ge=1)
    seed: int
    target_selection: Literal["max_band", "fixed"]
    target_label: Optional[int]

    @model_validator(mode="after")
    def fixed_target_in_range(self):
        if self.target_selection == "fixed":
            if self.target_label is None:
                raise ValueError("target_label is required when target_selection='fixed'")
            if self.target_label >= self.n_clusters:
                raise ValueError(
                    f"target_label {self.target_label} must be < n_clusters {self.n_clusters}"
                )
        return self


class InternalTransitionConfig(GrassBaseModel):
    """Runtime transition serialisation values."""
    never_value: int
    nodata_value: int

    @model_validator(mode="after")
    def distinct_fill_values(self):
        if self.nodata_value >= self.never_value:
            raise ValueError("nodata_value must be smaller than never_value")
        return self


class InternalZonalConfig(GrassBaseModel):
    """Runtime areal total configuration."""
    area_units: Literal["m2", "ha", "km2"]


class InternalHistogramConfig(GrassBaseModel):
    """Runtime histogram configuration."""
    n_bins: int = Field(ge=1)
    value_range: tuple[float, float]
    min_slope: float = Field(ge=0)
    periods: list[tuple[int, int]]

    @model_validator(mode="after")
    def ordered_ranges(self):
        lower, upper = self.value_range
        if not lower < upper:
            raise ValueError(f"value_range lower bound must be < upper, got {self.value_range}")
        for start, end in self.periods:
            if start > end:
                raise ValueError(f"period start must be <= end, got ({start}, {end})")
        ordered = sorted(self.periods)
        for previous, current in zip(ordered, ordered[1:]):
            if current[0] <= previous[1]:
                raise ValueError(f"periods must be disjoint, got {previous} and {current}")
        return self


class InternalTilingConfig(GrassBaseModel):
    """Runtime tiling configuration."""
    tile_shape: tuple[int, int]
    n_workers: int = Field(ge=1)
    max_retries: int = Field(ge=0)
    failure_policy: Literal["fail_fast", "skip_tile"]


class InternalOutputConfig(GrassBaseModel):
    """Runtime output configuration."""
    save_netcdf: bool


class InternalLoggingConfig(GrassBaseModel):
    """Runtime logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


# =============================================================================
# Main InternalConfig
# =============================================================================

class InternalConfig(GrassBaseModel):
    """Authoritative runtime configuration.

    This is the ONLY configuration schema that processing code sees.
    It is fully validated, immutable, and contains explicit values for
    all parameters.

    Usage
    -----
    Runtime modules receive InternalConfig and access fields directly:

        def __init__(self, config: InternalConfig):
            self.alpha = config.smoothing.alpha  # NOT .get()
            self.bands = config.global_.var_names.bands

    Rules
    -----
    - NO .get() calls
    - NO fallback defaults
    - NO validation

    All of that happens during config resolution, not in runtime code.
    """

    base_dir: Optional[str]
    global_: InternalGlobalConfig = Field(alias="global")
    smoothing: InternalSmoothingConfig
    sampler: InternalSamplerConfig
    classifier: InternalClassifierConfig
    transition: InternalTransitionConfig
    zonal: InternalZonalConfig
    histogram: InternalHistogramConfig
    tiling: InternalTilingConfig
    output: InternalOutputConfig
    logging: InternalLoggingConfig

    model_config = ConfigDict(
        extra='forbid',
        validate_assignment=True,
        use_enum_values=True,
        str_strip_whitespace=True,
        frozen=True,  # Immutable after construction
        populate_by_name=True,  # Allow both 'global' and 'global_'
    )
