"""ParamConfig: Expert defaults for the grasshift pipeline.

This module defines the complete default configuration. ALL pipeline
parameters must have defaults here. No runtime code should define fallback
values - this is the single source of truth for defaults.

Runtime code NEVER reads from ParamConfig directly - it only receives InternalConfig.
"""

from typing import Literal, Optional
from pydantic import Field, field_validator
from grasshift.schemas.base import GrassBaseModel


# =============================================================================
# Nested Configuration Models
# =============================================================================

class VarNamesConfig(GrassBaseModel):
    """Variable name mappings."""
    # Rangeland fractional cover bands: annual forb & grass, perennial forb &
    # grass, shrub, tree, litter, bare ground
    bands: list[str] = Field(
        default_factory=lambda: ["afg", "pfg", "shr", "tre", "ltr", "bgr"]
    )
    annual_grass_band: str = "afg"
    analysis_mask: str = "analysis_mask"
    aspect: str = "aspect"
    slope: str = "slope"


class CoordNamesConfig(GrassBaseModel):
    """Coordinate name mappings of the input rasters."""
    year: str = "year"
    y: str = "y"
    x: str = "x"


class GlobalConfig(GrassBaseModel):
    """Global pipeline settings."""
    run_name: str = "grasshift"
    var_names: VarNamesConfig = Field(default_factory=VarNamesConfig)
    coord_names: CoordNamesConfig = Field(default_factory=CoordNamesConfig)


class SmoothingConfig(GrassBaseModel):
    """Holt double-exponential smoothing parameters."""
    alpha: float = Field(0.25, gt=0, le=1.0, description="Level smoothing")
    beta: float = Field(0.01, ge=0, le=1.0, description="Trend smoothing")

    @field_validator("alpha", "beta", mode="before")
    @classmethod
    def coerce_to_float(cls, v):
        """Allow int or float."""
        return float(v)


class SamplerConfig(GrassBaseModel):
    """Training sample configuration."""
    sample_size: int = Field(5000, ge=1)
    seed: int = 0
    oversample_factor: float = Field(2.0, ge=1.0)
    strata_shape: tuple[int, int] = (4, 4)

    @field_validator("strata_shape")
    @classmethod
    def positive_strata(cls, v):
        if min(v) < 1:
            raise ValueError("strata_shape entries must be >= 1")
        return v


class ClassifierConfig(GrassBaseModel):
    """K-means configuration."""
    n_clusters: int = Field(5, ge=2)
    max_iter: int = Field(300, ge=1)
    seed: int = 0
    target_selection: Literal["max_band", "fixed"] = "max_band"
    target_label: Optional[int] = Field(None, ge=0)

    @field_validator("target_selection", mode="before")
    @classmethod
    def normalize_selection(cls, v):
        """Normalize rule names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v


class TransitionConfig(GrassBaseModel):
    """Serialisation values of the transition raster."""
    never_value: int = 9999
    nodata_value: int = -1


class ZonalConfig(GrassBaseModel):
    """Areal total configuration."""
    area_units: Literal["m2", "ha", "km2"] = "ha"


class HistogramConfig(GrassBaseModel):
    """Directional histogram configuration."""
    n_bins: int = Field(80, ge=1)
    value_range: tuple[float, float] = (-1.0, 1.0)
    min_slope: float = Field(0.0, ge=0, description="Minimum slope in degrees")
    periods: list[tuple[int, int]] = Field(
        default_factory=lambda: [(1986, 1995), (1996, 2005), (2006, 2015), (2016, 2025)]
    )


class TilingConfig(GrassBaseModel):
    """Tile-parallel execution configuration."""
    tile_shape: tuple[int, int] = (512, 512)
    n_workers: int = Field(4, ge=1)
    max_retries: int = Field(2, ge=0)
    failure_policy: Literal["fail_fast", "skip_tile"] = "skip_tile"

    @field_validator("tile_shape")
    @classmethod
    def positive_tiles(cls, v):
        if min(v) < 1:
            raise ValueError("tile_shape entries must be >= 1")
        return v


class OutputConfig(GrassBaseModel):
    """Output file configuration."""
    save_netcdf: bool = True


class LoggingConfig(GrassBaseModel):
    """Logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"


# =============================================================================
# Main ParamConfig
# =============================================================================

class ParamConfig(GrassBaseModel):
    """Complete expert configuration with all defaults.

    This is the single source of truth for all pipeline parameters.
    Every tunable parameter MUST have a default here.

    Usage
    -----
    This config is NOT used directly by runtime code. It serves as the
    base layer in config resolution:

        internal_cfg = resolve_config(param_cfg, user_cfg, cli_cfg)

    Runtime code only sees InternalConfig.
    """

    base_dir: Optional[str] = None
    global_: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
    smoothing: SmoothingConfig = Field(default_factory=SmoothingConfig)
    sampler: SamplerConfig = Field(default_factory=SamplerConfig)
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    transition: TransitionConfig = Field(default_factory=TransitionConfig)
    zonal: ZonalConfig = Field(default_factory=ZonalConfig)
    histogram: HistogramConfig = Field(default_factory=HistogramConfig)
    tiling: TilingConfig = Field(default_factory=TilingConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = GrassBaseModel.model_config.copy()
    model_config.update({"populate_by_name": True})  # Allow both 'global' and 'global_'
