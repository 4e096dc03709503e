"""grasshift User Configuration.

This is the user-facing configuration file. Modify settings here to customize
the pipeline behavior. Advanced settings are the defaults in
grasshift.schemas.param.

Usage:
    python scripts/run_transition_pipeline.py scripts/user_config.py --series data/cover.nc
    python scripts/run_transition_pipeline.py scripts/user_config.py --series data/cover.nc --n-workers 8
"""

CONFIG = {
    # ========================================================================
    # RUN
    # ========================================================================
    "RUN_NAME": "great_basin",
    "BASE_DIR": "./output",       # All outputs go here

    # ========================================================================
    # INPUT BANDS
    # ========================================================================
    "BANDS": ["afg", "pfg", "shr", "tre", "ltr", "bgr"],
    "ANNUAL_GRASS_BAND": "afg",   # Band whose highest centroid is the target state
    "MASK_VAR": "analysis_mask",

    # ========================================================================
    # SMOOTHING
    # ========================================================================
    "ALPHA": 0.25,                # Level smoothing
    "BETA": 0.01,                 # Trend smoothing

    # ========================================================================
    # SAMPLING & CLUSTERING
    # ========================================================================
    "SAMPLE_SIZE": 5000,
    "SAMPLE_SEED": 0,
    "N_CLUSTERS": 5,
    "MAX_ITER": 300,
    "CLUSTER_SEED": 0,
    # "TARGET_LABEL": 0,          # Uncomment to pin the target cluster index

    # ========================================================================
    # AGGREGATION
    # ========================================================================
    "AREA_UNITS": "ha",
    "N_BINS": 80,
    "MIN_SLOPE": 0,               # Degrees
    "PERIODS": [(1986, 1995), (1996, 2005), (2006, 2015), (2016, 2025)],

    # ========================================================================
    # TILING
    # ========================================================================
    "TILE_SHAPE": (512, 512),
    "N_WORKERS": 4,
}
