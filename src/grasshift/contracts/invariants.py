"""Formal pipeline invariants.

This file documents what each stage MUST produce, and holds the canonical
dimension names every raster uses. Use it as a reviewer anchor.
"""

YEAR_DIM = "year"
Y_DIM = "y"
X_DIM = "x"

PIPELINE_INVARIANTS = {
    "series": [
        "Dataset has 'year', 'y' and 'x' coordinates",
        "Every configured band is a (year, y, x) variable",
        "Years strictly increasing, no duplicates (gaps allowed)",
        "Cover values are >= 0; NaN marks nodata",
        "Mask, terrain and zones share the series grid",
    ],

    "smoothing": [
        "Same years, bands and grid as the raw series",
        "Every finite smoothed value is >= 0",
        "First year equals the raw first year",
    ],

    "sample": [
        "Exactly sample_size rows of raw band vectors",
        "Every row comes from a masked-in pixel inside the study area",
        "Deterministic for a fixed seed",
    ],

    "classification": [
        "cluster_label is a signed integer (year, y, x) variable",
        "Labels in [0, k) for valid pixel-years, -1 for nodata",
        "Model fit once, never refit mid-run",
    ],

    "transition": [
        "first_transition_year and data_mask are (y, x) variables",
        "Observed pixels carry the earliest target year",
        "Unobserved pixels carry the never sentinel, masked pixels the nodata fill",
        "Never sentinel is larger than any real year",
    ],

    "aggregation": [
        "One zonal row per (zone, year)",
        "One histogram row per (zone, period, bin)",
        "Proportions sum to 1 or are all <NA> for an empty cell",
        "Nodata pixels are excluded, never counted as zero",
    ],
}

# Which stages are optional vs required
STAGE_REQUIREMENTS = {
    "series": "REQUIRED",
    "smoothing": "REQUIRED",
    "sample": "REQUIRED",
    "classification": "REQUIRED",
    "transition": "REQUIRED",
    "aggregation": "OPTIONAL",  # Only when zones are supplied
}
