#!/usr/bin/env python3
"""``grasshift`` Transition-Year Pipeline Runner.

Usage:
    python scripts/run_transition_pipeline.py scripts/user_config.py --series data/cover.nc
    python scripts/run_transition_pipeline.py scripts/user_config.py --series data/cover.nc \
        --terrain data/terrain.nc --zones data/ecoregions.geojson --n-workers 8

Note: User config in scripts/user_config.py, expert defaults in grasshift.schemas.param
"""

import sys
import argparse
from pathlib import Path

# Add src to path
project_root = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(project_root / "src"))

from grasshift.cli import run_transition_pipeline


def main():
    parser = argparse.ArgumentParser(description="Run the grasshift transition-year pipeline")
    parser.add_argument("config", help="Path to user config file")
    parser.add_argument("--series", required=True, help="NetCDF cover time series")
    parser.add_argument("--mask", help="NetCDF analysis mask")
    parser.add_argument("--terrain", help="NetCDF terrain with aspect and slope (degrees)")
    parser.add_argument("--zones", help="GeoJSON aggregation zones")
    parser.add_argument("--zone-id", default="name", help="Zone id feature property")
    parser.add_argument("--study-area", help="GeoJSON sampling region")
    parser.add_argument("--base-dir", help="Output directory")
    parser.add_argument("--run-name", help="Override run name")
    parser.add_argument("--n-workers", type=int, help="Number of tile workers")
    parser.add_argument("--rerun", action="store_true", help="Delete output directories before running")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    result = run_transition_pipeline(
        args.config,
        args.series,
        mask_path=args.mask,
        terrain_path=args.terrain,
        zones_path=args.zones,
        zone_id_property=args.zone_id,
        study_area_path=args.study_area,
        cli_args={
            "base_dir": args.base_dir,
            "run_name": args.run_name,
            "n_workers": args.n_workers,
        },
        rerun=args.rerun,
        verbose=args.verbose,
    )

    if not result.complete:
        print(f"Failed tiles: {', '.join(result.failed_tiles)}")
        sys.exit(1)


if __name__ == "__main__":
    main()
