#!/usr/bin/env python3
"""
Build the model-ready clarity feature table from raw matchup files.

Steps:
1. Validate the raw matchup records (bands numeric and present)
2. Apply the fixed quality-control filter
3. Derive band ratios and the dominant wavelength
4. Assign row ids and join the Forel-Ule colour classes

Usage:
    python scripts/build_training_features.py
    python scripts/build_training_features.py --input data/in/srCorrected_us_hydrolakes_dp_20200628.feather
    python scripts/build_training_features.py --input part1.csv part2.csv --output data/out/features.csv
"""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path

from tqdm import tqdm

sys.path.insert(0, str(Path(__file__).parent.parent))

from lakeclarity.data.forel_ule import TRISTIMULUS_MATRIX, ColorClassTable
from lakeclarity.data.matchups import MalformedInputError, load_matchups
from lakeclarity.data.processors import FeatureBuilder

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(
        description="Build the clarity feature table from matchup records",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        '--input', '-i',
        type=Path,
        nargs='+',
        default=[Path('data/in/matchups.csv')],
        help='One or more matchup files (csv, feather or parquet; default: data/in/matchups.csv)'
    )
    parser.add_argument(
        '--output', '-o',
        type=Path,
        default=Path('data/out/clarity_features.csv'),
        help='Output feature table (default: data/out/clarity_features.csv)'
    )
    parser.add_argument(
        '--color-table',
        type=Path,
        default=None,
        help='CSV with dominant_wavelength, forel_ule_index, color (default: built-in Forel-Ule table)'
    )
    parser.add_argument(
        '--no-tristimulus',
        action='store_true',
        help='Compute chromaticity from the raw bands instead of the tristimulus transform'
    )

    args = parser.parse_args()

    missing = [p for p in args.input if not p.exists()]
    if missing:
        print(f"Error: Input file not found: {missing[0]}")
        return 1

    print(f"{'='*70}")
    print("LAKE CLARITY FEATURE BUILD")
    print(f"{'='*70}")
    print(f"Started at: {datetime.now()}")
    print(f"Input: {', '.join(str(p) for p in args.input)}")
    print(f"Output: {args.output}")

    try:
        color_table = ColorClassTable.from_csv(args.color_table) if args.color_table else ColorClassTable.default()
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    builder = FeatureBuilder(
        color_table,
        tristimulus=None if args.no_tristimulus else TRISTIMULUS_MATRIX
    )

    try:
        partitions = [load_matchups(p) for p in tqdm(args.input, desc="Loading matchups", disable=len(args.input) == 1)]
        if len(partitions) == 1:
            features = builder.build(partitions[0])
        else:
            features = builder.build_partitioned(partitions)
    except MalformedInputError as e:
        print(f"✗ Malformed input: {e}")
        return 1

    counts = builder.last_counts
    print(f"\n  Input records:        {counts['input']:,}")
    print(f"  Passed QC:            {counts['passed_qc']:,}")
    print(f"  Matched colour class: {counts['joined']:,}")

    if features.empty:
        print("\n✗ Every record was filtered out; nothing written")
        return 1

    args.output.parent.mkdir(parents=True, exist_ok=True)
    features.to_csv(args.output, index=False)
    print(f"\n✓ Saved {len(features):,} rows to {args.output}")

    print(f"\n{'='*70}")
    print("FEATURE BUILD COMPLETE")
    print(f"{'='*70}")
    print(f"Finished at: {datetime.now()}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
