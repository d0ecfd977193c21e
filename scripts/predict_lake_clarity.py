#!/usr/bin/env python3
"""
Predict a Secchi depth time series for lakes from satellite-only records.

Usage:
    # All lakes in the file
    python scripts/predict_lake_clarity.py --input data/in/lake_overpasses.csv --output data/out/predictions.csv

    # One lake by LAGOS id, with a time-series figure
    python scripts/predict_lake_clarity.py --input data/in/lake_overpasses.csv --lake-id 4559 --plot

    # Use specific model
    python scripts/predict_lake_clarity.py --model models/xgboost_secchi_20260117_141935.pkl --input data.csv
"""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from lakeclarity.data.matchups import load_matchups
from lakeclarity.diagnostics.plots import plot_lake_time_series
from lakeclarity.inference.engine import ClarityPredictionEngine
from lakeclarity.models.trainer import find_latest_model

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(
        description="Predict lake clarity time series with a trained XGBoost model",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        '--input', '-i',
        type=Path,
        required=True,
        help='Satellite records (csv, feather or parquet)'
    )
    parser.add_argument(
        '--model', '-m',
        type=Path,
        default=None,
        help='Path to trained model (.pkl file). Default: most recent model in models/'
    )
    parser.add_argument(
        '--lake-id',
        type=str,
        default=None,
        help='Only predict this lake (matched against --id-column)'
    )
    parser.add_argument(
        '--id-column',
        type=str,
        default='lagoslakeid',
        help='Lake identifier column (default: lagoslakeid)'
    )
    parser.add_argument(
        '--output', '-o',
        type=Path,
        default=Path('data/out/clarity_predictions.csv'),
        help='Output predictions CSV (default: data/out/clarity_predictions.csv)'
    )
    parser.add_argument(
        '--plot',
        action='store_true',
        help='Also write a time-series figure next to the output file'
    )

    args = parser.parse_args()

    if not args.input.exists():
        print(f"Error: Input file not found: {args.input}")
        return 1

    model_path = args.model or find_latest_model(Path('models'))
    if model_path is None or not Path(model_path).exists():
        print("Error: No trained model found. Run scripts/train_xgboost_model.py first or pass --model")
        return 1

    print(f"{'='*70}")
    print("LAKE CLARITY PREDICTION")
    print(f"{'='*70}")
    print(f"Started at: {datetime.now()}")
    print(f"Input: {args.input}")
    print(f"Model: {model_path}")

    engine = ClarityPredictionEngine.from_model_file(model_path)
    raw = load_matchups(args.input)

    if args.lake_id is not None:
        predictions = engine.predict_lake(raw, args.lake_id, id_column=args.id_column)
    else:
        predictions = engine.predict_time_series(raw)

    summary = engine.summarize(predictions)
    if summary['n_observations'] == 0:
        print("\n✗ No usable overpasses after quality control")
        return 1

    print(f"\n  Observations:  {summary['n_observations']:,}")
    print(f"  Mean Secchi:   {summary['mean_secchi']:.2f} m")
    print(f"  Range:         {summary['min_secchi']:.2f} - {summary['max_secchi']:.2f} m")
    if 'first_date' in summary:
        print(f"  Period:        {summary['first_date']} to {summary['last_date']}")

    annual = engine.annual_summary(predictions)
    if not annual.empty:
        print(f"\n  {'Year':<8} {'Mean':>8} {'Median':>8} {'N':>6}")
        print(f"  {'-'*32}")
        for row in annual.itertuples(index=False):
            print(f"  {row.year:<8} {row.mean_secchi:>8.2f} {row.median_secchi:>8.2f} {row.n:>6}")

    args.output.parent.mkdir(parents=True, exist_ok=True)
    predictions.to_csv(args.output, index=False)
    annual_file = args.output.with_name(f"{args.output.stem}_annual.csv")
    annual.to_csv(annual_file, index=False)
    print(f"\n✓ Predictions: {args.output}")
    print(f"✓ Annual summary: {annual_file}")

    if args.plot:
        title = f"Predicted clarity, {args.id_column} {args.lake_id}" if args.lake_id else None
        figure = plot_lake_time_series(predictions, args.output.with_suffix('.png'), title=title)
        print(f"✓ Figure: {figure}")

    print(f"\n{'='*70}")
    print("PREDICTION COMPLETE")
    print(f"{'='*70}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
