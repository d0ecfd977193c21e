#!/usr/bin/env python3
"""
Train the XGBoost Secchi depth regressor on a built feature table.

This script:
- Splits the feature table at random on the row id (80/20 by default)
- Fits a boosted-tree regressor with early stopping on the held-out rows
- Reports RMSE, MAE, bias and R^2 on both sides of the split
- Saves the model, a pickle bundle, the results JSON and feature importance

Usage:
    python scripts/train_xgboost_model.py
    python scripts/train_xgboost_model.py --input data/out/clarity_features.csv
    python scripts/train_xgboost_model.py --n-estimators 500 --learning-rate 0.05
"""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path

import pandas as pd

sys.path.insert(0, str(Path(__file__).parent.parent))

from lakeclarity.models.trainer import (
    FEATURE_COLUMNS,
    TARGET_COLUMN,
    TrainingConfig,
    evaluate,
    save_model_and_results,
    train_from_table,
)

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def print_evaluation(train_metrics: dict, test_metrics: dict):
    print(f"\n{'='*70}")
    print("MODEL EVALUATION")
    print(f"{'='*70}")
    print(f"\n  {'Metric':<15} {'Train':>10} {'Test':>10} {'Diff':>10}")
    print(f"  {'-'*45}")
    for metric in ('rmse', 'mae', 'bias', 'r2'):
        train_val = train_metrics[metric]
        test_val = test_metrics[metric]
        print(f"  {metric:<15} {train_val:>10.4f} {test_val:>10.4f} {test_val - train_val:>+10.4f}")
    print(f"  {'n':<15} {train_metrics['n']:>10,} {test_metrics['n']:>10,}")


def main():
    parser = argparse.ArgumentParser(
        description="Train XGBoost model for lake clarity (Secchi depth)",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        '--input', '-i',
        type=Path,
        default=Path('data/out/clarity_features.csv'),
        help='Input feature table (default: data/out/clarity_features.csv)'
    )
    parser.add_argument(
        '--output-dir', '-o',
        type=Path,
        default=Path('models'),
        help='Output directory for model and results (default: models)'
    )
    parser.add_argument('--test-size', type=float, default=0.2,
                        help='Fraction of rows held out (default: 0.2)')
    parser.add_argument('--n-estimators', type=int, default=1000,
                        help='Maximum number of boosting rounds (default: 1000)')
    parser.add_argument('--max-depth', type=int, default=6,
                        help='Maximum tree depth (default: 6)')
    parser.add_argument('--learning-rate', type=float, default=0.1,
                        help='Learning rate (default: 0.1)')
    parser.add_argument('--early-stopping-rounds', type=int, default=20,
                        help='Rounds without improvement before stopping (default: 20)')
    parser.add_argument('--random-state', type=int, default=42,
                        help='Random state for reproducibility (default: 42)')
    parser.add_argument('--model-name', type=str, default='xgboost_secchi',
                        help='Prefix for saved files (default: xgboost_secchi)')

    args = parser.parse_args()

    if not args.input.exists():
        print(f"Error: Input file not found: {args.input}")
        return 1

    try:
        config = TrainingConfig(
            n_estimators=args.n_estimators,
            learning_rate=args.learning_rate,
            max_depth=args.max_depth,
            early_stopping_rounds=args.early_stopping_rounds,
            random_state=args.random_state,
            test_size=args.test_size,
        )
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    print(f"{'='*70}")
    print("LAKE CLARITY XGBoost MODEL TRAINING")
    print(f"{'='*70}")
    print(f"Started at: {datetime.now()}")
    print(f"Input: {args.input}")
    print(f"Output: {args.output_dir}")

    features = pd.read_csv(args.input)
    missing = [c for c in ['id', TARGET_COLUMN] + FEATURE_COLUMNS if c not in features.columns]
    if missing:
        print(f"Error: Feature table missing columns: {missing}")
        return 1
    print(f"\nLoaded {len(features):,} rows")

    try:
        predictor, train_df, test_df = train_from_table(features, config)
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    train_metrics = evaluate(predictor, train_df)
    test_metrics = evaluate(predictor, test_df)
    print_evaluation(train_metrics, test_metrics)

    importance = predictor.feature_importances()
    print("\n  Feature importance (gain):")
    for row in importance.itertuples(index=False):
        print(f"    {row.feature:<45} {row.importance:>10.4f}")

    results = {
        'timestamp': datetime.now().isoformat(),
        'input_file': str(args.input),
        'config': config.to_xgb_params(),
        'best_iteration': predictor.best_iteration,
        'best_score': predictor.best_score,
        'train_metrics': train_metrics,
        'test_metrics': test_metrics,
        'test_ids': test_df['id'].tolist(),
        'feature_importance': dict(zip(importance['feature'], importance['importance'])),
    }

    pickle_file, results_file = save_model_and_results(
        predictor, results, args.output_dir, model_name=args.model_name
    )
    print(f"\n✓ Model bundle: {pickle_file}")
    print(f"✓ Results:      {results_file}")

    print(f"\n{'='*70}")
    print("TRAINING COMPLETE")
    print(f"{'='*70}")
    print(f"Finished at: {datetime.now()}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
