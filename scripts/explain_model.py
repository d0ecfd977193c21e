#!/usr/bin/env python3
"""
Explain a trained clarity model: feature importance, SHAP, ALE and a surrogate tree.

Usage:
    python scripts/explain_model.py --input data/out/clarity_features.csv
    python scripts/explain_model.py --input data/out/clarity_features.csv --model models/xgboost_secchi_20260117_141935.pkl
    python scripts/explain_model.py --input features.csv --ale-features dominant_wavelength near_infrared_red_ratio
"""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path

import pandas as pd

sys.path.insert(0, str(Path(__file__).parent.parent))

from lakeclarity.diagnostics.explain import (
    accumulated_local_effects,
    feature_importance,
    fit_surrogate_tree,
    shap_summary,
    shap_values,
)
from lakeclarity.diagnostics.plots import (
    plot_ale,
    plot_feature_importance,
    plot_observed_vs_predicted,
    plot_shap_summary,
    plot_surrogate_tree,
)
from lakeclarity.models.trainer import TARGET_COLUMN, evaluate, find_latest_model, load_predictor

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(
        description="Explain a trained lake clarity model",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument('--input', '-i', type=Path,
                        default=Path('data/out/clarity_features.csv'),
                        help='Feature table to explain (default: data/out/clarity_features.csv)')
    parser.add_argument('--model', '-m', type=Path, default=None,
                        help='Path to trained model (.pkl file). Default: most recent model in models/')
    parser.add_argument('--figures-dir', type=Path, default=Path('figures'),
                        help='Directory for figures (default: figures)')
    parser.add_argument('--shap-sample', type=int, default=1000,
                        help='Rows explained with SHAP (default: 1000)')
    parser.add_argument('--ale-features', type=str, nargs='+', default=None,
                        help='Features to plot ALE for (default: the three most important)')
    parser.add_argument('--ale-bins', type=int, default=10,
                        help='Quantile bins per ALE curve (default: 10)')
    parser.add_argument('--surrogate-depth', type=int, default=3,
                        help='Depth of the surrogate tree (default: 3)')

    args = parser.parse_args()

    if not args.input.exists():
        print(f"Error: Input file not found: {args.input}")
        return 1

    model_path = args.model or find_latest_model(Path('models'))
    if model_path is None or not Path(model_path).exists():
        print("Error: No trained model found. Run scripts/train_xgboost_model.py first or pass --model")
        return 1

    print(f"{'='*70}")
    print("LAKE CLARITY MODEL EXPLANATION")
    print(f"{'='*70}")
    print(f"Started at: {datetime.now()}")
    print(f"Input: {args.input}")
    print(f"Model: {model_path}")
    print(f"Figures: {args.figures_dir}")

    predictor = load_predictor(model_path)
    frame = pd.read_csv(args.input)
    figures = args.figures_dir

    importance = feature_importance(predictor)
    print("\n  Feature importance (gain):")
    for row in importance.itertuples(index=False):
        print(f"    {row.feature:<45} {row.importance:>10.4f}")
    print(f"  ✓ {plot_feature_importance(importance, figures / 'feature_importance.png')}")

    if TARGET_COLUMN in frame.columns:
        metrics = evaluate(predictor, frame)
        print(f"\n  RMSE {metrics['rmse']:.3f} m, MAE {metrics['mae']:.3f} m, "
              f"bias {metrics['bias']:+.3f} m, R^2 {metrics['r2']:.3f} (n={metrics['n']:,})")
        path = plot_observed_vs_predicted(frame[TARGET_COLUMN], predictor.predict(frame),
                                          figures / 'observed_vs_predicted.png')
        print(f"  ✓ {path}")

    values, base_value = shap_values(predictor, frame, sample_size=args.shap_sample)
    print(f"\n  SHAP base value: {base_value:.3f} m")
    for row in shap_summary(values).itertuples(index=False):
        print(f"    {row.feature:<45} {row.mean_abs_shap:>10.4f}")
    print(f"  ✓ {plot_shap_summary(values, frame, figures / 'shap_summary.png')}")

    ale_features = args.ale_features or importance['feature'].head(3).tolist()
    print("\n  Accumulated local effects:")
    for feature in ale_features:
        try:
            ale = accumulated_local_effects(predictor.predict, frame, feature, n_bins=args.ale_bins)
        except ValueError as e:
            print(f"  ✗ {feature}: {e}")
            continue
        print(f"  ✓ {plot_ale(ale, feature, figures / f'ale_{feature}.png')}")

    surrogate = fit_surrogate_tree(predictor, frame, max_depth=args.surrogate_depth)
    print(f"\n  Surrogate tree (depth {args.surrogate_depth}), R^2 vs model: {surrogate.r_squared:.3f}")
    print(surrogate.rules)
    print(f"  ✓ {plot_surrogate_tree(surrogate, figures / 'surrogate_tree.png')}")

    print(f"\n{'='*70}")
    print("EXPLANATION COMPLETE")
    print(f"{'='*70}")
    print(f"Finished at: {datetime.now()}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
