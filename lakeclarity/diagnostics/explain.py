"""
Model explanation for the clarity regressor.

Includes:
- Gain-based feature importance from XGBoost
- SHAP values through shap.TreeExplainer
- First-order accumulated local effects (ALE) for a single feature
- A shallow surrogate decision tree fitted to the boosted model's predictions
"""

from dataclasses import dataclass
from typing import Callable, Optional, Tuple
import logging

import numpy as np
import pandas as pd
import shap
from sklearn.metrics import r2_score
from sklearn.tree import DecisionTreeRegressor, export_text

from ..models.trainer import Predictor

logger = logging.getLogger(__name__)


def feature_importance(predictor: Predictor) -> pd.DataFrame:
    """Feature importance table, most important first."""
    return predictor.feature_importances()


def shap_values(predictor: Predictor, frame: pd.DataFrame,
                sample_size: Optional[int] = 1000,
                random_state: int = 42) -> Tuple[pd.DataFrame, float]:
    """
    SHAP values for a (sampled) feature table.

    Args:
        predictor: Trained model
        frame: Table holding the model's feature columns
        sample_size: Rows to explain; None explains every row
        random_state: Seed for the row sample

    Returns:
        (values, base_value) where values has one column per feature and the
        index of the explained rows
    """
    X = predictor.feature_matrix(frame)
    if sample_size is not None and len(X) > sample_size:
        X = X.sample(n=sample_size, random_state=random_state)

    explainer = shap.TreeExplainer(predictor.model)
    values = np.asarray(explainer.shap_values(X))
    base_value = float(np.ravel(explainer.expected_value)[0])

    logger.info(f"Computed SHAP values for {len(X):,} rows")
    return pd.DataFrame(values, columns=predictor.feature_cols, index=X.index), base_value


def shap_summary(values: pd.DataFrame) -> pd.DataFrame:
    """Mean absolute SHAP value per feature, largest first."""
    return (
        values.abs().mean()
        .rename('mean_abs_shap')
        .rename_axis('feature')
        .reset_index()
        .sort_values('mean_abs_shap', ascending=False)
        .reset_index(drop=True)
    )


def accumulated_local_effects(predict_fn: Callable[[pd.DataFrame], np.ndarray],
                              frame: pd.DataFrame, feature: str,
                              n_bins: int = 10) -> pd.DataFrame:
    """
    First-order ALE of one feature.

    The feature range is cut at quantiles. For every row the prediction is
    evaluated with the feature moved to the lower and upper edge of its bin;
    the mean differences per bin are accumulated across bins and centred so
    the count-weighted mean effect over bins is zero.

    Args:
        predict_fn: Maps a feature table to predictions
        frame: Feature table
        feature: Column to explain
        n_bins: Requested number of quantile bins (fewer when values repeat)

    Returns:
        DataFrame with bin_edge, effect and count (rows in the bin ending at
        that edge; 0 for the first edge)
    """
    if feature not in frame.columns:
        raise ValueError(f"Unknown feature: {feature}")
    if n_bins < 1:
        raise ValueError(f"n_bins must be >= 1, got {n_bins}")

    values = frame[feature].to_numpy(dtype=float)
    edges = np.unique(np.quantile(values, np.linspace(0, 1, n_bins + 1)))
    if len(edges) < 2:
        raise ValueError(f"Feature {feature} needs at least two distinct values for ALE")

    bins = np.clip(np.searchsorted(edges, values, side='left'), 1, len(edges) - 1)

    lower = frame.copy()
    upper = frame.copy()
    lower[feature] = edges[bins - 1]
    upper[feature] = edges[bins]
    diffs = np.asarray(predict_fn(upper), dtype=float) - np.asarray(predict_fn(lower), dtype=float)

    n_intervals = len(edges) - 1
    counts = np.bincount(bins - 1, minlength=n_intervals)
    sums = np.bincount(bins - 1, weights=diffs, minlength=n_intervals)
    with np.errstate(invalid='ignore'):
        local = np.where(counts > 0, sums / np.maximum(counts, 1), 0.0)

    accumulated = np.concatenate([[0.0], np.cumsum(local)])
    midpoints = (accumulated[:-1] + accumulated[1:]) / 2
    centre = np.sum(midpoints * counts) / counts.sum()

    return pd.DataFrame({
        'bin_edge': edges,
        'effect': accumulated - centre,
        'count': np.concatenate([[0], counts]).astype(int),
    })


@dataclass
class SurrogateTree:
    """Shallow tree approximating the boosted model"""
    model: DecisionTreeRegressor
    feature_cols: list
    r_squared: float  # fidelity to the boosted model's predictions
    rules: str


def fit_surrogate_tree(predictor: Predictor, frame: pd.DataFrame,
                       max_depth: int = 3, random_state: int = 42) -> SurrogateTree:
    """
    Fit a decision tree to the predictor's own predictions.

    Args:
        predictor: Trained model
        frame: Feature table to explain
        max_depth: Depth of the surrogate tree

    Returns:
        SurrogateTree with the fitted tree, its R^2 against the boosted
        predictions and a text rendering of its rules
    """
    X = predictor.feature_matrix(frame)
    target = predictor.predict(frame)

    tree = DecisionTreeRegressor(max_depth=max_depth, random_state=random_state)
    tree.fit(X, target)
    fidelity = float(r2_score(target, tree.predict(X))) if len(X) > 1 else float('nan')

    logger.info(f"Surrogate tree (depth {max_depth}) R^2 vs model: {fidelity:.3f}")
    return SurrogateTree(
        model=tree,
        feature_cols=list(predictor.feature_cols),
        r_squared=fidelity,
        rules=export_text(tree, feature_names=list(predictor.feature_cols)),
    )
