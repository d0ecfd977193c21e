"""
Figures for the clarity model. Every function writes one PNG and returns its path.
"""

from pathlib import Path
from typing import Optional, Union

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import shap
from sklearn.tree import plot_tree

from .explain import SurrogateTree

PathLike = Union[str, Path]


def _save(fig, path: PathLike) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, dpi=150, bbox_inches='tight')
    plt.close(fig)
    return path


def plot_feature_importance(importance: pd.DataFrame, path: PathLike, top_n: int = 15) -> Path:
    data = importance.head(top_n).iloc[::-1]
    fig, ax = plt.subplots(figsize=(8, 0.4 * len(data) + 1.5))
    ax.barh(data['feature'], data['importance'], color='#327cbb')
    ax.set_xlabel('Importance (gain)')
    ax.set_title('Feature importance')
    return _save(fig, path)


def plot_observed_vs_predicted(observed, predicted, path: PathLike,
                               title: str = 'Secchi depth: observed vs predicted') -> Path:
    observed = np.asarray(observed, dtype=float)
    predicted = np.asarray(predicted, dtype=float)
    fig, ax = plt.subplots(figsize=(6, 6))
    ax.scatter(observed, predicted, s=8, alpha=0.4, color='#2158bc')
    upper = float(np.nanmax(np.concatenate([observed, predicted]))) if len(observed) else 1.0
    ax.plot([0, upper], [0, upper], color='black', linewidth=1, linestyle='--')
    ax.set_xlabel('Observed Secchi (m)')
    ax.set_ylabel('Predicted Secchi (m)')
    ax.set_title(title)
    return _save(fig, path)


def plot_shap_summary(values: pd.DataFrame, features: pd.DataFrame, path: PathLike) -> Path:
    """Beeswarm summary of SHAP values; `features` holds the explained rows."""
    features = features.loc[values.index, list(values.columns)]
    shap.summary_plot(values.to_numpy(), features, feature_names=list(values.columns), show=False)
    return _save(plt.gcf(), path)


def plot_ale(ale: pd.DataFrame, feature: str, path: PathLike) -> Path:
    fig, ax = plt.subplots(figsize=(7, 4))
    ax.plot(ale['bin_edge'], ale['effect'], marker='o', color='#759e72')
    ax.axhline(0, color='grey', linewidth=0.8)
    ax.set_xlabel(feature)
    ax.set_ylabel('ALE of predicted Secchi (m)')
    ax.set_title(f'Accumulated local effect: {feature}')
    return _save(fig, path)


def plot_surrogate_tree(surrogate: SurrogateTree, path: PathLike) -> Path:
    fig, ax = plt.subplots(figsize=(16, 8))
    plot_tree(surrogate.model, feature_names=surrogate.feature_cols, filled=True,
              rounded=True, precision=2, ax=ax)
    ax.set_title(f'Surrogate tree (R² vs model = {surrogate.r_squared:.2f})')
    return _save(fig, path)


def plot_lake_time_series(predictions: pd.DataFrame, path: PathLike,
                          title: Optional[str] = None) -> Path:
    """Predicted Secchi depth per overpass, coloured by Forel-Ule colour when present."""
    fig, ax = plt.subplots(figsize=(10, 4))
    colors = predictions['color'] if 'color' in predictions.columns else '#2158bc'
    ax.scatter(predictions['date'], predictions['predicted_secchi'], c=colors, s=14)
    if len(predictions) and 'year' in predictions.columns:
        annual = predictions.groupby('year')['predicted_secchi'].mean()
        ax.plot(pd.to_datetime(annual.index.astype(int).astype(str) + '-07-01'), annual.values,
                color='black', linewidth=1.2, label='Annual mean')
        ax.legend(loc='upper right')
    ax.set_ylabel('Predicted Secchi (m)')
    ax.invert_yaxis()
    ax.set_title(title or 'Predicted clarity time series')
    return _save(fig, path)
