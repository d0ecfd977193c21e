"""
XGBoost training wrapper for Secchi depth regression.

The boosted-tree fit itself is delegated to xgboost; this module fixes the
feature set, the configuration struct, the id-based train/test split,
evaluation metrics and model persistence.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple
import json
import logging
import pickle

import numpy as np
import pandas as pd
import xgboost as xgb
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score

logger = logging.getLogger(__name__)

FEATURE_COLUMNS = [
    'blue',
    'red',
    'green',
    'nir',
    'near_infrared_red_ratio',
    'green_normalized_difference_vegetation_index',
    'normalized_difference_turbidity_index',
    'normalized_difference_vegetation_index',
    'dominant_wavelength',
]

TARGET_COLUMN = 'secchi'


@dataclass(frozen=True)
class TrainingConfig:
    """Fixed hyperparameters for one training run"""
    n_estimators: int = 1000  # ceiling; early stopping picks the best round
    learning_rate: float = 0.1
    max_depth: int = 6
    subsample: float = 0.8
    colsample_bytree: float = 0.8
    min_child_weight: float = 1.0
    early_stopping_rounds: int = 20
    eval_metric: str = 'rmse'
    random_state: int = 42
    test_size: float = 0.2

    def __post_init__(self):
        if self.n_estimators < 1:
            raise ValueError(f"n_estimators must be >= 1, got {self.n_estimators}")
        if not 0 < self.learning_rate <= 1:
            raise ValueError(f"learning_rate must be in (0, 1], got {self.learning_rate}")
        if self.max_depth < 1:
            raise ValueError(f"max_depth must be >= 1, got {self.max_depth}")
        for name in ('subsample', 'colsample_bytree'):
            value = getattr(self, name)
            if not 0 < value <= 1:
                raise ValueError(f"{name} must be in (0, 1], got {value}")
        if self.early_stopping_rounds < 1:
            raise ValueError(f"early_stopping_rounds must be >= 1, got {self.early_stopping_rounds}")
        if not 0 < self.test_size < 1:
            raise ValueError(f"test_size must be in (0, 1), got {self.test_size}")

    def to_xgb_params(self) -> Dict:
        """Keyword arguments for xgboost.XGBRegressor."""
        return {
            'n_estimators': self.n_estimators,
            'learning_rate': self.learning_rate,
            'max_depth': self.max_depth,
            'subsample': self.subsample,
            'colsample_bytree': self.colsample_bytree,
            'min_child_weight': self.min_child_weight,
            'early_stopping_rounds': self.early_stopping_rounds,
            'eval_metric': self.eval_metric,
            'random_state': self.random_state,
            'objective': 'reg:squarederror',
            'importance_type': 'gain',
            'n_jobs': -1,
        }


class Predictor:
    """Trained clarity model: predicts Secchi depth from a feature table"""

    def __init__(self, model: xgb.XGBRegressor, feature_cols: Optional[List[str]] = None,
                 config: Optional[TrainingConfig] = None):
        self.model = model
        self.feature_cols = list(feature_cols or FEATURE_COLUMNS)
        self.config = config or TrainingConfig()

    @property
    def best_iteration(self) -> int:
        return int(self.model.best_iteration)

    @property
    def best_score(self) -> float:
        """Validation metric at the best iteration."""
        return float(self.model.best_score)

    def feature_matrix(self, frame: pd.DataFrame) -> pd.DataFrame:
        missing = [c for c in self.feature_cols if c not in frame.columns]
        if missing:
            raise ValueError(f"Feature table missing model columns: {missing}")
        return frame[self.feature_cols]

    def predict(self, frame: pd.DataFrame) -> np.ndarray:
        if len(frame) == 0:
            return np.array([], dtype=float)
        return self.model.predict(self.feature_matrix(frame)).astype(float)

    def feature_importances(self) -> pd.DataFrame:
        return pd.DataFrame({
            'feature': self.feature_cols,
            'importance': self.model.feature_importances_,
        }).sort_values('importance', ascending=False).reset_index(drop=True)


def split_train_test(features: pd.DataFrame,
                     config: Optional[TrainingConfig] = None) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Random train/test split on the row `id`.

    Args:
        features: Feature table with an `id` column
        config: Supplies test_size and random_state

    Returns:
        (train, test) frames with disjoint ids
    """
    config = config or TrainingConfig()
    if len(features) < 2:
        raise ValueError(f"Need at least 2 rows to split, got {len(features)}")
    if 'id' not in features.columns:
        raise ValueError("Feature table has no 'id' column")

    train = features.sample(frac=1 - config.test_size, random_state=config.random_state)
    if len(train) == len(features):
        train = train.iloc[:-1]
    elif len(train) == 0:
        train = features.iloc[:1]
    test = features[~features['id'].isin(train['id'])]

    logger.info(f"Split {len(features):,} rows: {len(train):,} train, {len(test):,} test")
    return train.sort_index(), test


def train(features: pd.DataFrame, target: pd.Series,
          valid_features: pd.DataFrame, valid_target: pd.Series,
          config: Optional[TrainingConfig] = None) -> Predictor:
    """
    Fit a boosted-tree regressor with early stopping on the validation pair.

    Args:
        features: Training feature matrix (FEATURE_COLUMNS or a subset)
        target: Training Secchi depths
        valid_features: Validation feature matrix used for early stopping
        valid_target: Validation Secchi depths
        config: Training configuration

    Returns:
        Predictor wrapping the fitted model
    """
    config = config or TrainingConfig()
    if len(features) == 0 or len(valid_features) == 0:
        raise ValueError("Training and validation sets must be non-empty")
    feature_cols = list(features.columns)
    if list(valid_features.columns) != feature_cols:
        raise ValueError("Training and validation feature columns differ")

    logger.info(
        f"Training XGBoost: {len(features):,} train rows, {len(valid_features):,} validation rows, "
        f"n_estimators={config.n_estimators}, learning_rate={config.learning_rate}, "
        f"max_depth={config.max_depth}, early_stopping_rounds={config.early_stopping_rounds}"
    )

    model = xgb.XGBRegressor(**config.to_xgb_params())
    model.fit(
        features, target,
        eval_set=[(valid_features, valid_target)],
        verbose=False
    )

    predictor = Predictor(model, feature_cols=feature_cols, config=config)
    logger.info(f"Best iteration: {predictor.best_iteration}, best {config.eval_metric}: {predictor.best_score:.4f}")
    return predictor


def train_from_table(features: pd.DataFrame,
                     config: Optional[TrainingConfig] = None) -> Tuple[Predictor, pd.DataFrame, pd.DataFrame]:
    """Split a built feature table, train, and return (predictor, train, test)."""
    config = config or TrainingConfig()
    train_df, test_df = split_train_test(features, config)
    predictor = train(
        train_df[FEATURE_COLUMNS], train_df[TARGET_COLUMN],
        test_df[FEATURE_COLUMNS], test_df[TARGET_COLUMN],
        config
    )
    return predictor, train_df, test_df


def evaluate(predictor: Predictor, frame: pd.DataFrame) -> Dict[str, float]:
    """
    Error metrics of a predictor on a frame holding features and `secchi`.

    Returns:
        Dict with rmse, mae, bias (mean predicted - observed), r2 and n
    """
    observed = frame[TARGET_COLUMN].to_numpy(dtype=float)
    predicted = predictor.predict(frame)
    if len(observed) == 0:
        return {'rmse': float('nan'), 'mae': float('nan'), 'bias': float('nan'),
                'r2': float('nan'), 'n': 0}
    return {
        'rmse': float(np.sqrt(mean_squared_error(observed, predicted))),
        'mae': float(mean_absolute_error(observed, predicted)),
        'bias': float(np.mean(predicted - observed)),
        'r2': float(r2_score(observed, predicted)) if len(observed) > 1 else float('nan'),
        'n': int(len(observed)),
    }


def save_model_and_results(
    predictor: Predictor,
    results: Dict,
    output_dir: Path,
    model_name: str = "xgboost_secchi"
) -> Tuple[Path, Path]:
    """
    Save model, pickle bundle, results JSON and feature importance CSV.

    Returns:
        (pickle_file, results_file)
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

    model_file = output_dir / f"{model_name}_{timestamp}.json"
    predictor.model.save_model(str(model_file))
    logger.info(f"Model saved to: {model_file}")

    pickle_file = output_dir / f"{model_name}_{timestamp}.pkl"
    with open(pickle_file, 'wb') as f:
        pickle.dump({
            'model': predictor.model,
            'feature_cols': predictor.feature_cols,
            'config': asdict(predictor.config),
        }, f)
    logger.info(f"Pickle saved to: {pickle_file}")

    def convert_to_serializable(obj):
        if isinstance(obj, np.integer):
            return int(obj)
        elif isinstance(obj, np.floating):
            return float(obj)
        elif isinstance(obj, np.ndarray):
            return obj.tolist()
        return obj

    results_file = output_dir / f"{model_name}_{timestamp}_results.json"
    serializable_results = json.loads(json.dumps(results, default=convert_to_serializable))
    with open(results_file, 'w') as f:
        json.dump(serializable_results, f, indent=2)
    logger.info(f"Results saved to: {results_file}")

    importance_file = output_dir / f"{model_name}_{timestamp}_feature_importance.csv"
    predictor.feature_importances().to_csv(importance_file, index=False)

    return pickle_file, results_file


def find_latest_model(models_dir: Path = Path('models'), model_name: str = "xgboost_secchi") -> Optional[Path]:
    """Most recently modified `<model_name>_*.pkl` in models_dir, or None."""
    models_dir = Path(models_dir)
    if not models_dir.exists():
        return None
    pkl_files = list(models_dir.glob(f'{model_name}_*.pkl'))
    if not pkl_files:
        return None
    pkl_files.sort(key=lambda x: x.stat().st_mtime, reverse=True)
    return pkl_files[0]


def load_predictor(model_path: Path) -> Predictor:
    """Load a Predictor from a pickle bundle written by save_model_and_results."""
    model_path = Path(model_path)
    if not model_path.exists():
        raise FileNotFoundError(f"Model not found: {model_path}")

    with open(model_path, 'rb') as f:
        data = pickle.load(f)

    config = TrainingConfig(**data['config']) if data.get('config') else None
    logger.info(f"Loaded model from {model_path} ({len(data['feature_cols'])} features)")
    return Predictor(data['model'], feature_cols=data['feature_cols'], config=config)
