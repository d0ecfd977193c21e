from .trainer import (
    FEATURE_COLUMNS,
    TARGET_COLUMN,
    Predictor,
    TrainingConfig,
    evaluate,
    load_predictor,
    split_train_test,
    train,
)

__all__ = [
    "FEATURE_COLUMNS",
    "TARGET_COLUMN",
    "Predictor",
    "TrainingConfig",
    "evaluate",
    "load_predictor",
    "split_train_test",
    "train",
]
