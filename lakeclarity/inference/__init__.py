from .engine import ClarityPredictionEngine, build_prediction_features, select_lake

__all__ = ["ClarityPredictionEngine", "build_prediction_features", "select_lake"]
