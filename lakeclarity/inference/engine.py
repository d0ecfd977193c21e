from typing import Dict, Optional, Union
from pathlib import Path
import logging

import numpy as np
import pandas as pd

from ..data.forel_ule import ColorClassTable
from ..data.processors import FeatureBuilder
from ..models.trainer import Predictor, load_predictor

logger = logging.getLogger(__name__)


def build_prediction_features(raw: pd.DataFrame,
                              color_table: Optional[ColorClassTable] = None) -> pd.DataFrame:
    """Feature table for satellite-only records (no lake-type or Secchi checks)."""
    return FeatureBuilder(color_table, require_clarity=False).build(raw)


def select_lake(frame: pd.DataFrame, lake_id: Union[int, str],
                id_column: str = 'lagoslakeid') -> pd.DataFrame:
    """
    Rows belonging to one lake.

    Args:
        frame: Records with an identifier column
        lake_id: Identifier value to keep
        id_column: Column holding lake identifiers

    Returns:
        Copy of the matching rows; empty if the lake is absent
    """
    if id_column not in frame.columns:
        raise ValueError(f"No '{id_column}' column to select a lake by")

    ids = frame[id_column]
    if pd.api.types.is_numeric_dtype(ids):
        selected = frame[ids == pd.to_numeric(lake_id, errors='coerce')]
    else:
        selected = frame[ids.astype(str) == str(lake_id)]

    if selected.empty:
        logger.warning(f"No records for {id_column}={lake_id}")
    return selected.copy()


class ClarityPredictionEngine:
    """Applies a trained clarity model to a lake's satellite time series"""

    def __init__(self, predictor: Predictor, color_table: Optional[ColorClassTable] = None):
        """
        Args:
            predictor: Trained model
            color_table: Forel-Ule lookup used when building features
        """
        self.predictor = predictor
        self.color_table = color_table or ColorClassTable.default()
        self.builder = FeatureBuilder(self.color_table, require_clarity=False)

    @classmethod
    def from_model_file(cls, model_path: Path,
                        color_table: Optional[ColorClassTable] = None) -> 'ClarityPredictionEngine':
        return cls(load_predictor(model_path), color_table=color_table)

    def predict_time_series(self, raw: pd.DataFrame) -> pd.DataFrame:
        """
        Predicted Secchi depth for every usable overpass, sorted by date.

        Args:
            raw: Satellite records for one lake (bands, QC columns, date)

        Returns:
            Feature table plus `predicted_secchi` (m, clipped at 0) and `year`
        """
        features = self.builder.build(raw)
        out = features.copy()
        out['predicted_secchi'] = np.clip(self.predictor.predict(features), 0, None) if len(features) else []

        if 'date' in out.columns:
            out['date'] = pd.to_datetime(out['date'], errors='coerce')
            out['year'] = out['date'].dt.year
            out = out.sort_values('date', kind='mergesort').reset_index(drop=True)

        logger.info(f"Predicted clarity for {len(out):,} of {len(raw):,} overpasses")
        return out

    def predict_lake(self, raw: pd.DataFrame, lake_id: Union[int, str],
                     id_column: str = 'lagoslakeid') -> pd.DataFrame:
        """predict_time_series() restricted to one lake."""
        return self.predict_time_series(select_lake(raw, lake_id, id_column=id_column))

    @staticmethod
    def annual_summary(predictions: pd.DataFrame) -> pd.DataFrame:
        """Per-year mean, median and count of predicted Secchi depth."""
        columns = ['year', 'mean_secchi', 'median_secchi', 'n']
        if predictions.empty or 'year' not in predictions.columns:
            return pd.DataFrame(columns=columns)

        summary = (
            predictions.dropna(subset=['year'])
            .groupby('year')['predicted_secchi']
            .agg(mean_secchi='mean', median_secchi='median', n='count')
            .reset_index()
        )
        summary['year'] = summary['year'].astype(int)
        return summary[columns]

    def summarize(self, predictions: pd.DataFrame) -> Dict:
        """Headline numbers for a predicted time series."""
        if predictions.empty:
            return {'n_observations': 0}
        values = predictions['predicted_secchi']
        result = {
            'n_observations': int(len(predictions)),
            'mean_secchi': float(values.mean()),
            'min_secchi': float(values.min()),
            'max_secchi': float(values.max()),
        }
        if 'date' in predictions.columns and predictions['date'].notna().any():
            result['first_date'] = str(predictions['date'].min().date())
            result['last_date'] = str(predictions['date'].max().date())
        return result
