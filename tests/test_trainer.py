"""
Tests for the XGBoost clarity trainer: configuration, split, fit, evaluation and persistence.
"""

import os
import pickle

import numpy as np
import pandas as pd
import pytest

from lakeclarity.models.trainer import (
    FEATURE_COLUMNS,
    TARGET_COLUMN,
    Predictor,
    TrainingConfig,
    evaluate,
    find_latest_model,
    load_predictor,
    save_model_and_results,
    split_train_test,
    train,
)


class ConstantModel:
    """Simple picklable stand-in for a fitted regressor."""

    def __init__(self, value=2.0):
        self.value = value
        self.feature_importances_ = np.linspace(1.0, 0.1, len(FEATURE_COLUMNS))

    def predict(self, X):
        return np.full(len(X), self.value)


class TestTrainingConfig:
    """Fixed hyperparameter struct"""

    def test_defaults(self):
        config = TrainingConfig()
        assert config.n_estimators == 1000
        assert config.learning_rate == 0.1
        assert config.max_depth == 6
        assert config.early_stopping_rounds == 20
        assert config.test_size == 0.2
        assert config.random_state == 42

    @pytest.mark.parametrize('kwargs', [
        {'n_estimators': 0},
        {'learning_rate': 0.0},
        {'learning_rate': 1.5},
        {'max_depth': 0},
        {'subsample': 0.0},
        {'colsample_bytree': 1.2},
        {'early_stopping_rounds': 0},
        {'test_size': 0.0},
        {'test_size': 1.0},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            TrainingConfig(**kwargs)

    def test_frozen(self):
        config = TrainingConfig()
        with pytest.raises(AttributeError):
            config.max_depth = 3

    def test_xgb_params(self):
        params = TrainingConfig(max_depth=4).to_xgb_params()
        assert params['max_depth'] == 4
        assert params['objective'] == 'reg:squarederror'
        assert params['early_stopping_rounds'] == 20


class TestSplitTrainTest:
    """Random split on row id"""

    def test_disjoint_and_complete(self, synthetic_features):
        train_df, test_df = split_train_test(synthetic_features, TrainingConfig())
        train_ids, test_ids = set(train_df['id']), set(test_df['id'])
        assert not train_ids & test_ids
        assert train_ids | test_ids == set(synthetic_features['id'])
        assert len(train_df) == 320
        assert len(test_df) == 80

    def test_reproducible(self, synthetic_features):
        first, _ = split_train_test(synthetic_features, TrainingConfig(random_state=1))
        second, _ = split_train_test(synthetic_features, TrainingConfig(random_state=1))
        assert first['id'].tolist() == second['id'].tolist()

    def test_two_rows_split_one_each(self, synthetic_features):
        train_df, test_df = split_train_test(synthetic_features.head(2), TrainingConfig(test_size=0.01))
        assert len(train_df) == 1
        assert len(test_df) == 1

    def test_too_few_rows(self, synthetic_features):
        with pytest.raises(ValueError):
            split_train_test(synthetic_features.head(1))

    def test_needs_id_column(self, synthetic_features):
        with pytest.raises(ValueError):
            split_train_test(synthetic_features.drop(columns='id'))


class TestTrain:
    """Boosted-tree fit with early stopping"""

    def test_trained_model_learns_signal(self, trained):
        predictor, train_df, test_df = trained
        metrics = evaluate(predictor, test_df)
        assert metrics['n'] == len(test_df)
        assert metrics['r2'] > 0.5
        assert metrics['rmse'] < test_df[TARGET_COLUMN].std()

    def test_early_stopping_recorded(self, trained, small_config):
        predictor, _, _ = trained
        assert 0 <= predictor.best_iteration < small_config.n_estimators
        assert predictor.best_score > 0

    def test_feature_importances(self, trained):
        predictor, _, _ = trained
        importance = predictor.feature_importances()
        assert set(importance['feature']) == set(FEATURE_COLUMNS)
        assert importance['importance'].is_monotonic_decreasing
        assert importance['feature'].iloc[0] in ('dominant_wavelength', 'blue')

    def test_empty_training_set(self, synthetic_features, small_config):
        empty = synthetic_features.iloc[:0]
        with pytest.raises(ValueError):
            train(empty[FEATURE_COLUMNS], empty[TARGET_COLUMN],
                  synthetic_features[FEATURE_COLUMNS], synthetic_features[TARGET_COLUMN], small_config)

    def test_mismatched_columns(self, synthetic_features, small_config):
        with pytest.raises(ValueError):
            train(synthetic_features[FEATURE_COLUMNS], synthetic_features[TARGET_COLUMN],
                  synthetic_features[FEATURE_COLUMNS[:-1]], synthetic_features[TARGET_COLUMN],
                  small_config)


class TestPredictor:

    def test_missing_feature_column(self, synthetic_features):
        predictor = Predictor(ConstantModel())
        with pytest.raises(ValueError, match='dominant_wavelength'):
            predictor.predict(synthetic_features.drop(columns='dominant_wavelength'))

    def test_empty_frame(self, synthetic_features):
        predictor = Predictor(ConstantModel())
        assert len(predictor.predict(synthetic_features.iloc[:0])) == 0


class TestEvaluate:

    def test_metrics_for_constant_prediction(self):
        frame = pd.DataFrame({c: [0.1, 0.2, 0.3] for c in FEATURE_COLUMNS})
        frame[TARGET_COLUMN] = [1.0, 2.0, 3.0]
        metrics = evaluate(Predictor(ConstantModel(2.0)), frame)
        assert metrics['bias'] == pytest.approx(0.0)
        assert metrics['mae'] == pytest.approx(2 / 3)
        assert metrics['rmse'] == pytest.approx(np.sqrt(2 / 3))
        assert metrics['r2'] == pytest.approx(0.0)
        assert metrics['n'] == 3

    def test_empty_frame(self):
        frame = pd.DataFrame(columns=FEATURE_COLUMNS + [TARGET_COLUMN])
        metrics = evaluate(Predictor(ConstantModel()), frame)
        assert metrics['n'] == 0
        assert np.isnan(metrics['rmse'])


class TestPersistence:
    """Saving and reloading trained models"""

    def test_round_trip(self, trained, tmp_path):
        predictor, _, test_df = trained
        pickle_file, results_file = save_model_and_results(
            predictor, {'test_metrics': evaluate(predictor, test_df), 'n': np.int64(5)}, tmp_path
        )
        assert pickle_file.exists()
        assert results_file.exists()
        assert list(tmp_path.glob('*_feature_importance.csv'))
        assert list(tmp_path.glob('xgboost_secchi_*.json'))

        loaded = load_predictor(pickle_file)
        assert loaded.feature_cols == predictor.feature_cols
        assert loaded.config == predictor.config
        np.testing.assert_allclose(loaded.predict(test_df), predictor.predict(test_df))

    def test_bundle_contents(self, trained, tmp_path):
        predictor, _, _ = trained
        pickle_file, _ = save_model_and_results(predictor, {}, tmp_path, model_name='clarity')
        with open(pickle_file, 'rb') as f:
            bundle = pickle.load(f)
        assert set(bundle) == {'model', 'feature_cols', 'config'}
        assert bundle['config']['max_depth'] == predictor.config.max_depth

    def test_load_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_predictor(tmp_path / 'missing.pkl')

    def test_find_latest_model_by_mtime(self, tmp_path):
        old = tmp_path / 'xgboost_secchi_20240101_000000.pkl'
        new = tmp_path / 'xgboost_secchi_20240102_000000.pkl'
        old.touch()
        new.touch()
        os.utime(old, (1_000_000, 1_000_000))
        os.utime(new, (2_000_000, 2_000_000))
        (tmp_path / 'other_model_20250101_000000.pkl').touch()

        assert find_latest_model(tmp_path) == new

    def test_find_latest_model_empty(self, tmp_path):
        assert find_latest_model(tmp_path) is None
        assert find_latest_model(tmp_path / 'missing') is None
