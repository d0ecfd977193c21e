"""
Shared pytest fixtures for the lake clarity tests.

Provides matchup records, satellite-only overpasses and synthetic feature
tables for training.
"""

import numpy as np
import pandas as pd
import pytest

from lakeclarity.models.trainer import FEATURE_COLUMNS, TrainingConfig, train_from_table


# ============================================================================
# Matchup Fixtures
# ============================================================================

@pytest.fixture
def matchup_row():
    """One matchup record that passes every quality-control check.

    blue=0.05, green=0.06, red=0.07 has a dominant wavelength of 582 nm
    (Forel-Ule class 21); nir/red = 2.857, NDVI = 0.4815.
    """
    return {
        'SiteID': 'WQP-0001',
        'lagoslakeid': 4559,
        'sat': 'LT05',
        'date': pd.Timestamp('2005-07-14'),
        'lat': 45.12,
        'long': -93.41,
        'type': 'Lake',
        'pwater': 95.0,
        'pixelCount': 40,
        'clouds': 2.0,
        'secchi': 2.5,
        'blue': 0.05,
        'green': 0.06,
        'red': 0.07,
        'nir': 0.20,
        'swir1': 0.10,
        'swir2': 0.05,
    }


@pytest.fixture
def make_matchups(matchup_row):
    """Factory: list of overrides -> DataFrame of matchup rows."""
    def _make(overrides):
        return pd.DataFrame([{**matchup_row, **o} for o in overrides])
    return _make


@pytest.fixture
def green_water_records(matchup_row):
    """Forty overpasses across three years with greenish water (all inside 471-583 nm)."""
    rng = np.random.default_rng(7)
    n = 40
    rows = []
    dates = pd.date_range('2001-05-01', periods=n, freq='27D')
    for i in range(n):
        row = dict(matchup_row)
        row.update({
            'date': dates[i],
            'blue': rng.uniform(0.04, 0.06),
            'green': rng.uniform(0.07, 0.09),
            'red': rng.uniform(0.04, 0.06),
            'nir': rng.uniform(0.02, 0.10),
            'swir1': rng.uniform(0.01, 0.05),
            'swir2': rng.uniform(0.01, 0.03),
            'lagoslakeid': 4559 if i % 2 == 0 else 1234,
        })
        rows.append(row)
    # Shuffle so sorting by date is exercised
    df = pd.DataFrame(rows).sample(frac=1, random_state=3).reset_index(drop=True)
    return df.drop(columns=['secchi', 'type'])


# ============================================================================
# Training Fixtures
# ============================================================================

@pytest.fixture(scope='session')
def synthetic_features():
    """Feature table where Secchi depth is a smooth function of two features."""
    rng = np.random.default_rng(42)
    n = 400
    df = pd.DataFrame({
        'id': np.arange(1, n + 1),
        'blue': rng.uniform(0.01, 0.10, n),
        'red': rng.uniform(0.01, 0.10, n),
        'green': rng.uniform(0.01, 0.10, n),
        'nir': rng.uniform(0.01, 0.30, n),
        'dominant_wavelength': rng.integers(471, 584, n).astype(float),
    })
    df['near_infrared_red_ratio'] = df['nir'] / df['red']
    df['normalized_difference_vegetation_index'] = (df['nir'] - df['red']) / (df['nir'] + df['red'])
    df['green_normalized_difference_vegetation_index'] = (df['nir'] - df['green']) / (df['nir'] + df['green'])
    df['normalized_difference_turbidity_index'] = (df['red'] - df['green']) / (df['red'] + df['green'])
    df['secchi'] = (
        8.0 - 0.06 * (df['dominant_wavelength'] - 471)
        + 20.0 * df['blue']
        + rng.normal(0, 0.1, n)
    ).clip(0.1, 9.9)
    return df[['id'] + FEATURE_COLUMNS + ['secchi']]


@pytest.fixture(scope='session')
def small_config():
    return TrainingConfig(n_estimators=60, learning_rate=0.2, max_depth=3, early_stopping_rounds=5)


@pytest.fixture(scope='session')
def trained(synthetic_features, small_config):
    """(predictor, train_df, test_df) fitted once per session."""
    return train_from_table(synthetic_features, small_config)
