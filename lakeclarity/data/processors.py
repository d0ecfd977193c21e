from typing import Dict, Iterable, List, Optional
import logging

import numpy as np
import pandas as pd

from .forel_ule import ColorClassTable, TRISTIMULUS_MATRIX, dominant_wavelength
from .matchups import (
    IDENTIFIER_COLUMNS,
    METADATA_COLUMNS,
    REQUIRED_BAND_COLUMNS,
    validate_matchups,
)

logger = logging.getLogger(__name__)

# Quality-control thresholds (all bounds exclusive)
MIN_WATER_PERCENT = 90
MIN_PIXEL_COUNT = 10
MAX_CLOUD_PERCENT = 10
CLARITY_RANGE_M = (0.0, 10.0)
BAND_RANGE = (0.0, 1000.0)
WATER_BODY_TYPE = 'lake'

RATIO_COLUMNS = [
    'near_infrared_red_ratio',
    'normalized_difference_vegetation_index',
    'green_normalized_difference_vegetation_index',
    'normalized_difference_turbidity_index',
]

OUTPUT_COLUMNS = (
    ['id', 'sat', 'date', 'lat', 'long', 'secchi']
    + REQUIRED_BAND_COLUMNS
    + RATIO_COLUMNS
    + ['dominant_wavelength', 'forel_ule_index', 'color']
)


def quality_control_mask(df: pd.DataFrame, require_clarity: bool = True) -> pd.Series:
    """
    Boolean mask of rows that pass the fixed-threshold quality control.

    Scene checks: pwater > 90, pixelCount > 10, clouds < 10 and every band
    strictly inside (0, 1000). With `require_clarity` the row must also be a
    lake with a Secchi depth strictly inside (0, 10) m.
    """
    mask = (
        (df['pwater'] > MIN_WATER_PERCENT)
        & (df['pixelCount'] > MIN_PIXEL_COUNT)
        & (df['clouds'] < MAX_CLOUD_PERCENT)
    )
    for band in REQUIRED_BAND_COLUMNS:
        mask &= (df[band] > BAND_RANGE[0]) & (df[band] < BAND_RANGE[1])

    if require_clarity:
        water_type = df['type'].astype(str).str.strip().str.lower()
        mask &= df['secchi'].notna()
        mask &= water_type == WATER_BODY_TYPE
        mask &= (df['secchi'] > CLARITY_RANGE_M[0]) & (df['secchi'] < CLARITY_RANGE_M[1])

    return mask.fillna(False).astype(bool)


def apply_quality_control(df: pd.DataFrame, require_clarity: bool = True) -> pd.DataFrame:
    """Rows passing quality_control_mask, in their original order."""
    return df.loc[quality_control_mask(df, require_clarity=require_clarity)].copy()


def add_band_ratios(df: pd.DataFrame) -> pd.DataFrame:
    """
    Add the band-ratio and normalized-difference features.

    Bands are strictly positive after quality control so every denominator
    is positive; unfiltered zero denominators yield NaN / inf rather than
    raising.
    """
    out = df.copy()
    nir, red, green = out['nir'], out['red'], out['green']
    with np.errstate(divide='ignore', invalid='ignore'):
        out['near_infrared_red_ratio'] = nir / red
        out['normalized_difference_vegetation_index'] = (nir - red) / (nir + red)
        out['green_normalized_difference_vegetation_index'] = (nir - green) / (nir + green)
        out['normalized_difference_turbidity_index'] = (red - green) / (red + green)
    return out


def add_dominant_wavelength(df: pd.DataFrame,
                            tristimulus: Optional[np.ndarray] = TRISTIMULUS_MATRIX) -> pd.DataFrame:
    out = df.copy()
    if len(out) == 0:
        out['dominant_wavelength'] = pd.Series(dtype=float)
        return out
    out['dominant_wavelength'] = dominant_wavelength(
        out['red'].to_numpy(), out['green'].to_numpy(), out['blue'].to_numpy(),
        tristimulus=tristimulus,
    )
    return out


def assign_row_ids(df: pd.DataFrame) -> pd.DataFrame:
    """Insert a dense 1-based `id` column in current row order."""
    out = df.copy()
    if 'id' in out.columns:
        out = out.drop(columns='id')
    out.insert(0, 'id', np.arange(1, len(out) + 1, dtype=int))
    return out


class FeatureBuilder:
    """
    Builds the model-ready clarity feature table from raw matchup records.

    By default chromaticity is taken after the Landsat RGB -> CIE XYZ
    tristimulus transform, not from the bands directly. Pass
    tristimulus=None for plain band normalisation, x = R / (R + G + B) and
    y = G / (R + G + B).
    """

    def __init__(self, color_table: Optional[ColorClassTable] = None,
                 require_clarity: bool = True,
                 tristimulus: Optional[np.ndarray] = TRISTIMULUS_MATRIX):
        """
        Args:
            color_table: Forel-Ule lookup shared by all builds. Defaults to
                ColorClassTable.default()
            require_clarity: If False, skip the lake-type and Secchi checks
                (satellite-only records for prediction)
            tristimulus: RGB -> XYZ matrix for the dominant wavelength, or
                None for plain band normalisation
        """
        self.color_table = color_table or ColorClassTable.default()
        self.require_clarity = require_clarity
        self.tristimulus = tristimulus
        self.last_counts: Dict[str, int] = {}

    def _filter_and_derive(self, raw: pd.DataFrame) -> pd.DataFrame:
        validated = validate_matchups(raw, require_clarity=self.require_clarity)
        passed = apply_quality_control(validated, require_clarity=self.require_clarity)
        derived = add_band_ratios(passed)
        return add_dominant_wavelength(derived, tristimulus=self.tristimulus)

    def _finish(self, derived: pd.DataFrame, n_input: int) -> pd.DataFrame:
        with_ids = assign_row_ids(derived)
        joined = self.color_table.join(with_ids)

        self.last_counts = {
            'input': n_input,
            'passed_qc': len(with_ids),
            'joined': len(joined),
        }
        logger.info(
            f"Feature build: {n_input:,} input, {len(with_ids):,} passed QC, "
            f"{len(joined):,} matched a colour class"
        )
        if n_input and not len(joined):
            logger.warning("Every record was filtered out")

        return joined[self._output_columns(joined)].reset_index(drop=True)

    def _output_columns(self, df: pd.DataFrame) -> List[str]:
        identifiers = [c for c in IDENTIFIER_COLUMNS if c in df.columns]
        columns = []
        for col in OUTPUT_COLUMNS:
            if col == 'secchi' and not self.require_clarity and col not in df.columns:
                continue
            if col in METADATA_COLUMNS and col not in df.columns:
                continue
            columns.append(col)
            if col == 'id':
                columns.extend(identifiers)
        return columns

    def build(self, raw: pd.DataFrame) -> pd.DataFrame:
        """
        Filter, derive and classify a matchup table.

        Args:
            raw: Raw matchup records

        Returns:
            Feature table with OUTPUT_COLUMNS (plus any identifier columns).
            Empty when every record is filtered out.

        Raises:
            MalformedInputError: missing columns or non-numeric / missing bands
        """
        derived = self._filter_and_derive(raw)
        return self._finish(derived, len(raw))

    def _empty_derived(self) -> pd.DataFrame:
        columns = (REQUIRED_BAND_COLUMNS + METADATA_COLUMNS + RATIO_COLUMNS
                   + ['dominant_wavelength'] + (['secchi'] if self.require_clarity else []))
        return pd.DataFrame({c: pd.Series(dtype=float) for c in columns})

    def build_partitioned(self, partitions: Iterable[pd.DataFrame]) -> pd.DataFrame:
        """
        Same result as build() over the concatenated partitions.

        Each partition is validated, filtered and derived on its own; row ids
        are assigned after concatenation so they match a single build. No
        partitions gives an empty table with the output columns.
        """
        derived_parts = []
        n_input = 0
        for part in partitions:
            n_input += len(part)
            derived_parts.append(self._filter_and_derive(part))

        if not derived_parts:
            return self._finish(self._empty_derived(), 0)
        derived = pd.concat(derived_parts, ignore_index=True)
        return self._finish(derived, n_input)
