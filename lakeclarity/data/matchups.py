"""
Loading and validation of satellite / in-situ clarity matchup tables.

A matchup row is one Landsat overpass paired with a same-day Secchi disk
measurement. Reflectance bands are surface reflectance fractions.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Union

import pandas as pd

logger = logging.getLogger(__name__)

REQUIRED_BAND_COLUMNS = ['blue', 'green', 'red', 'nir', 'swir1', 'swir2']

# Columns the quality-control filter reads besides the bands
REQUIRED_QC_COLUMNS = ['type', 'pwater', 'pixelCount', 'clouds', 'secchi']

# Columns the satellite-only (prediction) filter reads
REQUIRED_SCENE_COLUMNS = ['pwater', 'pixelCount', 'clouds']

METADATA_COLUMNS = ['sat', 'date', 'lat', 'long']

# Lake / site identifiers carried through when present
IDENTIFIER_COLUMNS = ['SiteID', 'lagoslakeid', 'COMID', 'path', 'row']


class MalformedInputError(ValueError):
    """Raised when a matchup table is missing columns or holds non-numeric bands."""


def load_matchups(path: Union[str, Path]) -> pd.DataFrame:
    """
    Load a matchup table from disk.

    Args:
        path: CSV, feather or parquet file

    Returns:
        DataFrame with stripped column names and a parsed `date` column
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Matchup file not found: {path}")

    suffix = path.suffix.lower()
    if suffix == '.feather':
        df = pd.read_feather(path)
    elif suffix == '.parquet':
        df = pd.read_parquet(path)
    else:
        df = pd.read_csv(path)

    df.columns = [str(c).strip() for c in df.columns]
    if 'date' in df.columns:
        df['date'] = pd.to_datetime(df['date'], errors='coerce')
        n_bad = int(df['date'].isna().sum())
        if n_bad:
            logger.warning(f"{n_bad:,} row(s) in {path.name} have an unparseable date")

    logger.info(f"Loaded {len(df):,} rows, {len(df.columns)} columns from {path}")
    return df


def _missing_columns(df: pd.DataFrame, columns: Iterable[str]) -> List[str]:
    return [c for c in columns if c not in df.columns]


def coerce_numeric(df: pd.DataFrame, columns: Iterable[str]) -> pd.DataFrame:
    """
    Return a copy with `columns` converted to numeric dtype.

    Raises:
        MalformedInputError: if any non-missing value cannot be parsed as a number
    """
    out = df.copy()
    problems = []
    for col in columns:
        converted = pd.to_numeric(out[col], errors='coerce')
        bad = converted.isna() & out[col].notna()
        if bad.any():
            sample = out.loc[bad, col].astype(str).unique()[:3].tolist()
            problems.append(f"{col} ({int(bad.sum())} non-numeric, e.g. {sample})")
        out[col] = converted
    if problems:
        raise MalformedInputError("Non-numeric values in: " + "; ".join(problems))
    return out


def validate_matchups(df: pd.DataFrame, require_clarity: bool = True) -> pd.DataFrame:
    """
    Check that a matchup table can be fed to the feature builder.

    All six reflectance bands must be present, numeric and non-missing on
    every row. When `require_clarity` is set the QC columns (type, pwater,
    pixelCount, clouds, secchi) must exist too; missing Secchi values are
    allowed because the QC filter drops them.

    Returns:
        Copy of `df` with numeric columns coerced

    Raises:
        MalformedInputError
    """
    required = REQUIRED_BAND_COLUMNS + (REQUIRED_QC_COLUMNS if require_clarity else REQUIRED_SCENE_COLUMNS)
    missing = _missing_columns(df, required)
    if missing:
        raise MalformedInputError(f"Missing required column(s): {missing}")

    numeric_cols = REQUIRED_BAND_COLUMNS + [c for c in ('pwater', 'pixelCount', 'clouds', 'secchi')
                                            if c in df.columns]
    out = coerce_numeric(df, numeric_cols)

    band_gaps = {col: int(out[col].isna().sum()) for col in REQUIRED_BAND_COLUMNS}
    band_gaps = {col: n for col, n in band_gaps.items() if n}
    if band_gaps:
        raise MalformedInputError(f"Missing reflectance values: {band_gaps}")

    return out
