"""
Dominant wavelength and Forel-Ule colour classes from Landsat RGB reflectance.

The hue of a water pixel is the angle of its CIE 1931 chromaticity about the
equal-energy white point (1/3, 1/3). That angle is matched against the hue
angles of the spectral locus between 380 and 700 nm, giving a dominant
wavelength in whole nanometres, which is then binned into the 21 Forel-Ule
colour classes.
"""

import logging
from pathlib import Path
from typing import Optional, Tuple, Union

import colour
import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

# Equal-energy white point
WHITE_POINT = (1.0 / 3.0, 1.0 / 3.0)

# Landsat (R, G, B) -> CIE (X, Y, Z) tristimulus coefficients
TRISTIMULUS_MATRIX = np.array([
    [2.7689, 1.7517, 1.1302],
    [1.0000, 4.5907, 0.0601],
    [0.0000, 0.0565, 5.5943],
])

# CIE 1931 2-degree standard observer colour-matching functions, 1 nm steps
CIE1931_OBSERVER = "CIE 1931 2 Degree Standard Observer"
LOCUS_RANGE_NM = (380, 700)

# Upper dominant-wavelength bound (nm, inclusive) of each Forel-Ule class
FOREL_ULE_UPPER_BOUNDS = [
    (1, 475), (2, 480), (3, 485), (4, 489), (5, 495), (6, 509), (7, 530),
    (8, 549), (9, 559), (10, 564), (11, 567), (12, 568), (13, 569),
    (14, 570), (15, 571), (16, 573), (17, 575), (18, 577), (19, 579),
    (20, 581), (21, 583),
]
FOREL_ULE_MIN_WAVELENGTH = 471

FOREL_ULE_COLORS = [
    "#2158bc", "#316dc5", "#327cbb", "#4b80a0", "#568f96", "#6d9298",
    "#698c86", "#759e72", "#7ba654", "#7dae38", "#94b660", "#94b660",
    "#a5bc76", "#aab86d", "#adb55f", "#a8a965", "#ae9f5c", "#b3a053",
    "#af8a44", "#a46905", "#9f4d04",
]


def hue_angle(x, y) -> np.ndarray:
    """Hue angle in degrees [0, 360) of chromaticity (x, y) about the white point."""
    alpha = np.degrees(np.arctan2(np.asarray(x, dtype=float) - WHITE_POINT[0],
                                  np.asarray(y, dtype=float) - WHITE_POINT[1]))
    return np.mod(alpha, 360.0)


def spectral_locus(step_nm: int = 1) -> pd.DataFrame:
    """
    Spectral locus table with one row per wavelength.

    Returns:
        DataFrame with columns wavelength, x, y, hue_angle
    """
    if step_nm < 1:
        raise ValueError(f"step_nm must be >= 1, got {step_nm}")

    cmfs = colour.MSDS_CMFS[CIE1931_OBSERVER]
    all_wavelengths = np.asarray(cmfs.wavelengths)
    low, high = LOCUS_RANGE_NM
    keep = ((all_wavelengths >= low) & (all_wavelengths <= high)
            & ((all_wavelengths - low) % step_nm == 0))

    wavelengths = all_wavelengths[keep].astype(int)
    xyz = np.asarray(cmfs.values)[keep]
    total = xyz.sum(axis=1)
    x = xyz[:, 0] / total
    y = xyz[:, 1] / total

    return pd.DataFrame({
        'wavelength': wavelengths,
        'x': x,
        'y': y,
        'hue_angle': hue_angle(x, y),
    })


# Built once at import; read-only afterwards
_LOCUS = spectral_locus()
_LOCUS_WAVELENGTHS = _LOCUS['wavelength'].to_numpy()
_LOCUS_ANGLES = _LOCUS['hue_angle'].to_numpy()

# Rows matched against the locus per block
_CHUNK_SIZE = 10000


def chromaticity(red, green, blue,
                 tristimulus: Optional[np.ndarray] = TRISTIMULUS_MATRIX) -> Tuple[np.ndarray, np.ndarray]:
    """
    CIE chromaticity coordinates for RGB reflectance.

    Args:
        red, green, blue: Scalars or arrays of surface reflectance
        tristimulus: 3x3 RGB -> XYZ matrix. None normalises the bands directly,
            x = R / (R + G + B), y = G / (R + G + B).

    Returns:
        Tuple of (x, y) arrays. Entries are NaN where the sum is zero.
    """
    rgb = np.stack([np.asarray(red, dtype=float),
                    np.asarray(green, dtype=float),
                    np.asarray(blue, dtype=float)])
    if tristimulus is None:
        xyz = rgb
    else:
        xyz = np.tensordot(np.asarray(tristimulus, dtype=float), rgb, axes=1)

    total = xyz.sum(axis=0)
    with np.errstate(divide='ignore', invalid='ignore'):
        x = np.where(total != 0, xyz[0] / total, np.nan)
        y = np.where(total != 0, xyz[1] / total, np.nan)
    return x, y


def dominant_wavelength(red, green, blue,
                        tristimulus: Optional[np.ndarray] = TRISTIMULUS_MATRIX) -> np.ndarray:
    """
    Dominant wavelength (nm) for RGB reflectance.

    The hue angle of each input is matched to the spectral-locus wavelength
    with the smallest circular angular difference. Inputs whose chromaticity
    is undefined map to NaN.

    Args:
        red, green, blue: Scalars or equally shaped arrays
        tristimulus: See chromaticity()

    Returns:
        Float array of wavelengths (whole nanometres or NaN)
    """
    x, y = chromaticity(red, green, blue, tristimulus=tristimulus)
    alpha = np.atleast_1d(hue_angle(x, y)).ravel()

    result = np.full(alpha.shape, np.nan)
    valid_idx = np.flatnonzero(np.isfinite(alpha))
    for start in range(0, len(valid_idx), _CHUNK_SIZE):
        idx = valid_idx[start:start + _CHUNK_SIZE]
        diff = np.abs(alpha[idx, np.newaxis] - _LOCUS_ANGLES[np.newaxis, :])
        diff = np.minimum(diff, 360.0 - diff)
        # argmin returns the first (shortest) wavelength on ties
        result[idx] = _LOCUS_WAVELENGTHS[np.argmin(diff, axis=1)]

    if np.ndim(red) == 0:
        return result.reshape(())
    return result.reshape(np.shape(red))


class ColorClassTable:
    """
    Immutable lookup from dominant wavelength to Forel-Ule class and colour.

    Build once with default(), from_frame() or from_csv() and hand the same
    instance to every FeatureBuilder.
    """

    COLUMNS = ['dominant_wavelength', 'forel_ule_index', 'color']

    def __init__(self, table: pd.DataFrame):
        missing = [c for c in self.COLUMNS if c not in table.columns]
        if missing:
            raise ValueError(f"Colour-class table missing columns: {missing}")

        table = table[self.COLUMNS].copy()
        table['dominant_wavelength'] = table['dominant_wavelength'].astype(int)
        table['forel_ule_index'] = table['forel_ule_index'].astype(int)
        if table.empty:
            raise ValueError("Colour-class table is empty")
        if table['dominant_wavelength'].duplicated().any():
            raise ValueError("Colour-class table has duplicate wavelengths")

        self._table = table.sort_values('dominant_wavelength').reset_index(drop=True)

        # Each row covers [its wavelength, next row's wavelength); the last row
        # spans one step of the table's resolution
        self._edges = self._table['dominant_wavelength'].to_numpy(dtype=float)
        step = float(np.diff(self._edges)[-1]) if len(self._edges) > 1 else 1.0
        self._upper = self._edges[-1] + step

    @classmethod
    def default(cls) -> 'ColorClassTable':
        """Forel-Ule classes 1-21 over dominant wavelengths 471-583 nm."""
        rows = []
        lower = FOREL_ULE_MIN_WAVELENGTH
        for fui, upper in FOREL_ULE_UPPER_BOUNDS:
            for wavelength in range(lower, upper + 1):
                rows.append((wavelength, fui, FOREL_ULE_COLORS[fui - 1]))
            lower = upper + 1
        return cls(pd.DataFrame(rows, columns=cls.COLUMNS))

    @classmethod
    def from_frame(cls, frame: pd.DataFrame) -> 'ColorClassTable':
        return cls(frame)

    @classmethod
    def from_csv(cls, path: Union[str, Path]) -> 'ColorClassTable':
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Colour-class table not found: {path}")
        return cls(pd.read_csv(path))

    @property
    def table(self) -> pd.DataFrame:
        """Copy of the lookup rows."""
        return self._table.copy()

    @property
    def domain(self) -> Tuple[int, int]:
        return (int(self._table['dominant_wavelength'].min()),
                int(self._table['dominant_wavelength'].max()))

    def __len__(self) -> int:
        return len(self._table)

    def __contains__(self, wavelength) -> bool:
        return self.classify(wavelength) is not None

    def bin_index(self, wavelengths) -> np.ndarray:
        """
        Row position of the lookup bin holding each wavelength.

        Returns:
            Integer array; -1 where the wavelength is NaN or outside the table
        """
        values = np.atleast_1d(np.asarray(wavelengths, dtype=float))
        idx = np.searchsorted(self._edges, values, side='right') - 1
        inside = np.isfinite(values) & (idx >= 0) & (values < self._upper)
        return np.where(inside, idx, -1)

    def classify(self, wavelength) -> Optional[Tuple[int, str]]:
        """Return (forel_ule_index, color) for a wavelength, or None if outside the table."""
        if wavelength is None:
            return None
        idx = int(self.bin_index(wavelength)[0])
        if idx < 0:
            return None
        row = self._table.iloc[idx]
        return int(row['forel_ule_index']), row['color']

    def join(self, frame: pd.DataFrame, column: str = 'dominant_wavelength') -> pd.DataFrame:
        """
        Inner-join a frame on its dominant wavelength.

        Each wavelength is bucketed into the table bin that holds it, so
        tables coarser than 1 nm work too. Rows whose wavelength is NaN or
        outside the table are dropped. Row order of the input is preserved.
        """
        if len(frame) == 0:
            out = frame.copy()
            out['forel_ule_index'] = pd.Series(dtype='int64')
            out['color'] = pd.Series(dtype='object')
            return out

        idx = self.bin_index(frame[column].to_numpy(dtype=float))
        matched = idx >= 0
        out = frame.loc[matched].copy()

        values = out[column].astype(float)
        if (values == values.round()).all():
            out[column] = values.astype(int)

        rows = self._table.iloc[idx[matched]]
        out['forel_ule_index'] = rows['forel_ule_index'].to_numpy()
        out['color'] = rows['color'].to_numpy()

        dropped = int((~matched).sum())
        if dropped:
            logger.debug(f"Colour join dropped {dropped} row(s) outside {self.domain[0]}-{int(self._upper)} nm")
        return out
