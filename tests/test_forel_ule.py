"""
Tests for dominant wavelength and the Forel-Ule colour-class table.
"""

import numpy as np
import pandas as pd
import pytest

from lakeclarity.data.forel_ule import (
    ColorClassTable,
    FOREL_ULE_COLORS,
    chromaticity,
    dominant_wavelength,
    hue_angle,
    spectral_locus,
)


class TestDominantWavelength:
    """Hue-angle matching against the spectral locus"""

    def test_worked_example(self):
        assert dominant_wavelength(0.07, 0.06, 0.05) == 582

    def test_scalar_input_returns_scalar_shape(self):
        assert np.shape(dominant_wavelength(0.07, 0.06, 0.05)) == ()

    def test_vectorized_matches_scalar(self):
        red = np.array([0.07, 0.05, 0.04, 0.06])
        green = np.array([0.06, 0.08, 0.07, 0.09])
        blue = np.array([0.05, 0.05, 0.06, 0.04])
        vector = dominant_wavelength(red, green, blue)
        scalar = [float(dominant_wavelength(r, g, b)) for r, g, b in zip(red, green, blue)]
        np.testing.assert_array_equal(vector, scalar)

    def test_deterministic(self):
        rng = np.random.default_rng(0)
        r, g, b = rng.uniform(0.001, 0.3, (3, 500))
        np.testing.assert_array_equal(dominant_wavelength(r, g, b), dominant_wavelength(r, g, b))

    def test_results_are_whole_nanometres_on_locus(self):
        rng = np.random.default_rng(1)
        r, g, b = rng.uniform(0.001, 0.3, (3, 200))
        wl = dominant_wavelength(r, g, b)
        assert np.all(wl == np.round(wl))
        assert wl.min() >= 380 and wl.max() <= 700

    def test_greener_water_has_shorter_wavelength(self):
        assert dominant_wavelength(0.05, 0.08, 0.05) < dominant_wavelength(0.07, 0.06, 0.05)

    def test_zero_bands_are_nan(self):
        assert np.isnan(dominant_wavelength(0.0, 0.0, 0.0))

    def test_zero_row_does_not_affect_others(self):
        wl = dominant_wavelength(np.array([0.0, 0.07]), np.array([0.0, 0.06]), np.array([0.0, 0.05]))
        assert np.isnan(wl[0])
        assert wl[1] == 582

    def test_plain_normalisation_variant(self):
        x, y = chromaticity(0.07, 0.06, 0.05, tristimulus=None)
        assert x == pytest.approx(0.07 / 0.18)
        assert y == pytest.approx(0.06 / 0.18)
        wl = dominant_wavelength(0.07, 0.06, 0.05, tristimulus=None)
        assert 380 <= wl <= 700


class TestHueAngle:
    """Angle of chromaticity about the white point"""

    def test_range(self):
        angles = hue_angle(np.array([0.5, 0.2, 0.2, 0.5]), np.array([0.5, 0.5, 0.2, 0.2]))
        assert np.all((angles >= 0) & (angles < 360))

    def test_axis_directions(self):
        # +y is 0 degrees, +x is 90 degrees
        assert hue_angle(1 / 3, 0.5) == pytest.approx(0.0)
        assert hue_angle(0.5, 1 / 3) == pytest.approx(90.0)
        assert hue_angle(0.2, 1 / 3) == pytest.approx(270.0)

    def test_spectral_locus_table(self):
        locus = spectral_locus()
        assert list(locus.columns) == ['wavelength', 'x', 'y', 'hue_angle']
        assert locus['wavelength'].iloc[0] == 380
        assert locus['wavelength'].iloc[-1] == 700
        assert len(locus) == 321

    @pytest.mark.parametrize('wavelength, x, y', [
        (500, 0.0082, 0.5384),
        (520, 0.0743, 0.8338),
        (550, 0.3016, 0.6923),
        (580, 0.5125, 0.4866),
        (600, 0.6270, 0.3725),
    ])
    def test_locus_matches_cie_1931_table(self, wavelength, x, y):
        row = spectral_locus().set_index('wavelength').loc[wavelength]
        assert row['x'] == pytest.approx(x, abs=5e-4)
        assert row['y'] == pytest.approx(y, abs=5e-4)

    def test_coarser_step(self):
        locus = spectral_locus(step_nm=5)
        assert locus['wavelength'].tolist() == list(range(380, 701, 5))

    @pytest.mark.parametrize('wavelength', list(range(560, 584)))
    def test_locus_chromaticity_maps_to_its_own_wavelength(self, wavelength):
        # Narrow one-nanometre Forel-Ule classes sit in this range
        row = spectral_locus().set_index('wavelength').loc[wavelength]
        red, green = row['x'], row['y']
        blue = 1.0 - red - green
        assert dominant_wavelength(red, green, blue, tristimulus=None) == wavelength


class TestColorClassTable:
    """Forel-Ule lookup and join"""

    def test_default_domain(self):
        table = ColorClassTable.default()
        assert table.domain == (471, 583)
        assert len(table) == 113

    def test_default_classes_are_monotone(self):
        table = ColorClassTable.default().table
        assert table['forel_ule_index'].is_monotonic_increasing
        assert set(table['forel_ule_index']) == set(range(1, 22))

    def test_classify(self):
        table = ColorClassTable.default()
        assert table.classify(582) == (21, FOREL_ULE_COLORS[20])
        assert table.classify(471) == (1, FOREL_ULE_COLORS[0])
        assert table.classify(530) == (7, FOREL_ULE_COLORS[6])
        assert table.classify(531) == (8, FOREL_ULE_COLORS[7])

    def test_classify_outside_domain(self):
        table = ColorClassTable.default()
        assert table.classify(470) is None
        assert table.classify(584) is None
        assert table.classify(float('nan')) is None
        assert 500 in table
        assert 600 not in table

    def test_join_drops_unmatched_and_keeps_order(self):
        frame = pd.DataFrame({'id': [1, 2, 3, 4, 5],
                              'dominant_wavelength': [582.0, 450.0, np.nan, 471.0, 700.0]})
        joined = ColorClassTable.default().join(frame)
        assert joined['id'].tolist() == [1, 4]
        assert joined['forel_ule_index'].tolist() == [21, 1]
        assert joined['dominant_wavelength'].dtype.kind == 'i'

    def test_join_empty_frame(self):
        frame = pd.DataFrame({'id': pd.Series(dtype=int), 'dominant_wavelength': pd.Series(dtype=float)})
        joined = ColorClassTable.default().join(frame)
        assert joined.empty
        assert {'forel_ule_index', 'color'} <= set(joined.columns)

    def test_from_csv(self, tmp_path):
        path = tmp_path / 'colors.csv'
        pd.DataFrame({'dominant_wavelength': [500, 501], 'forel_ule_index': [5, 6],
                      'color': ['#000000', '#ffffff']}).to_csv(path, index=False)
        table = ColorClassTable.from_csv(path)
        assert table.domain == (500, 501)
        assert table.classify(501) == (6, '#ffffff')

    def test_from_csv_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ColorClassTable.from_csv(tmp_path / 'nope.csv')

    def test_rejects_missing_columns(self):
        with pytest.raises(ValueError):
            ColorClassTable(pd.DataFrame({'dominant_wavelength': [500]}))

    def test_rejects_duplicate_wavelengths(self):
        with pytest.raises(ValueError):
            ColorClassTable(pd.DataFrame({'dominant_wavelength': [500, 500],
                                          'forel_ule_index': [5, 6],
                                          'color': ['#000000', '#ffffff']}))

    def test_table_is_a_copy(self):
        table = ColorClassTable.default()
        copy = table.table
        copy.loc[0, 'forel_ule_index'] = 99
        assert table.classify(471) == (1, FOREL_ULE_COLORS[0])


class TestCoarseColorClassTable:
    """Lookups whose bins are wider than one nanometre"""

    @pytest.fixture
    def five_nm_table(self):
        wavelengths = list(range(470, 586, 5))
        return ColorClassTable.from_frame(pd.DataFrame({
            'dominant_wavelength': wavelengths,
            'forel_ule_index': range(1, len(wavelengths) + 1),
            'color': ['#000000'] * len(wavelengths),
        }))

    def test_domain(self, five_nm_table):
        assert five_nm_table.domain == (470, 585)

    def test_classify_buckets_into_lower_edge(self, five_nm_table):
        assert five_nm_table.classify(470)[0] == 1
        assert five_nm_table.classify(474)[0] == 1
        assert five_nm_table.classify(475)[0] == 2
        assert five_nm_table.classify(546)[0] == 16
        assert five_nm_table.classify(589)[0] == 24
        assert five_nm_table.classify(590) is None
        assert five_nm_table.classify(469) is None

    def test_join_keeps_in_domain_rows(self, five_nm_table):
        frame = pd.DataFrame({'id': range(1, 9),
                              'dominant_wavelength': [470.0, 473.0, 546.0, 585.0, 589.0,
                                                      590.0, 469.0, np.nan]})
        joined = five_nm_table.join(frame)
        assert joined['id'].tolist() == [1, 2, 3, 4, 5]
        assert joined['forel_ule_index'].tolist() == [1, 1, 16, 24, 24]
        assert joined['dominant_wavelength'].tolist() == [470, 473, 546, 585, 589]

    def test_join_keeps_original_index(self, five_nm_table):
        frame = pd.DataFrame({'dominant_wavelength': [600.0, 500.0]}, index=[10, 20])
        joined = five_nm_table.join(frame)
        assert joined.index.tolist() == [20]

    def test_empty_table_rejected(self):
        with pytest.raises(ValueError):
            ColorClassTable(pd.DataFrame(columns=ColorClassTable.COLUMNS))
