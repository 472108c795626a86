"""Tests for technical indicators."""

import math

import pytest

from core.indicators import BollingerBands, bollinger_bands, roc, sma, std_dev


class TestSMA:
    """Tests for SMA calculation."""

    def test_sma_basic(self):
        """Mean of the trailing window only."""
        values = [float(i) for i in range(1, 11)]  # 1-10
        assert sma(values, 3) == pytest.approx(9.0)  # (8+9+10)/3
        assert sma(values, 10) == pytest.approx(5.5)

    def test_sma_insufficient_data(self):
        assert sma([100.0, 101.0], 3) is None

    def test_sma_invalid_period(self):
        assert sma([1.0, 2.0], 0) is None
        assert sma([1.0, 2.0], -1) is None

    def test_sma_exact_length(self):
        assert sma([2.0, 4.0], 2) == pytest.approx(3.0)


class TestStdDev:
    """Population standard deviation."""

    def test_constant_series_is_zero(self):
        assert std_dev([10.0, 10.0, 10.0, 10.0], 4) == 0.0

    def test_population_formula(self):
        # mean 2.5, variance (2.25+0.25+0.25+2.25)/4 = 1.25
        assert std_dev([1.0, 2.0, 3.0, 4.0], 4) == pytest.approx(math.sqrt(1.25))

    def test_uses_trailing_window(self):
        assert std_dev([1000.0, 1.0, 2.0, 3.0, 4.0], 4) == pytest.approx(math.sqrt(1.25))

    def test_insufficient_data(self):
        assert std_dev([1.0, 2.0], 3) is None


class TestBollingerBands:
    """Tests for Bollinger Bands."""

    def test_middle_is_sma(self):
        values = [1.0, 2.0, 3.0, 4.0, 5.0]
        bands = bollinger_bands(values, 4, 2.0)
        assert bands.middle == pytest.approx(sma(values, 4))

    def test_band_width(self):
        values = [1.0, 2.0, 3.0, 4.0]
        k = 1.5
        bands = bollinger_bands(values, 4, k)
        assert bands.upper - bands.lower == pytest.approx(2 * k * std_dev(values, 4))

    def test_flat_series_collapses_bands(self):
        bands = bollinger_bands([50.0] * 20, 20, 2.0)
        assert bands.upper == bands.middle == bands.lower == 50.0

    def test_insufficient_data_returns_all_none(self):
        assert bollinger_bands([1.0, 2.0], 20, 2.0) == BollingerBands()


class TestROC:
    """Tests for Rate of Change."""

    def test_roc_basic(self):
        assert roc([100.0, 105.0, 110.0], 2) == pytest.approx(10.0)

    def test_roc_negative(self):
        assert roc([200.0, 150.0], 1) == pytest.approx(-25.0)

    def test_roc_insufficient_data(self):
        assert roc([100.0, 110.0], 2) is None

    def test_roc_zero_past_value(self):
        assert roc([0.0, 10.0], 1) is None

    def test_roc_missing_values(self):
        assert roc([None, 10.0], 1) is None
        assert roc([10.0, None], 1) is None

    def test_roc_zero_lookback(self):
        assert roc([42.0], 0) == 0.0
