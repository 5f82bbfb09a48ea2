"""
Tests for fit-quality scoring.
"""

import numpy as np
import pytest
from scipy import stats

from promolift.core.exceptions import InputValidationError
from promolift.scoring import StatisticalScorer, z_value
from promolift.scoring.metrics import fit_error, mape, mean_absolute_error, r_squared


@pytest.fixture
def scorer():
    """Create scorer at the default confidence level."""
    return StatisticalScorer()


class TestMetrics:
    """Tests for the metric functions."""

    def test_r_squared_known_value(self):
        # SS_res = 1, SS_tot = 5
        assert r_squared([1, 2, 3, 4], [1, 2, 3, 5]) == pytest.approx(0.8)

    def test_r_squared_undefined_on_zero_variance(self):
        assert r_squared([100, 100, 100], [90, 100, 110]) is None

    def test_mape_skips_zero_actuals(self):
        """Periods with actual 0 are left out of the mean."""
        assert mape([0, 100], [5, 110]) == pytest.approx(10.0)

    def test_mape_undefined_without_positive_actuals(self):
        assert mape([0, 0], [1, 2]) is None

    def test_fit_error_falls_back_to_mae(self):
        assert fit_error([0, 0], [1, 3]) == mean_absolute_error([0, 0], [1, 3]) == 2.0


class TestScore:
    """Tests for StatisticalScorer.score."""

    def test_flat_perfect_fit(self, scorer):
        """Flat actuals fitted exactly: MAPE 0, R² undefined."""
        quality = scorer.score(np.full(12, 100.0), np.full(12, 100.0))

        assert quality.mape == 0.0
        assert quality.r_squared is None
        assert quality.confidence_half_width == 0.0
        assert quality.n_scored == 12

    def test_promoted_periods_excluded(self, scorer):
        """A promoted spike should not count against the fit."""
        actual = np.array([100.0, 100.0, 150.0, 100.0])
        quality = scorer.score(
            actual,
            np.full(4, 100.0),
            is_promoted=np.array([False, False, True, False]),
        )

        assert quality.mape == 0.0
        assert quality.n_scored == 3

    def test_all_promoted_is_undefined(self, scorer):
        quality = scorer.score(
            np.array([150.0, 160.0]),
            np.array([100.0, 100.0]),
            is_promoted=np.array([True, True]),
        )

        assert quality.r_squared is None
        assert quality.mape is None
        assert quality.confidence_half_width is None
        assert not quality.is_defined

    def test_confidence_half_width(self):
        """z(0.85) times the sample standard deviation of the residuals."""
        quality = StatisticalScorer(0.85).score(
            np.array([10.0, 12.0, 8.0, 10.0]),
            np.full(4, 10.0),
        )

        expected = stats.norm.ppf(0.925) * np.std([0.0, 2.0, -2.0, 0.0], ddof=1)
        assert quality.confidence_half_width == pytest.approx(expected)

    def test_trend_coefficient_passed_through(self, scorer):
        quality = scorer.score(np.array([1.0, 2.0]), np.array([1.0, 2.0]), trend_coefficient=0.7)

        assert quality.trend_coefficient == 0.7

    def test_higher_confidence_wider_band(self):
        actual = np.array([10.0, 12.0, 8.0, 11.0, 9.0])
        fitted = np.full(5, 10.0)

        narrow = StatisticalScorer(0.80).score(actual, fitted)
        wide = StatisticalScorer(0.95).score(actual, fitted)

        assert wide.confidence_half_width > narrow.confidence_half_width


class TestZValue:
    """Tests for the two-sided normal quantile."""

    def test_95_percent(self):
        assert z_value(0.95) == pytest.approx(1.959964, abs=1e-6)

    @pytest.mark.parametrize("level", [0.0, 1.0, 1.5, -0.2])
    def test_out_of_range_rejected(self, level):
        with pytest.raises(InputValidationError):
            z_value(level)
