"""
Tests for time series preprocessing.
"""

import pandas as pd
import pytest

from promolift.core.exceptions import InsufficientDataError
from promolift.core.types import Granularity
from promolift.preprocessing import TimeSeriesPreprocessor, iqr_bounds


SPIKED = [100.0, 102.0, 98.0, 101.0, 500.0, 99.0, 100.0, 103.0, 97.0, 100.0]


class TestDisabledAndShortSeries:
    """Tests for the pass-through paths."""

    def test_disabled_is_identity(self):
        """Disabled outlier removal should return the input unchanged."""
        series = pd.Series(SPIKED)
        result = TimeSeriesPreprocessor(outlier_removal_enabled=False).clean(series)

        pd.testing.assert_series_equal(result.values, series)
        assert result.skipped
        assert result.outlier_count == 0

    def test_short_series_skips_detection(self):
        """Fewer than four points should pass through unchanged."""
        series = pd.Series([10.0, 1000.0, 10.0])
        result = TimeSeriesPreprocessor().clean(series)

        assert result.values.tolist() == [10.0, 1000.0, 10.0]
        assert result.skipped

    def test_empty_series_raises(self):
        """An empty series has nothing to model."""
        with pytest.raises(InsufficientDataError) as exc_info:
            TimeSeriesPreprocessor().clean(pd.Series([], dtype=float))

        assert exc_info.value.available == 0


class TestOutlierReplacement:
    """Tests for IQR detection and local-median replacement."""

    def test_spike_replaced_with_local_median(self):
        """A single spike should be replaced by the median of its neighbours."""
        result = TimeSeriesPreprocessor(outlier_threshold=2.0).clean(pd.Series(SPIKED))

        assert result.replaced == {4: 500.0}
        # Neighbours 98, 101, 99, 100 -> median 99.5
        assert result.values.iloc[4] == pytest.approx(99.5)
        assert not result.skipped

    def test_other_points_untouched(self):
        """Only flagged points should change."""
        result = TimeSeriesPreprocessor().clean(pd.Series(SPIKED))

        for pos, value in enumerate(SPIKED):
            if pos != 4:
                assert result.values.iloc[pos] == value

    def test_index_preserved(self):
        """The cleaned series keeps the caller's index."""
        series = pd.Series(SPIKED, index=range(10, 20))
        result = TimeSeriesPreprocessor().clean(series)

        assert list(result.values.index) == list(range(10, 20))

    def test_constant_series_has_no_outliers(self):
        """Zero IQR with identical points flags nothing."""
        result = TimeSeriesPreprocessor().clean(pd.Series([100.0] * 12))

        assert result.outlier_count == 0

    def test_higher_threshold_flags_less(self):
        """A wider fence should never flag more points."""
        series = pd.Series([10.0, 11.0, 9.0, 10.0, 14.0, 10.0, 11.0, 9.0])
        tight = TimeSeriesPreprocessor(outlier_threshold=0.5).clean(series)
        loose = TimeSeriesPreprocessor(outlier_threshold=3.0).clean(series)

        assert loose.outlier_count <= tight.outlier_count

    def test_seasonal_window_longer_than_series_uses_global_fence(self):
        """Weekly cycle (52) longer than the series falls back to global quartiles."""
        series = pd.Series(SPIKED)
        seasonal = TimeSeriesPreprocessor(
            seasonality_enabled=True, granularity=Granularity.WEEKLY
        ).clean(series)
        flat = TimeSeriesPreprocessor(seasonality_enabled=False).clean(series)

        assert seasonal.replaced == flat.replaced

    def test_seasonal_window_compares_within_season(self):
        """Daily series: the fence is computed over a 7-day window around each point."""
        values = [10.0] * 7 + [10.0, 10.0, 10.0, 90.0, 10.0, 10.0, 10.0] + [10.0] * 7
        result = TimeSeriesPreprocessor(
            seasonality_enabled=True, granularity=Granularity.DAILY
        ).clean(pd.Series(values))

        assert 10 in result.replaced
        assert result.values.iloc[10] == pytest.approx(10.0)


class TestIqrBounds:
    """Tests for the IQR fence helper."""

    def test_bounds(self):
        """Q1 - k*IQR and Q3 + k*IQR."""
        low, high = iqr_bounds([1.0, 2.0, 3.0, 4.0, 5.0], 1.0)

        # Q1 = 2, Q3 = 4, IQR = 2
        assert low == pytest.approx(0.0)
        assert high == pytest.approx(6.0)
