"""
Time series preprocessing.

Cleans a raw ordered actuals series before model fitting by replacing
IQR outliers with a local median. Promotional spikes and data-entry errors
would otherwise drag every baseline strategy toward them.
"""

import logging
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from promolift.core.constants import (
    DEFAULT_OUTLIER_THRESHOLD,
    MIN_OUTLIER_POINTS,
    OUTLIER_MEDIAN_HALF_WINDOW,
)
from promolift.core.exceptions import InsufficientDataError
from promolift.core.types import Granularity


logger = logging.getLogger(__name__)


@dataclass
class PreprocessResult:
    """Cleaned series plus a record of what was changed."""

    values: pd.Series
    replaced: dict[int, float] = field(default_factory=dict)  # position -> original value
    skipped: bool = False  # outlier detection not run (disabled or too short)

    @property
    def outlier_count(self) -> int:
        return len(self.replaced)


def iqr_bounds(values: np.ndarray, k: float) -> tuple[float, float]:
    """Return [Q1 - k*IQR, Q3 + k*IQR] for an array."""
    q1, q3 = np.percentile(values, [25, 75])
    iqr = q3 - q1
    return float(q1 - k * iqr), float(q3 + k * iqr)


def _window(n: int, center: int, size: int) -> slice:
    """Centered window of `size` positions, shifted to stay inside [0, n)."""
    size = min(size, n)
    start = max(0, center - size // 2)
    start = min(start, n - size)
    return slice(start, start + size)


class TimeSeriesPreprocessor:
    """
    Replaces outliers in an actuals series.

    A point outside [Q1 - k*IQR, Q3 + k*IQR] (k = outlier_threshold) is
    replaced by the median of its centered neighbourhood. With seasonality
    enabled, quartiles are computed over one seasonal cycle around each
    point instead of the whole series, so a regular December peak is
    compared with its own season rather than with the summer trough.

    POLICY:
        Series shorter than MIN_OUTLIER_POINTS skip detection entirely and
        pass through unchanged. Quartiles of three points say nothing.
    """

    def __init__(
        self,
        outlier_threshold: float = DEFAULT_OUTLIER_THRESHOLD,
        outlier_removal_enabled: bool = True,
        seasonality_enabled: bool = False,
        granularity: Granularity = Granularity.WEEKLY,
    ) -> None:
        self.outlier_threshold = outlier_threshold
        self.outlier_removal_enabled = outlier_removal_enabled
        self.seasonality_enabled = seasonality_enabled
        self.granularity = granularity

    def clean(self, series: pd.Series) -> PreprocessResult:
        """
        Clean an ordered series.

        Args:
            series: Actual values ordered by period start

        Returns:
            PreprocessResult with the cleaned series (same index)

        Raises:
            InsufficientDataError: If the series is empty
        """
        if len(series) == 0:
            raise InsufficientDataError(
                "Cannot preprocess an empty series",
                required=1,
                available=0,
                stage="preprocess",
            )

        values = series.astype(float).copy()

        if not self.outlier_removal_enabled:
            return PreprocessResult(values=values, skipped=True)

        if len(values) < MIN_OUTLIER_POINTS:
            logger.info(
                f"Series has {len(values)} points (< {MIN_OUTLIER_POINTS}), "
                "skipping outlier detection"
            )
            return PreprocessResult(values=values, skipped=True)

        flagged = self._flag_outliers(values.to_numpy())
        replaced: dict[int, float] = {}
        if flagged.any():
            arr = values.to_numpy()
            cleaned = arr.copy()
            for pos in np.flatnonzero(flagged):
                cleaned[pos] = self._local_median(arr, flagged, pos)
                replaced[int(pos)] = float(arr[pos])
            values = pd.Series(cleaned, index=values.index, name=series.name)
            logger.info(f"Replaced {len(replaced)} outlier(s) of {len(arr)} points")

        return PreprocessResult(values=values, replaced=replaced)

    def _flag_outliers(self, arr: np.ndarray) -> np.ndarray:
        """Boolean mask of points outside the IQR fence."""
        n = len(arr)
        k = self.outlier_threshold

        cycle = self.granularity.seasonal_cycle
        if not self.seasonality_enabled or cycle >= n or cycle < MIN_OUTLIER_POINTS:
            low, high = iqr_bounds(arr, k)
            return (arr < low) | (arr > high)

        mask = np.zeros(n, dtype=bool)
        for i in range(n):
            low, high = iqr_bounds(arr[_window(n, i, cycle)], k)
            mask[i] = arr[i] < low or arr[i] > high
        return mask

    @staticmethod
    def _local_median(arr: np.ndarray, flagged: np.ndarray, pos: int) -> float:
        """Median of the centered neighbourhood, ignoring other flagged points."""
        window = _window(len(arr), pos, 2 * OUTLIER_MEDIAN_HALF_WINDOW + 1)
        neighbours = arr[window][~flagged[window]]
        if len(neighbours) == 0:
            neighbours = arr[~flagged] if (~flagged).any() else arr
        return float(np.median(neighbours))
