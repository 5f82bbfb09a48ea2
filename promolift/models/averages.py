"""
Averaging strategies: historical, moving, and weighted moving average.
"""

import numpy as np
from numpy.typing import NDArray

from promolift.core.types import CalculationMethod
from promolift.models.base import BaselineModel, FitResult, ModelOptions


class HistoricalAverageModel(BaselineModel):
    """Flat mean of the whole series. No trend, no seasonality."""

    method = CalculationMethod.HISTORICAL_AVERAGE

    def _fit(self, values: NDArray[np.float64], options: ModelOptions) -> FitResult:
        fitted = np.full(len(values), float(np.mean(values)))
        return FitResult.from_fitted(self.method, fitted)


def linear_weights(size: int) -> NDArray[np.float64]:
    """
    Linearly decaying weights, oldest first.

    Oldest point gets 1, most recent gets `size`; normalized to sum to 1.
    """
    raw = np.arange(1, size + 1, dtype=np.float64)
    return raw / raw.sum()


class MovingAverageModel(BaselineModel):
    """
    Trailing moving average.

    The base for period i is the mean of up to `max_window` periods strictly
    preceding i, so base[i] never depends on actual[j] for j >= i. While
    fewer than `max_window` periods precede i, all available history is used.
    The first period has no preceding history; its base is its own
    observation and it is flagged as warmup so it is not scored.
    """

    method = CalculationMethod.MOVING_AVERAGE

    def _weights(self, size: int) -> NDArray[np.float64]:
        return np.full(size, 1.0 / size)

    def _fit(self, values: NDArray[np.float64], options: ModelOptions) -> FitResult:
        window = options.max_window
        fitted = np.empty(len(values))
        fitted[0] = values[0]
        for i in range(1, len(values)):
            history = values[max(0, i - window):i]
            fitted[i] = float(np.dot(self._weights(len(history)), history))
        return FitResult.from_fitted(
            self.method, fitted, params={"window": window}, warmup_periods=1
        )


class WeightedMovingAverageModel(MovingAverageModel):
    """Trailing moving average with linearly decaying weights (most recent heaviest)."""

    method = CalculationMethod.WEIGHTED_MOVING_AVERAGE

    def _weights(self, size: int) -> NDArray[np.float64]:
        return linear_weights(size)
