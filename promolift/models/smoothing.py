"""
Exponential smoothing strategies.

Single smoothing when trend is disabled, Holt's double smoothing when it is
enabled. Smoothing constants are picked from a small fixed grid by lowest
in-sample MAPE of the one-step-ahead fit, so results are reproducible.
"""

import itertools
import logging

import numpy as np
from numpy.typing import NDArray

from promolift.core.types import CalculationMethod
from promolift.models.base import BaselineModel, FitResult, ModelOptions
from promolift.scoring.metrics import fit_error


logger = logging.getLogger(__name__)


def simple_smoothing(values: NDArray[np.float64], alpha: float) -> NDArray[np.float64]:
    """
    One-step-ahead fit of single exponential smoothing.

    fitted[0] = values[0]; fitted[t] = level[t-1]
    level[t] = alpha * values[t] + (1 - alpha) * level[t-1]
    """
    fitted = np.empty(len(values))
    level = values[0]
    fitted[0] = level
    for t in range(1, len(values)):
        fitted[t] = level
        level = alpha * values[t] + (1 - alpha) * level
    return fitted


def holt_smoothing(
    values: NDArray[np.float64],
    alpha: float,
    beta: float,
) -> tuple[NDArray[np.float64], NDArray[np.float64], float]:
    """
    One-step-ahead fit of Holt's linear trend smoothing.

    Returns:
        (fitted, trend component used for each fitted value, final trend)
    """
    n = len(values)
    fitted = np.empty(n)
    trend_part = np.zeros(n)

    level = values[0]
    trend = values[1] - values[0]
    fitted[0] = values[0]
    for t in range(1, n):
        fitted[t] = level + trend
        trend_part[t] = trend
        prev_level = level
        level = alpha * values[t] + (1 - alpha) * (level + trend)
        trend = beta * (level - prev_level) + (1 - beta) * trend
    return fitted, trend_part, float(trend)


class ExponentialSmoothingModel(BaselineModel):
    """Single or Holt exponential smoothing with grid-searched constants."""

    method = CalculationMethod.EXPONENTIAL_SMOOTHING

    def min_periods(self, options: ModelOptions) -> int:
        # Holt needs two points to initialise the trend
        return 2 if options.trend_enabled else 1

    def _fit(self, values: NDArray[np.float64], options: ModelOptions) -> FitResult:
        if options.trend_enabled:
            return self._fit_holt(values, options.smoothing_grid)
        return self._fit_single(values, options.smoothing_grid)

    def _fit_single(self, values: NDArray[np.float64], grid: tuple[float, ...]) -> FitResult:
        best_alpha = grid[0]
        best_error = np.inf
        for alpha in grid:
            error = fit_error(values[1:], simple_smoothing(values, alpha)[1:])
            if error < best_error:
                best_alpha, best_error = alpha, error

        logger.debug(f"Single smoothing: alpha={best_alpha} (error={best_error:.4f})")
        return FitResult.from_fitted(
            self.method,
            simple_smoothing(values, best_alpha),
            params={"alpha": best_alpha},
            warmup_periods=1,
        )

    def _fit_holt(self, values: NDArray[np.float64], grid: tuple[float, ...]) -> FitResult:
        best = (grid[0], grid[0])
        best_error = np.inf
        for alpha, beta in itertools.product(grid, grid):
            fitted, _, _ = holt_smoothing(values, alpha, beta)
            error = fit_error(values[1:], fitted[1:])
            if error < best_error:
                best, best_error = (alpha, beta), error

        alpha, beta = best
        fitted, trend_part, final_trend = holt_smoothing(values, alpha, beta)
        logger.debug(f"Holt smoothing: alpha={alpha}, beta={beta} (error={best_error:.4f})")
        return FitResult.from_fitted(
            self.method,
            fitted,
            trend_adjustment=trend_part,
            trend_coefficient=final_trend,
            params={"alpha": alpha, "beta": beta},
            warmup_periods=1,
        )
