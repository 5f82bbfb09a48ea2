"""
Linear trend strategy.

Ordinary least squares of value on period index.
"""

import logging

import numpy as np
from numpy.typing import NDArray
from scipy import stats

from promolift.core.types import CalculationMethod
from promolift.models.base import BaselineModel, FitResult, ModelOptions


logger = logging.getLogger(__name__)


class LinearRegressionModel(BaselineModel):
    """
    OLS trend line: base[i] = intercept + slope * i.

    With trend disabled the slope is forced to 0 and the model degrades to
    the series mean; R² and MAPE are still reported downstream so the
    mismatch stays visible.
    """

    method = CalculationMethod.LINEAR_REGRESSION

    def min_periods(self, options: ModelOptions) -> int:
        # A line through one point is undetermined
        return 2

    def _fit(self, values: NDArray[np.float64], options: ModelOptions) -> FitResult:
        x = np.arange(len(values), dtype=np.float64)

        if options.trend_enabled:
            result = stats.linregress(x, values)
            slope = float(result.slope)
            intercept = float(result.intercept)
            if not np.isfinite(slope) or not np.isfinite(intercept):
                raise FloatingPointError("Regression produced non-finite coefficients")
        else:
            slope = 0.0
            intercept = float(np.mean(values))

        fitted = intercept + slope * x
        trend_adjustment = slope * (x - x.mean())
        logger.debug(f"Linear regression fit: intercept={intercept:.4f}, slope={slope:.4f}")

        return FitResult.from_fitted(
            self.method,
            fitted,
            trend_adjustment=trend_adjustment,
            trend_coefficient=slope,
            params={"intercept": intercept, "slope": slope},
        )


def trend_slope(values: NDArray[np.float64]) -> float:
    """Slope of the OLS line through a series (0 for fewer than two points)."""
    if len(values) < 2:
        return 0.0
    return float(stats.linregress(np.arange(len(values), dtype=np.float64), values).slope)
