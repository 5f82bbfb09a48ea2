"""
Classical multiplicative seasonal decomposition.

    value    = trend * seasonal * residual      (statsmodels seasonal_decompose)
    base     = trend * seasonal

statsmodels estimates the trend with a centered moving average over one
cycle (2 x m for even m) and averages the detrended ratios by seasonal
position, normalized to mean 1. It needs two full cycles of history.
"""

import numpy as np
import pandas as pd
from numpy.typing import NDArray
from statsmodels.tsa.seasonal import seasonal_decompose

from promolift.core.exceptions import InputValidationError, InsufficientSeasonalHistoryError
from promolift.core.types import CalculationMethod
from promolift.models.base import BaselineModel, FitResult, ModelOptions
from promolift.models.regression import LinearRegressionModel, trend_slope


# Full cycles seasonal_decompose needs to estimate every seasonal position
MIN_SEASONAL_CYCLES = 2


class SeasonalDecompositionModel(BaselineModel):
    """
    Trend x seasonality decomposition over one seasonal cycle
    (7 daily, 52 weekly, 12 monthly, 4 quarterly).

    With seasonality enabled the series must hold two full cycles of
    strictly positive values; anything shorter fails with
    InsufficientSeasonalHistoryError rather than silently falling back to a
    weaker method. With seasonality disabled the factor is fixed at 1 and the
    trend is the OLS line. With trend disabled the trend collapses to the
    series level.
    """

    method = CalculationMethod.SEASONAL_DECOMPOSITION

    def min_periods(self, options: ModelOptions) -> int:
        if options.seasonality_enabled:
            return MIN_SEASONAL_CYCLES * options.granularity.seasonal_cycle
        # Trend-only fit is an OLS line
        return 2

    def _check_length(self, values: NDArray[np.float64], options: ModelOptions) -> None:
        required = self.min_periods(options)
        if len(values) < required:
            raise InsufficientSeasonalHistoryError(
                f"Seasonal decomposition needs at least {required} "
                f"{options.granularity.value} periods",
                required=required,
                available=len(values),
                method=self.method.value,
                stage="fit",
            )
        if options.seasonality_enabled and np.any(values <= 0):
            raise InputValidationError(
                "Multiplicative seasonal decomposition needs strictly positive actuals",
                field="actuals",
                value=float(np.min(values)),
                stage="fit",
            )

    def _decompose(self, values: NDArray[np.float64], options: ModelOptions):
        cycle = options.granularity.seasonal_cycle
        try:
            return seasonal_decompose(
                pd.Series(values),
                model="multiplicative",
                period=cycle,
                extrapolate_trend="freq",
            )
        except ValueError as e:
            raise InsufficientSeasonalHistoryError(
                f"Seasonal decomposition failed: {e}",
                required=self.min_periods(options),
                available=len(values),
                method=self.method.value,
                stage="fit",
            ) from e

    def _fit(self, values: NDArray[np.float64], options: ModelOptions) -> FitResult:
        cycle = options.granularity.seasonal_cycle

        if not options.seasonality_enabled:
            line = LinearRegressionModel().fit(values, options)
            return FitResult.from_fitted(
                self.method,
                line.fitted_values,
                trend_adjustment=line.trend_adjustment,
                trend_coefficient=line.trend_coefficient,
                params={"cycle": cycle},
            )

        result = self._decompose(values, options)
        factors = result.seasonal.to_numpy(dtype=np.float64)

        if options.trend_enabled:
            trend = result.trend.to_numpy(dtype=np.float64)
            slope = trend_slope(trend)
        else:
            trend = np.full(len(values), float(np.mean(values)))
            slope = 0.0

        return FitResult.from_fitted(
            self.method,
            trend * factors,
            seasonality_factor=factors,
            trend_adjustment=trend - trend.mean(),
            trend_coefficient=slope,
            params={"cycle": cycle},
        )
