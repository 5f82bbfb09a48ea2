"""
Common interface for baseline fitting strategies.

Every strategy is a pure function of (cleaned series, options) -> FitResult.
No I/O, no shared state, so each one is unit-testable on synthetic series.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import numpy as np
from numpy.typing import NDArray

from promolift.core.constants import MAX_MOVING_AVERAGE_WINDOW, SMOOTHING_GRID
from promolift.core.exceptions import InsufficientDataError
from promolift.core.types import CalculationMethod, Granularity


@dataclass(frozen=True)
class ModelOptions:
    """Toggles and tuning a strategy may consume."""

    granularity: Granularity = Granularity.WEEKLY
    seasonality_enabled: bool = True
    trend_enabled: bool = True
    max_window: int = MAX_MOVING_AVERAGE_WINDOW
    smoothing_grid: tuple[float, ...] = SMOOTHING_GRID


@dataclass
class FitResult:
    """
    Output of a fitting strategy, one entry per period.

    base_volume is the fitted value floored at zero; fitted_values keeps the
    raw in-sample fit for diagnostics. The first `warmup_periods` bases are
    not true estimates and are left out of accuracy scoring.
    """

    method: CalculationMethod
    base_volume: NDArray[np.float64]
    seasonality_factor: NDArray[np.float64]
    trend_adjustment: NDArray[np.float64]
    fitted_values: NDArray[np.float64]
    trend_coefficient: float = 0.0
    params: dict[str, Any] = field(default_factory=dict)
    warmup_periods: int = 0

    def __len__(self) -> int:
        return len(self.base_volume)

    @classmethod
    def from_fitted(
        cls,
        method: CalculationMethod,
        fitted: NDArray[np.float64],
        seasonality_factor: NDArray[np.float64] | None = None,
        trend_adjustment: NDArray[np.float64] | None = None,
        trend_coefficient: float = 0.0,
        params: dict[str, Any] | None = None,
        warmup_periods: int = 0,
    ) -> "FitResult":
        """Build a result, defaulting factors to 1 and adjustments to 0."""
        fitted = np.asarray(fitted, dtype=np.float64)
        n = len(fitted)
        return cls(
            method=method,
            base_volume=np.maximum(fitted, 0.0),
            seasonality_factor=(
                np.ones(n) if seasonality_factor is None
                else np.asarray(seasonality_factor, dtype=np.float64)
            ),
            trend_adjustment=(
                np.zeros(n) if trend_adjustment is None
                else np.asarray(trend_adjustment, dtype=np.float64)
            ),
            fitted_values=fitted,
            trend_coefficient=float(trend_coefficient),
            params=params or {},
            warmup_periods=warmup_periods,
        )


class BaselineModel(ABC):
    """Abstract base class for a baseline fitting strategy."""

    method: CalculationMethod

    def min_periods(self, options: ModelOptions) -> int:
        """Minimum series length this strategy accepts."""
        return 1

    def fit(self, values: NDArray[np.float64], options: ModelOptions) -> FitResult:
        """
        Fit the strategy to a cleaned series.

        Args:
            values: Cleaned actuals ordered by period
            options: Toggles and tuning

        Returns:
            FitResult aligned with `values`

        Raises:
            InsufficientDataError: If the series is shorter than min_periods
        """
        values = np.asarray(values, dtype=np.float64)
        self._check_length(values, options)
        return self._fit(values, options)

    def _check_length(self, values: NDArray[np.float64], options: ModelOptions) -> None:
        required = self.min_periods(options)
        if len(values) < required:
            raise InsufficientDataError(
                f"{self.method.value} needs at least {required} periods",
                required=required,
                available=len(values),
                method=self.method.value,
                stage="fit",
            )

    @abstractmethod
    def _fit(self, values: NDArray[np.float64], options: ModelOptions) -> FitResult:
        ...
