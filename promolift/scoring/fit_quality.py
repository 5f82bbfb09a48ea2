"""
Statistical scorer for baseline fits.

Scores fitted vs actual values over non-promoted periods only: promoted
periods are expected to deviate from the baseline and would make every
good baseline look bad.
"""

import logging
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray
from scipy import stats

from promolift.core.constants import DEFAULT_CONFIDENCE_LEVEL
from promolift.core.exceptions import InputValidationError
from promolift.scoring.metrics import mape, r_squared


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FitQuality:
    """
    Fit diagnostics for a baseline.

    r_squared and mape are None when undefined (every period promoted, or
    zero variance for R²). Callers must branch on None explicitly.
    """

    r_squared: float | None
    mape: float | None
    confidence_half_width: float | None
    residual_std_error: float | None
    trend_coefficient: float
    n_scored: int
    confidence_level: float

    @property
    def is_defined(self) -> bool:
        return self.n_scored > 0

    def to_dict(self) -> dict:
        return {
            "r_squared": None if self.r_squared is None else round(self.r_squared, 4),
            "mape": None if self.mape is None else round(self.mape, 2),
            "confidence_half_width": self.confidence_half_width,
            "trend_coefficient": self.trend_coefficient,
            "n_scored": self.n_scored,
            "confidence_level": self.confidence_level,
        }


def z_value(confidence_level: float) -> float:
    """Two-sided standard normal quantile for a confidence level in (0, 1)."""
    if not 0.0 < confidence_level < 1.0:
        raise InputValidationError(
            "Confidence level must be within (0, 1)",
            field="confidence_level",
            value=confidence_level,
            stage="score",
        )
    return float(stats.norm.ppf(0.5 + confidence_level / 2.0))


class StatisticalScorer:
    """
    Computes fit-quality diagnostics.

    Formula:
        r_squared  = 1 - SS_res / SS_tot
        mape       = mean(|actual - base| / actual) * 100, actual > 0
        half-width = z(confidence_level) * stderr(residuals)
    """

    def __init__(self, confidence_level: float = DEFAULT_CONFIDENCE_LEVEL) -> None:
        self.confidence_level = confidence_level
        self._z = z_value(confidence_level)

    def score(
        self,
        actual: NDArray[np.float64],
        fitted: NDArray[np.float64],
        is_promoted: NDArray[np.bool_] | None = None,
        trend_coefficient: float = 0.0,
    ) -> FitQuality:
        """
        Score a fit.

        Args:
            actual: Actual values per period
            fitted: Baseline values per period
            is_promoted: Mask of periods to exclude, promoted or warmup (default: none)
            trend_coefficient: Passed through from the model

        Returns:
            FitQuality
        """
        actual = np.asarray(actual, dtype=np.float64)
        fitted = np.asarray(fitted, dtype=np.float64)
        if is_promoted is None:
            keep = np.ones(len(actual), dtype=bool)
        else:
            keep = ~np.asarray(is_promoted, dtype=bool)

        actual = actual[keep]
        fitted = fitted[keep]
        n = len(actual)

        if n == 0:
            logger.warning("Every period is promoted or warmup; fit quality is undefined")
            return FitQuality(
                r_squared=None,
                mape=None,
                confidence_half_width=None,
                residual_std_error=None,
                trend_coefficient=trend_coefficient,
                n_scored=0,
                confidence_level=self.confidence_level,
            )

        residuals = actual - fitted
        stderr = float(np.std(residuals, ddof=1)) if n > 1 else 0.0

        return FitQuality(
            r_squared=r_squared(actual, fitted),
            mape=mape(actual, fitted),
            confidence_half_width=self._z * stderr,
            residual_std_error=stderr,
            trend_coefficient=trend_coefficient,
            n_scored=n,
            confidence_level=self.confidence_level,
        )
