"""
Goodness-of-fit metrics.

Pure functions shared by the model library (parameter selection) and the
statistical scorer (reported diagnostics). Undefined results are None,
never a sentinel 0 or 100.
"""

import numpy as np
from numpy.typing import NDArray


def mape(actual: NDArray[np.float64], fitted: NDArray[np.float64]) -> float | None:
    """
    Mean absolute percentage error.

    Formula: mean(|actual - fitted| / actual) * 100 over points with actual > 0

    Returns:
        MAPE in percent, or None when no point has a positive actual
    """
    actual = np.asarray(actual, dtype=np.float64)
    fitted = np.asarray(fitted, dtype=np.float64)
    mask = actual > 0
    if not mask.any():
        return None
    return float(np.mean(np.abs(actual[mask] - fitted[mask]) / actual[mask]) * 100)


def r_squared(actual: NDArray[np.float64], fitted: NDArray[np.float64]) -> float | None:
    """
    Coefficient of determination.

    Formula: 1 - SS_res / SS_tot

    Returns:
        R², or None when actuals have zero variance (SS_tot == 0) or are empty
    """
    actual = np.asarray(actual, dtype=np.float64)
    fitted = np.asarray(fitted, dtype=np.float64)
    if len(actual) == 0:
        return None
    ss_tot = float(np.sum((actual - actual.mean()) ** 2))
    if ss_tot == 0:
        return None
    ss_res = float(np.sum((actual - fitted) ** 2))
    return 1.0 - ss_res / ss_tot


def mean_absolute_error(actual: NDArray[np.float64], fitted: NDArray[np.float64]) -> float:
    """Mean absolute error. Used when MAPE is undefined."""
    actual = np.asarray(actual, dtype=np.float64)
    fitted = np.asarray(fitted, dtype=np.float64)
    if len(actual) == 0:
        return 0.0
    return float(np.mean(np.abs(actual - fitted)))


def fit_error(actual: NDArray[np.float64], fitted: NDArray[np.float64]) -> float:
    """
    Selection criterion for parameter grids.

    MAPE when defined, else MAE, so all-zero series still rank candidates.
    """
    value = mape(actual, fitted)
    if value is None:
        return mean_absolute_error(actual, fitted)
    return value
