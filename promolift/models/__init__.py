"""
Baseline model library.

One pure fitting strategy per calculation method, selected by
CalculationMethod through a registry.
"""

from promolift.core.exceptions import InputValidationError
from promolift.core.types import CalculationMethod
from promolift.models.averages import (
    HistoricalAverageModel,
    MovingAverageModel,
    WeightedMovingAverageModel,
)
from promolift.models.base import BaselineModel, FitResult, ModelOptions
from promolift.models.regression import LinearRegressionModel
from promolift.models.seasonal import SeasonalDecompositionModel
from promolift.models.smoothing import ExponentialSmoothingModel


MODEL_REGISTRY: dict[CalculationMethod, BaselineModel] = {
    model.method: model
    for model in (
        HistoricalAverageModel(),
        MovingAverageModel(),
        WeightedMovingAverageModel(),
        LinearRegressionModel(),
        SeasonalDecompositionModel(),
        ExponentialSmoothingModel(),
    )
}


def get_model(method: CalculationMethod | str) -> BaselineModel:
    """Look up the strategy for a calculation method."""
    try:
        return MODEL_REGISTRY[CalculationMethod(method)]
    except ValueError as e:
        raise InputValidationError(
            "Unknown calculation method",
            field="calculation_method",
            value=method,
            stage="validate",
        ) from e


__all__ = [
    "BaselineModel",
    "FitResult",
    "ModelOptions",
    "HistoricalAverageModel",
    "MovingAverageModel",
    "WeightedMovingAverageModel",
    "LinearRegressionModel",
    "SeasonalDecompositionModel",
    "ExponentialSmoothingModel",
    "MODEL_REGISTRY",
    "get_model",
]
