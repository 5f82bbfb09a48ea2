"""Fit-quality scoring for baseline models."""

from promolift.scoring.fit_quality import FitQuality, StatisticalScorer, z_value
from promolift.scoring.metrics import mape, r_squared

__all__ = ["FitQuality", "StatisticalScorer", "z_value", "mape", "r_squared"]
