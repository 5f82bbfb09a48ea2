"""
Baseline records, persistence and the lifecycle-owning calculator.
"""

from promolift.baseline.calculator import BaselineCalculator, prepare_history
from promolift.baseline.storage import BaselineStorage, format_baseline_report
from promolift.baseline.types import Baseline, BaselinePeriod, VolumeDecomposition

__all__ = [
    "Baseline",
    "BaselinePeriod",
    "VolumeDecomposition",
    "BaselineStorage",
    "format_baseline_report",
    "BaselineCalculator",
    "prepare_history",
]
