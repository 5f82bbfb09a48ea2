"""
Preprocessing module for PROMOLIFT.

Cleans raw actuals before any baseline strategy sees them.
"""

from promolift.preprocessing.outliers import PreprocessResult, TimeSeriesPreprocessor, iqr_bounds

__all__ = [
    "PreprocessResult",
    "TimeSeriesPreprocessor",
    "iqr_bounds",
]
