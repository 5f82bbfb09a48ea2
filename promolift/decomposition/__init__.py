"""
Promotional volume decomposition.

Splits promoted-period volume into base, incremental, cannibalization,
pantry-loading, halo and pull-forward, and scores lift, ROI and efficiency.
"""

from promolift.decomposition.decomposer import VolumeDecomposer, apportion, validate_rates
from promolift.decomposition.efficiency import efficiency_score

__all__ = [
    "VolumeDecomposer",
    "apportion",
    "validate_rates",
    "efficiency_score",
]
