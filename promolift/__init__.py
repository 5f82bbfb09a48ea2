"""
PROMOLIFT - Baseline Estimation & Promotional Volume Decomposition

Estimates the volume a product would have sold absent a promotion (the
baseline) and decomposes promoted-period volume into:
- Base and incremental volume
- Cannibalization, pantry loading, pull-forward and halo effects
- Lift, ROI and an efficiency score

Analytical engine only. Approval workflows, settlement and UI live in the
host system.
"""

__version__ = "0.1.0"
__author__ = "PROMOLIFT Team"

from promolift.core.types import BaselineStatus, CalculationMethod, EffectRates

__all__ = [
    "BaselineStatus",
    "CalculationMethod",
    "EffectRates",
]
