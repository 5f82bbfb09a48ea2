"""
Operational guardrails for PROMOLIFT.

GUARDRAILS:
    1. Baseline drift between recalculations is logged, never silent.
"""

from promolift.guardrails.drift import BaselineDriftWarning, check_baseline_drift

__all__ = [
    "BaselineDriftWarning",
    "check_baseline_drift",
]
