"""
Promotion efficiency score.

Weighted composite of three components, each normalized to [0, 1]:

    lift     = clip(lift_pct / lift_cap_pct, 0, 1)
    roi      = clip((roi - roi_floor) / (roi_cap - roi_floor), 0, 1)
    leakage  = 1 - (cannibalization + pantry_loading) / incremental

    score    = 100 * (w_lift * lift + w_roi * roi + w_leakage * leakage)

An undefined lift or ROI contributes 0. With no incremental volume there is
nothing to leak, but nothing was gained either, so leakage contributes 0.
Weights and caps come from EfficiencyPolicy (engine.yaml).
"""

import numpy as np

from promolift.core.config import EfficiencyPolicy


def _unit(value: float) -> float:
    return float(np.clip(value, 0.0, 1.0))


def lift_component(lift_pct: float | None, policy: EfficiencyPolicy) -> float:
    if lift_pct is None:
        return 0.0
    return _unit(lift_pct / policy.lift_cap_pct)


def roi_component(roi: float | None, policy: EfficiencyPolicy) -> float:
    if roi is None:
        return 0.0
    return _unit((roi - policy.roi_floor) / (policy.roi_cap - policy.roi_floor))


def leakage_component(incremental: float, cannibalization: float, pantry_loading: float) -> float:
    if incremental <= 0:
        return 0.0
    return _unit(1.0 - (cannibalization + pantry_loading) / incremental)


def efficiency_score(
    lift_pct: float | None,
    roi: float | None,
    incremental: float,
    cannibalization: float,
    pantry_loading: float,
    policy: EfficiencyPolicy | None = None,
) -> float:
    """
    Score a promotion in [0, 100].

    Args:
        lift_pct: Lift over base in percent (None if base is 0)
        roi: Return on trade spend (None if spend is 0)
        incremental: Incremental volume
        cannibalization: Cannibalized volume
        pantry_loading: Pantry-loaded volume
        policy: Weights and caps (defaults if omitted)

    Returns:
        Score rounded to 2 decimals
    """
    policy = policy or EfficiencyPolicy()
    raw = (
        policy.lift_weight * lift_component(lift_pct, policy)
        + policy.roi_weight * roi_component(roi, policy)
        + policy.leakage_weight * leakage_component(incremental, cannibalization, pantry_loading)
    )
    return round(float(np.clip(raw * 100.0, 0.0, 100.0)), 2)
