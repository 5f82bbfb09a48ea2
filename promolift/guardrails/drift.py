"""
Baseline drift detection.

GUARDRAIL: Drift must never occur silently. When a recalculation moves a
baseline's aggregates by more than the threshold, a warning is logged and
returned so callers can surface it.
"""

import logging
from dataclasses import dataclass
from typing import Any

from promolift.core.constants import DEFAULT_DRIFT_THRESHOLD_PCT


logger = logging.getLogger(__name__)


# Aggregates compared between the stored and the recalculated baseline
DRIFT_METRICS = [
    ("total_base_volume", "Total Base Volume"),
    ("avg_weekly_volume", "Avg Weekly Volume"),
]


@dataclass(frozen=True)
class BaselineDriftWarning:
    """Significant change of a baseline aggregate between calculations."""

    baseline_id: str
    metric: str
    old_value: float
    new_value: float
    change_pct: float
    threshold_pct: float

    def __str__(self) -> str:
        return (
            f"BASELINE_DRIFT: {self.baseline_id} {self.metric} changed "
            f"{self.change_pct:+.1f}% ({self.old_value:,.2f} -> {self.new_value:,.2f}), "
            f"threshold {self.threshold_pct:.1f}%"
        )


def check_baseline_drift(
    old_baseline: dict[str, Any],
    new_baseline: dict[str, Any],
    threshold_pct: float = DEFAULT_DRIFT_THRESHOLD_PCT,
) -> list[BaselineDriftWarning]:
    """
    Compare aggregates of a recalculated baseline with the stored ones.

    Args:
        old_baseline: Baseline record (to_dict) as stored before recalculation
        new_baseline: Freshly calculated baseline record
        threshold_pct: Percentage change that triggers a warning

    Returns:
        List of drift warnings (empty if no significant drift or no prior results)
    """
    warnings = []
    baseline_id = new_baseline.get("baseline_id", "UNKNOWN")

    for attr, metric_name in DRIFT_METRICS:
        old_value = old_baseline.get(attr)
        new_value = new_baseline.get(attr)

        if old_value is None or new_value is None:
            continue

        if old_value == 0:
            # Can't calculate percentage change from zero
            if new_value != 0:
                logger.warning(
                    f"BASELINE_DRIFT: {baseline_id} {metric_name} changed from 0 to {new_value}"
                )
            continue

        change_pct = (new_value - old_value) / abs(old_value) * 100

        if abs(change_pct) > threshold_pct:
            warning = BaselineDriftWarning(
                baseline_id=baseline_id,
                metric=metric_name,
                old_value=old_value,
                new_value=new_value,
                change_pct=change_pct,
                threshold_pct=threshold_pct,
            )
            warnings.append(warning)
            logger.warning(str(warning))

    return warnings
