"""
Volume decomposition.

Splits a promotion's actual volume into base, incremental and the causal
components of the incremental volume, then scores lift, ROI and efficiency.

INVARIANT:
    cannibalization + pantry_loading + pull_forward <= incremental
    Guaranteed by rejecting loss rates that sum above 1. Halo is an
    additive benefit and is not part of that bound.

Components are stored gross; net incremental volume is derived, never
pre-netted.
"""

import logging
import uuid
from datetime import date, datetime, timezone

import pandas as pd

from promolift.baseline.types import Baseline, VolumeDecomposition
from promolift.core.config import EfficiencyPolicy
from promolift.core.exceptions import (
    BaselineNotReadyError,
    InputValidationError,
    NoOverlapError,
)
from promolift.core.types import EffectRates, Promotion
from promolift.decomposition.efficiency import efficiency_score


logger = logging.getLogger(__name__)

# Float slack when checking that loss rates sum to at most 1
RATE_TOLERANCE = 1e-9


def validate_rates(rates: EffectRates, promotion_id: str | None = None) -> None:
    """
    Reject rates outside [0, 1] and loss rates summing above 1.

    Raises:
        InputValidationError: On the first offending rate
    """
    for name, value in rates.to_dict().items():
        if not 0.0 <= value <= 1.0:
            raise InputValidationError(
                "Rate must be within [0, 1]",
                field=name,
                value=value,
                stage="validate",
                promotion_id=promotion_id,
            )
    if rates.loss_rate > 1.0 + RATE_TOLERANCE:
        raise InputValidationError(
            "cannibalization + pantry_loading + pull_forward rates exceed 1",
            field="rates",
            value=round(rates.loss_rate, 6),
            stage="validate",
            promotion_id=promotion_id,
        )


def _overlap_fraction(start: date, end: date, window_start: date, window_end: date) -> float:
    """Share of the inclusive span [start, end] inside the window."""
    days = (end - start).days + 1
    lo, hi = max(start, window_start), min(end, window_end)
    overlap = (hi - lo).days + 1
    if days <= 0 or overlap <= 0:
        return 0.0
    return overlap / days


def apportion(actuals: pd.DataFrame, column: str, window_start: date, window_end: date) -> float | None:
    """Sum a per-period actuals column over a window, prorating partial periods by day count."""
    if actuals.empty or column not in actuals.columns:
        return None
    total = 0.0
    for row in actuals.itertuples(index=False):
        fraction = _overlap_fraction(row.period_start, row.period_end, window_start, window_end)
        value = getattr(row, column)
        if fraction > 0 and pd.notna(value):
            total += float(value) * fraction
    return total


class VolumeDecomposer:
    """
    Decomposes promotion volume against a calculated baseline.

    Pure: reads the Baseline and Promotion it is given and returns a new
    VolumeDecomposition. Persisting the record is the caller's job.

    Formula:
        incremental     = max(0, total - base)
        component_x     = incremental * rate_x
        lift_pct        = (total - base) / base * 100      (None if base = 0)
        roi             = (incremental * asp - cost) / cost (None if cost = 0)
    """

    def __init__(self, policy: EfficiencyPolicy | None = None) -> None:
        self.policy = policy or EfficiencyPolicy()

    def resolve_base(self, baseline: Baseline, window_start: date, window_end: date) -> float:
        """
        Base volume of a window from overlapping baseline periods.

        Raises:
            NoOverlapError: If no period intersects the window
        """
        base = 0.0
        overlapping = 0
        for period in baseline.periods:
            days = period.overlap_days(window_start, window_end)
            if days > 0:
                overlapping += 1
                base += period.base_volume * days / period.days

        if overlapping == 0:
            coverage = baseline.coverage
            raise NoOverlapError(
                f"Window {window_start}..{window_end} outside baseline coverage "
                f"{coverage[0] if coverage else '-'}..{coverage[1] if coverage else '-'}",
                stage="decompose",
                baseline_id=baseline.baseline_id,
            )
        return base

    def decompose(
        self,
        baseline: Baseline,
        promotion: Promotion,
        rates: EffectRates,
        period_start: date | None = None,
        period_end: date | None = None,
    ) -> VolumeDecomposition:
        """
        Decompose a promotion's volume.

        Args:
            baseline: Active or approved baseline
            promotion: Promotion with actuals by period
            rates: Effect rates, each in [0, 1]
            period_start: Window start (defaults to promotion run start)
            period_end: Window end, inclusive (defaults to promotion run end).
                The window is clipped to the baseline's coverage.

        Returns:
            New, immutable VolumeDecomposition

        Raises:
            InputValidationError: Bad rates or window
            BaselineNotReadyError: Baseline not active/approved
            NoOverlapError: Window outside the baseline's periods
        """
        promotion_id = promotion.promotion_id
        validate_rates(rates, promotion_id=promotion_id)

        window_start = period_start or promotion.run_start
        window_end = period_end or promotion.run_end
        if window_start > window_end:
            raise InputValidationError(
                "Decomposition window starts after it ends",
                field="period_start",
                value=window_start,
                stage="validate",
                baseline_id=baseline.baseline_id,
                promotion_id=promotion_id,
            )

        if not baseline.status.is_ready:
            raise BaselineNotReadyError(
                "Baseline must be active or approved",
                status=baseline.status.value,
                stage="decompose",
                baseline_id=baseline.baseline_id,
                promotion_id=promotion_id,
            )

        base = self.resolve_base(baseline, window_start, window_end)

        # Total and base must cover the same days
        coverage_start, coverage_end = baseline.coverage
        covered_start = max(window_start, coverage_start)
        covered_end = min(window_end, coverage_end)
        if (covered_start, covered_end) != (window_start, window_end):
            logger.warning(
                f"Window {window_start}..{window_end} clipped to baseline {baseline.baseline_id} "
                f"coverage {covered_start}..{covered_end}"
            )

        total = apportion(promotion.actuals, "actual_volume", covered_start, covered_end)
        if total is None:
            raise InputValidationError(
                "Promotion has no actual volume",
                field="actuals",
                stage="validate",
                baseline_id=baseline.baseline_id,
                promotion_id=promotion_id,
            )
        total_revenue = apportion(promotion.actuals, "actual_revenue", covered_start, covered_end)

        incremental = max(0.0, total - base)
        underperformed = total < base
        if underperformed:
            logger.warning(
                f"Promotion {promotion_id} underperformed baseline {baseline.baseline_id}: "
                f"total {total:,.1f} < base {base:,.1f}"
            )

        cannibalization = incremental * rates.cannibalization
        pantry_loading = incremental * rates.pantry_loading
        pull_forward = incremental * rates.pull_forward
        halo = incremental * rates.halo

        lift_pct = (total - base) / base * 100 if base > 0 else None

        asp = promotion.average_selling_price
        incremental_revenue = incremental * asp
        cost = promotion.cost
        roi = (incremental_revenue - cost) / cost if cost > 0 else None

        score = efficiency_score(
            lift_pct=lift_pct,
            roi=roi,
            incremental=incremental,
            cannibalization=cannibalization,
            pantry_loading=pantry_loading,
            policy=self.policy,
        )

        decomposition = VolumeDecomposition(
            decomposition_id=uuid.uuid4().hex,
            baseline_id=baseline.baseline_id,
            promotion_id=promotion_id,
            period_start=covered_start,
            period_end=covered_end,
            total_volume=total,
            base_volume=base,
            incremental_volume=incremental,
            cannibalization_volume=cannibalization,
            pantry_loading_volume=pantry_loading,
            halo_volume=halo,
            pull_forward_volume=pull_forward,
            lift_pct=lift_pct,
            roi=roi,
            efficiency_score=score,
            total_revenue=total_revenue,
            base_revenue=base * asp if asp > 0 else None,
            incremental_revenue=incremental_revenue,
            trade_spend=cost,
            underperformed=underperformed,
            rates=rates,
            created_at=datetime.now(timezone.utc),
        )

        logger.info(
            f"Decomposed promotion {promotion_id}: base {base:,.1f}, "
            f"incremental {incremental:,.1f}, efficiency {score:.1f}"
        )
        return decomposition
