"""
Core type definitions for PROMOLIFT.

Defines enums and value objects used throughout the system.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum

import pandas as pd

from promolift.core.constants import SEASONAL_CYCLE


class BaselineType(str, Enum):
    """Which measure of the history is modeled."""

    VOLUME = "volume"
    REVENUE = "revenue"
    UNITS = "units"

    @property
    def column(self) -> str:
        """History column holding this measure."""
        return f"actual_{self.value}"


class CalculationMethod(str, Enum):
    """Available baseline fitting strategies."""

    HISTORICAL_AVERAGE = "historical_average"
    MOVING_AVERAGE = "moving_average"
    WEIGHTED_MOVING_AVERAGE = "weighted_moving_average"
    LINEAR_REGRESSION = "linear_regression"
    SEASONAL_DECOMPOSITION = "seasonal_decomposition"
    EXPONENTIAL_SMOOTHING = "exponential_smoothing"

    @property
    def label(self) -> str:
        """Human-readable name."""
        return self.value.replace("_", " ").title()


class Granularity(str, Enum):
    """Period length of a baseline series."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"

    @property
    def seasonal_cycle(self) -> int:
        """Number of periods in one seasonal cycle."""
        return SEASONAL_CYCLE[self.value]

    @property
    def periods_per_week(self) -> float:
        """Conversion factor from a per-period mean to a per-week mean."""
        return {
            Granularity.DAILY: 7.0,
            Granularity.WEEKLY: 1.0,
            Granularity.MONTHLY: 12.0 / 52.0,
            Granularity.QUARTERLY: 4.0 / 52.0,
        }[self]

    def shift(self, origin: date, steps: int) -> date:
        """Start of the period `steps` periods after the one starting at origin."""
        offset = {
            Granularity.DAILY: pd.DateOffset(days=steps),
            Granularity.WEEKLY: pd.DateOffset(weeks=steps),
            Granularity.MONTHLY: pd.DateOffset(months=steps),
            Granularity.QUARTERLY: pd.DateOffset(months=3 * steps),
        }[self]
        return (pd.Timestamp(origin) + offset).date()

    def calendar(self, origin: date, count: int) -> list[tuple[date, date]]:
        """
        Contiguous, non-overlapping (start, inclusive end) periods from origin.

        Each start is computed from the origin rather than from the previous
        start, so month-end origins do not drift.
        """
        starts = [self.shift(origin, k) for k in range(count + 1)]
        return [
            (starts[k], starts[k + 1] - timedelta(days=1))
            for k in range(count)
        ]

    def label(self, period_start: date) -> str:
        """Display label for a period, e.g. 2024-W03 or 2024-Q1."""
        ts = pd.Timestamp(period_start)
        if self is Granularity.DAILY:
            return ts.strftime("%Y-%m-%d")
        if self is Granularity.WEEKLY:
            iso = ts.isocalendar()
            return f"{iso.year}-W{iso.week:02d}"
        if self is Granularity.MONTHLY:
            return ts.strftime("%Y-%m")
        return f"{ts.year}-Q{ts.quarter}"


class BaselineStatus(str, Enum):
    """
    Baseline lifecycle states.

    draft -> calculating -> active -> approved
    active/approved -> calculating (recalculation)
    any stable state -> archived (terminal)

    CALCULATING is the only transient state.
    """

    DRAFT = "draft"
    CALCULATING = "calculating"
    ACTIVE = "active"
    APPROVED = "approved"
    ARCHIVED = "archived"

    @property
    def is_stable(self) -> bool:
        return self is not BaselineStatus.CALCULATING

    @property
    def is_ready(self) -> bool:
        """Whether decompositions may be computed against this baseline."""
        return self in (BaselineStatus.ACTIVE, BaselineStatus.APPROVED)

    def can_transition_to(self, target: "BaselineStatus") -> bool:
        return target in _TRANSITIONS[self]


_TRANSITIONS: dict[BaselineStatus, frozenset[BaselineStatus]] = {
    BaselineStatus.DRAFT: frozenset({BaselineStatus.CALCULATING, BaselineStatus.ARCHIVED}),
    BaselineStatus.CALCULATING: frozenset({BaselineStatus.ACTIVE}),
    BaselineStatus.ACTIVE: frozenset({
        BaselineStatus.APPROVED,
        BaselineStatus.CALCULATING,
        BaselineStatus.DRAFT,
        BaselineStatus.ARCHIVED,
    }),
    BaselineStatus.APPROVED: frozenset({
        BaselineStatus.CALCULATING,
        BaselineStatus.DRAFT,
        BaselineStatus.ARCHIVED,
    }),
    BaselineStatus.ARCHIVED: frozenset(),
}


@dataclass(frozen=True)
class Scope:
    """
    Filters selecting which sales history a baseline is built from.

    Passed explicitly into every history query; there is no ambient scope.
    """

    customer_id: str | None = None
    product_id: str | None = None
    category: str | None = None
    brand: str | None = None
    channel: str | None = None
    region: str | None = None

    def to_dict(self) -> dict[str, str]:
        """Only the filters that are set."""
        return {k: v for k, v in self.__dict__.items() if v is not None}

    @property
    def is_empty(self) -> bool:
        return not self.to_dict()

    def matches(self, row: dict) -> bool:
        """Whether a history record falls inside this scope."""
        return all(row.get(k) == v for k, v in self.to_dict().items())


@dataclass(frozen=True)
class EffectRates:
    """Rates applied to incremental volume during decomposition. Each in [0, 1]."""

    cannibalization: float = 0.0
    pantry_loading: float = 0.0
    halo: float = 0.0
    pull_forward: float = 0.0

    @property
    def loss_rate(self) -> float:
        """Share of incremental volume that is not net-new demand."""
        return self.cannibalization + self.pantry_loading + self.pull_forward

    def to_dict(self) -> dict[str, float]:
        return {
            "cannibalization_rate": self.cannibalization,
            "pantry_loading_rate": self.pantry_loading,
            "halo_rate": self.halo,
            "pull_forward_rate": self.pull_forward,
        }

    @classmethod
    def from_dict(cls, data: dict[str, float]) -> "EffectRates":
        """Accept either 'cannibalization' or 'cannibalization_rate' style keys."""
        def pick(name: str) -> float:
            value = data.get(f"{name}_rate", data.get(name, 0.0))
            return float(value) if value is not None else 0.0

        return cls(
            cannibalization=pick("cannibalization"),
            pantry_loading=pick("pantry_loading"),
            halo=pick("halo"),
            pull_forward=pick("pull_forward"),
        )


@dataclass(frozen=True, eq=False)
class Promotion:
    """A promotion as supplied by the promotion provider. Read-only once built."""

    promotion_id: str
    run_start: date
    run_end: date
    cost: float
    average_selling_price: float
    # One row per period: period_start, period_end, actual_volume, optional actual_revenue
    actuals: pd.DataFrame = field(default_factory=pd.DataFrame)

    @property
    def total_volume(self) -> float:
        if self.actuals.empty or "actual_volume" not in self.actuals.columns:
            return 0.0
        return float(self.actuals["actual_volume"].sum())

    @property
    def total_revenue(self) -> float | None:
        if self.actuals.empty or "actual_revenue" not in self.actuals.columns:
            return None
        return float(self.actuals["actual_revenue"].sum())
