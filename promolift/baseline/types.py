"""
Baseline type definitions for PROMOLIFT.

Defines the Baseline record, its per-period rows, and the immutable
volume decomposition records computed against it.

DESIGN PRINCIPLE:
    A promotion's lift means nothing without a baseline. Every
    decomposition must reference a calculated, stored baseline.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any

from promolift.core.constants import (
    DEFAULT_CONFIDENCE_LEVEL,
    DEFAULT_OUTLIER_THRESHOLD,
    DEFAULT_PERIODS_USED,
)
from promolift.core.exceptions import InputValidationError
from promolift.core.types import (
    BaselineStatus,
    BaselineType,
    CalculationMethod,
    EffectRates,
    Granularity,
    Scope,
)


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def _parse_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


@dataclass(frozen=True)
class BaselinePeriod:
    """One period of a calculated baseline."""

    period_number: int
    period_label: str
    period_start: date
    period_end: date  # inclusive
    base_volume: float
    seasonality_factor: float = 1.0
    trend_adjustment: float = 0.0
    actual_volume: float | None = None
    is_promoted: bool = False
    promotion_id: str | None = None

    @property
    def variance_volume(self) -> float | None:
        """actual - base"""
        if self.actual_volume is None:
            return None
        return self.actual_volume - self.base_volume

    @property
    def variance_pct(self) -> float | None:
        if self.actual_volume is None or self.base_volume <= 0:
            return None
        return (self.actual_volume - self.base_volume) / self.base_volume * 100

    @property
    def incremental_volume(self) -> float:
        """Volume above base on a promoted period; 0 otherwise."""
        if not self.is_promoted or self.actual_volume is None:
            return 0.0
        return max(0.0, self.actual_volume - self.base_volume)

    @property
    def days(self) -> int:
        return (self.period_end - self.period_start).days + 1

    def overlap_days(self, start: date, end: date) -> int:
        """Days of this period inside the inclusive window [start, end]."""
        lo = max(self.period_start, start)
        hi = min(self.period_end, end)
        return max(0, (hi - lo).days + 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "period_number": self.period_number,
            "period_label": self.period_label,
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "base_volume": self.base_volume,
            "seasonality_factor": self.seasonality_factor,
            "trend_adjustment": self.trend_adjustment,
            "actual_volume": self.actual_volume,
            "variance_volume": self.variance_volume,
            "variance_pct": self.variance_pct,
            "is_promoted": self.is_promoted,
            "promotion_id": self.promotion_id,
            "incremental_volume": self.incremental_volume,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BaselinePeriod":
        return cls(
            period_number=data["period_number"],
            period_label=data["period_label"],
            period_start=date.fromisoformat(data["period_start"]),
            period_end=date.fromisoformat(data["period_end"]),
            base_volume=data["base_volume"],
            seasonality_factor=data.get("seasonality_factor", 1.0),
            trend_adjustment=data.get("trend_adjustment", 0.0),
            actual_volume=data.get("actual_volume"),
            is_promoted=data.get("is_promoted", False),
            promotion_id=data.get("promotion_id"),
        )


@dataclass
class Baseline:
    """
    A baseline definition and, once calculated, its results.

    Owned exclusively by BaselineCalculator: status transitions and the
    period set are only changed there. The period tuple is replaced as a
    whole on every recalculation, never edited in place.
    """

    # Identification
    baseline_id: str
    name: str
    description: str = ""

    # Configuration
    baseline_type: BaselineType = BaselineType.VOLUME
    calculation_method: CalculationMethod = CalculationMethod.HISTORICAL_AVERAGE
    granularity: Granularity = Granularity.WEEKLY
    scope: Scope = field(default_factory=Scope)
    start_date: date | None = None
    end_date: date | None = None
    base_year: int | None = None
    periods_used: int = DEFAULT_PERIODS_USED
    seasonality_enabled: bool = True
    trend_enabled: bool = True
    outlier_removal_enabled: bool = True
    outlier_threshold: float = DEFAULT_OUTLIER_THRESHOLD
    confidence_level: float = DEFAULT_CONFIDENCE_LEVEL

    # Lifecycle
    status: BaselineStatus = BaselineStatus.DRAFT
    previous_status: BaselineStatus | None = None  # stable state to restore
    created_at: datetime | None = None
    updated_at: datetime | None = None
    calculated_at: datetime | None = None
    approved_at: datetime | None = None
    approved_by: str | None = None

    # Derived aggregates
    total_base_volume: float | None = None
    avg_weekly_volume: float | None = None
    r_squared: float | None = None
    mape: float | None = None
    trend_coefficient: float | None = None
    confidence_half_width: float | None = None
    seasonality_index: float | None = None
    outliers_replaced: int = 0

    periods: tuple[BaselinePeriod, ...] = ()

    # Drift warnings from the calculation that produced this instance; not persisted
    drift_warnings: tuple[str, ...] = field(default=(), compare=False, repr=False)

    schema_version: str = "1.0"

    CONFIG_FIELDS = (
        "name", "description", "baseline_type", "calculation_method", "granularity",
        "scope", "start_date", "end_date", "base_year", "periods_used",
        "seasonality_enabled", "trend_enabled", "outlier_removal_enabled",
        "outlier_threshold", "confidence_level",
    )

    def __post_init__(self) -> None:
        # Accept plain strings from callers and config files
        self.baseline_type = self._coerce(BaselineType, "baseline_type")
        self.calculation_method = self._coerce(CalculationMethod, "calculation_method")
        self.granularity = self._coerce(Granularity, "granularity")
        self.status = self._coerce(BaselineStatus, "status")

    def _coerce(self, enum_cls: type, field_name: str):
        value = getattr(self, field_name)
        try:
            return enum_cls(value)
        except ValueError as e:
            raise InputValidationError(
                f"Unknown {field_name.replace('_', ' ')}",
                field=field_name,
                value=value,
                stage="validate",
                baseline_id=self.baseline_id,
            ) from e

    def validate(self) -> None:
        """
        Reject bad configuration before any computation.

        Raises:
            InputValidationError: On the first invalid field
        """
        checks = [
            (self.periods_used > 0, "periods_used must be > 0", "periods_used", self.periods_used),
            (
                0.0 < self.confidence_level < 1.0,
                "confidence_level must be within (0, 1)",
                "confidence_level",
                self.confidence_level,
            ),
            (
                self.outlier_threshold > 0,
                "outlier_threshold must be > 0",
                "outlier_threshold",
                self.outlier_threshold,
            ),
            (
                self.start_date is None or self.end_date is None or self.start_date <= self.end_date,
                "start_date must not be after end_date",
                "start_date",
                self.start_date,
            ),
        ]
        for ok, message, field_name, value in checks:
            if not ok:
                raise InputValidationError(
                    message,
                    field=field_name,
                    value=value,
                    stage="validate",
                    baseline_id=self.baseline_id,
                )

    @property
    def is_calculated(self) -> bool:
        return len(self.periods) > 0

    @property
    def coverage(self) -> tuple[date, date] | None:
        """First period start and last period end."""
        if not self.periods:
            return None
        return self.periods[0].period_start, self.periods[-1].period_end

    def with_changes(self, **changes: Any) -> "Baseline":
        """Copy with fields replaced; the stored record is never mutated in place."""
        return replace(self, **changes)

    def results_dict(self) -> dict[str, Any]:
        """Calculation output as exposed to callers."""
        return {
            "baseline_id": self.baseline_id,
            "status": self.status.value,
            "total_base_volume": self.total_base_volume,
            "avg_weekly_volume": self.avg_weekly_volume,
            "r_squared": self.r_squared,
            "mape": self.mape,
            "trend_coefficient": self.trend_coefficient,
            "confidence_half_width": self.confidence_half_width,
            "seasonality_index": self.seasonality_index,
            "outliers_replaced": self.outliers_replaced,
            "drift_warnings": list(self.drift_warnings),
            "periods": [p.to_dict() for p in self.periods],
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "baseline_id": self.baseline_id,
            "name": self.name,
            "description": self.description,
            "baseline_type": self.baseline_type.value,
            "calculation_method": self.calculation_method.value,
            "granularity": self.granularity.value,
            "scope": self.scope.to_dict(),
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "base_year": self.base_year,
            "periods_used": self.periods_used,
            "seasonality_enabled": self.seasonality_enabled,
            "trend_enabled": self.trend_enabled,
            "outlier_removal_enabled": self.outlier_removal_enabled,
            "outlier_threshold": self.outlier_threshold,
            "confidence_level": self.confidence_level,
            "status": self.status.value,
            "previous_status": self.previous_status.value if self.previous_status else None,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "calculated_at": _iso(self.calculated_at),
            "approved_at": _iso(self.approved_at),
            "approved_by": self.approved_by,
            "total_base_volume": self.total_base_volume,
            "avg_weekly_volume": self.avg_weekly_volume,
            "r_squared": self.r_squared,
            "mape": self.mape,
            "trend_coefficient": self.trend_coefficient,
            "confidence_half_width": self.confidence_half_width,
            "seasonality_index": self.seasonality_index,
            "outliers_replaced": self.outliers_replaced,
            "periods": [p.to_dict() for p in self.periods],
            "schema_version": self.schema_version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Baseline":
        previous = data.get("previous_status")
        return cls(
            baseline_id=data["baseline_id"],
            name=data["name"],
            description=data.get("description", ""),
            baseline_type=data.get("baseline_type", BaselineType.VOLUME.value),
            calculation_method=data.get(
                "calculation_method", CalculationMethod.HISTORICAL_AVERAGE.value
            ),
            granularity=data.get("granularity", Granularity.WEEKLY.value),
            scope=Scope(**data.get("scope", {})),
            start_date=_parse_date(data.get("start_date")),
            end_date=_parse_date(data.get("end_date")),
            base_year=data.get("base_year"),
            periods_used=data.get("periods_used", DEFAULT_PERIODS_USED),
            seasonality_enabled=data.get("seasonality_enabled", True),
            trend_enabled=data.get("trend_enabled", True),
            outlier_removal_enabled=data.get("outlier_removal_enabled", True),
            outlier_threshold=data.get("outlier_threshold", DEFAULT_OUTLIER_THRESHOLD),
            confidence_level=data.get("confidence_level", DEFAULT_CONFIDENCE_LEVEL),
            status=data.get("status", BaselineStatus.DRAFT.value),
            previous_status=BaselineStatus(previous) if previous else None,
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
            calculated_at=_parse_datetime(data.get("calculated_at")),
            approved_at=_parse_datetime(data.get("approved_at")),
            approved_by=data.get("approved_by"),
            total_base_volume=data.get("total_base_volume"),
            avg_weekly_volume=data.get("avg_weekly_volume"),
            r_squared=data.get("r_squared"),
            mape=data.get("mape"),
            trend_coefficient=data.get("trend_coefficient"),
            confidence_half_width=data.get("confidence_half_width"),
            seasonality_index=data.get("seasonality_index"),
            outliers_replaced=data.get("outliers_replaced", 0),
            periods=tuple(BaselinePeriod.from_dict(p) for p in data.get("periods", [])),
            schema_version=data.get("schema_version", "1.0"),
        )


@dataclass(frozen=True)
class VolumeDecomposition:
    """
    Split of a promotion's volume into causal components.

    Immutable once created: a new request creates a new record.

    INVARIANT:
        cannibalization + pantry_loading + pull_forward <= incremental
        halo is an additive benefit outside that bound.
    """

    decomposition_id: str
    baseline_id: str
    promotion_id: str
    period_start: date
    period_end: date

    total_volume: float
    base_volume: float
    incremental_volume: float
    cannibalization_volume: float
    pantry_loading_volume: float
    halo_volume: float
    pull_forward_volume: float

    lift_pct: float | None  # None when base_volume is 0
    roi: float | None  # None when trade_spend is 0
    efficiency_score: float  # 0-100

    total_revenue: float | None = None
    base_revenue: float | None = None
    incremental_revenue: float = 0.0
    trade_spend: float = 0.0
    underperformed: bool = False
    rates: EffectRates = field(default_factory=EffectRates)
    created_at: datetime | None = None

    @property
    def net_incremental_volume(self) -> float:
        """Conservative incremental volume: leakage deducted, halo not added."""
        return (
            self.incremental_volume
            - self.cannibalization_volume
            - self.pantry_loading_volume
            - self.pull_forward_volume
        )

    @property
    def incremental_profit(self) -> float:
        return self.incremental_revenue - self.trade_spend

    def to_dict(self) -> dict[str, Any]:
        return {
            "decomposition_id": self.decomposition_id,
            "baseline_id": self.baseline_id,
            "promotion_id": self.promotion_id,
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "total_volume": self.total_volume,
            "base_volume": self.base_volume,
            "incremental_volume": self.incremental_volume,
            "cannibalization_volume": self.cannibalization_volume,
            "pantry_loading_volume": self.pantry_loading_volume,
            "halo_volume": self.halo_volume,
            "pull_forward_volume": self.pull_forward_volume,
            "net_incremental_volume": self.net_incremental_volume,
            "lift_pct": self.lift_pct,
            "roi": self.roi,
            "efficiency_score": self.efficiency_score,
            "total_revenue": self.total_revenue,
            "base_revenue": self.base_revenue,
            "incremental_revenue": self.incremental_revenue,
            "trade_spend": self.trade_spend,
            "incremental_profit": self.incremental_profit,
            "underperformed": self.underperformed,
            "rates": self.rates.to_dict(),
            "created_at": _iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VolumeDecomposition":
        return cls(
            decomposition_id=data["decomposition_id"],
            baseline_id=data["baseline_id"],
            promotion_id=data["promotion_id"],
            period_start=date.fromisoformat(data["period_start"]),
            period_end=date.fromisoformat(data["period_end"]),
            total_volume=data["total_volume"],
            base_volume=data["base_volume"],
            incremental_volume=data["incremental_volume"],
            cannibalization_volume=data["cannibalization_volume"],
            pantry_loading_volume=data["pantry_loading_volume"],
            halo_volume=data["halo_volume"],
            pull_forward_volume=data["pull_forward_volume"],
            lift_pct=data.get("lift_pct"),
            roi=data.get("roi"),
            efficiency_score=data["efficiency_score"],
            total_revenue=data.get("total_revenue"),
            base_revenue=data.get("base_revenue"),
            incremental_revenue=data.get("incremental_revenue", 0.0),
            trade_spend=data.get("trade_spend", 0.0),
            underperformed=data.get("underperformed", False),
            rates=EffectRates.from_dict(data.get("rates", {})),
            created_at=_parse_datetime(data.get("created_at")),
        )
