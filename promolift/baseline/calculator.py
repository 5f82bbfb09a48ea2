"""
Baseline calculator.

Owns the Baseline lifecycle and orchestrates one calculation:

    fetch history -> preprocess -> fit strategy -> score -> commit

State machine:
    draft -> calculating -> active -> approved
    active/approved -> calculating (recalculation)
    active/approved -> draft (configuration edited)
    any stable state -> archived (terminal)

GUARDRAILS:
    - A failed calculation restores the prior stable status; periods and
      aggregates are untouched (no partial commit).
    - Calculations of one baseline are serialized; a queued request that is
      no longer the latest is superseded instead of run.
    - The worker never writes. Only the requesting thread commits, so a
      timed-out worker that finishes late cannot overwrite anything.
"""

import itertools
import logging
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from datetime import date, datetime, timezone
from typing import Any

import numpy as np
import pandas as pd

from promolift.baseline.storage import BaselineStorage
from promolift.baseline.types import Baseline, BaselinePeriod
from promolift.core.config import EngineConfig
from promolift.core.constants import DEFAULT_CALCULATION_TIMEOUT_SECONDS
from promolift.core.exceptions import (
    BaselineNotFoundError,
    CalculationError,
    CalculationSupersededError,
    CalculationTimeoutError,
    DataFetchError,
    InsufficientDataError,
    InvalidStateTransitionError,
    PromoliftError,
)
from promolift.core.types import BaselineStatus, BaselineType, Granularity
from promolift.guardrails.drift import check_baseline_drift
from promolift.ingest.base import HistoricalSalesProvider
from promolift.models import ModelOptions, get_model
from promolift.preprocessing import TimeSeriesPreprocessor
from promolift.scoring import StatisticalScorer


logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class _KeyedLocks:
    """
    Per-baseline locks and calculation tickets.

    `calculation` serializes whole calculations of one baseline; `record`
    guards short read-modify-write cycles on the stored record. Different
    baselines never contend.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._calculation: dict[str, threading.Lock] = {}
        self._record: dict[str, threading.RLock] = {}
        self._latest: dict[str, int] = {}
        self._counter = itertools.count(1)

    def issue_ticket(self, key: str) -> int:
        with self._guard:
            ticket = next(self._counter)
            self._latest[key] = ticket
            return ticket

    def is_latest(self, key: str, ticket: int) -> bool:
        with self._guard:
            return self._latest.get(key) == ticket

    def calculation(self, key: str) -> threading.Lock:
        with self._guard:
            return self._calculation.setdefault(key, threading.Lock())

    def record(self, key: str) -> threading.RLock:
        with self._guard:
            return self._record.setdefault(key, threading.RLock())

    def forget(self, key: str) -> None:
        with self._guard:
            self._latest.pop(key, None)


class BaselineCalculator:
    """
    Calculates baselines and manages their lifecycle.

    Usage:
        calculator = BaselineCalculator(storage, provider)
        baseline = calculator.create(name="Cola 330ml weekly", granularity="weekly")
        baseline = calculator.calculate(baseline.baseline_id)
        calculator.approve(baseline.baseline_id, approved_by="analyst")
    """

    def __init__(
        self,
        storage: BaselineStorage,
        sales_provider: HistoricalSalesProvider,
        engine_config: EngineConfig | None = None,
        timeout_seconds: float = DEFAULT_CALCULATION_TIMEOUT_SECONDS,
        max_workers: int = 4,
    ) -> None:
        self.storage = storage
        self.sales_provider = sales_provider
        self.engine_config = engine_config or EngineConfig()
        self.timeout_seconds = timeout_seconds
        self._locks = _KeyedLocks()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="promolift-calc"
        )

    def close(self) -> None:
        """Release worker threads. Timed-out workers are not waited for."""
        self._executor.shutdown(wait=False, cancel_futures=True)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def get(self, baseline_id: str) -> Baseline:
        baseline = self.storage.load(baseline_id)
        if baseline is None:
            raise BaselineNotFoundError("Baseline not found", baseline_id=baseline_id)
        return baseline

    def list(
        self,
        status: BaselineStatus | str | None = None,
        baseline_type: BaselineType | str | None = None,
    ) -> list[Baseline]:
        """Stored baselines, optionally filtered by status and type."""
        baselines = self.storage.list_baselines()
        if status is not None:
            baselines = [b for b in baselines if b.status is BaselineStatus(status)]
        if baseline_type is not None:
            baselines = [b for b in baselines if b.baseline_type is BaselineType(baseline_type)]
        return baselines

    def create(self, name: str, baseline_id: str | None = None, **config: Any) -> Baseline:
        """
        Create a draft baseline.

        Args:
            name: Display name
            baseline_id: Optional explicit id (a uuid4 hex otherwise)
            **config: Any Baseline configuration field

        Raises:
            InputValidationError: If the configuration is invalid
        """
        baseline_id = baseline_id or uuid.uuid4().hex
        if self.storage.exists(baseline_id):
            raise InvalidStateTransitionError(
                "Baseline already exists",
                target=BaselineStatus.DRAFT.value,
                stage="create",
                baseline_id=baseline_id,
            )

        now = _now()
        baseline = Baseline(
            baseline_id=baseline_id,
            name=name,
            status=BaselineStatus.DRAFT,
            created_at=now,
            updated_at=now,
            **self._config_only(config),
        )
        baseline.validate()
        self.storage.save(baseline)
        logger.info(f"Created baseline {baseline_id} ({baseline.calculation_method.value})")
        return baseline

    def update(self, baseline_id: str, **changes: Any) -> Baseline:
        """
        Edit configuration fields.

        An active or approved baseline returns to draft: its periods no
        longer reflect the configuration and must be recalculated.
        """
        changes = self._config_only(changes)
        with self._locks.record(baseline_id):
            baseline = self.get(baseline_id)
            if baseline.status in (BaselineStatus.CALCULATING, BaselineStatus.ARCHIVED):
                raise InvalidStateTransitionError(
                    "Baseline cannot be edited in its current state",
                    current=baseline.status.value,
                    stage="update",
                    baseline_id=baseline_id,
                )

            status = baseline.status
            if status.is_ready:
                logger.info(f"Baseline {baseline_id} edited while {status.value}; back to draft")
                status = BaselineStatus.DRAFT

            updated = baseline.with_changes(**changes, status=status, updated_at=_now())
            updated.validate()
            self.storage.save(updated)
            return updated

    def approve(self, baseline_id: str, approved_by: str | None = None) -> Baseline:
        """Mark an active baseline approved. No recomputation."""
        with self._locks.record(baseline_id):
            baseline = self.get(baseline_id)
            self._check_transition(baseline, BaselineStatus.APPROVED, stage="approve")
            now = _now()
            approved = baseline.with_changes(
                status=BaselineStatus.APPROVED,
                approved_at=now,
                approved_by=approved_by,
                updated_at=now,
            )
            self.storage.save(approved)
            logger.info(f"Approved baseline {baseline_id}")
            return approved

    def archive(self, baseline_id: str) -> Baseline:
        with self._locks.record(baseline_id):
            baseline = self.get(baseline_id)
            self._check_transition(baseline, BaselineStatus.ARCHIVED, stage="archive")
            archived = baseline.with_changes(status=BaselineStatus.ARCHIVED, updated_at=_now())
            self.storage.save(archived)
            logger.info(f"Archived baseline {baseline_id}")
            return archived

    def delete(self, baseline_id: str) -> None:
        """Delete a baseline that is not mid-calculation, with its decompositions."""
        with self._locks.record(baseline_id):
            baseline = self.get(baseline_id)
            if baseline.status is BaselineStatus.CALCULATING:
                raise InvalidStateTransitionError(
                    "Cannot delete a baseline while it is calculating",
                    current=baseline.status.value,
                    stage="delete",
                    baseline_id=baseline_id,
                )
            self.storage.delete(baseline_id)
            self._locks.forget(baseline_id)

    def force_rollback(self, baseline_id: str) -> Baseline:
        """
        Return a baseline stuck in calculating to its prior stable status.

        Operator action after a CalculationTimeoutError. Also invalidates
        any calculation still queued for this baseline.
        """
        self._locks.issue_ticket(baseline_id)
        with self._locks.record(baseline_id):
            baseline = self.get(baseline_id)
            if baseline.status is not BaselineStatus.CALCULATING:
                raise InvalidStateTransitionError(
                    "Only a calculating baseline can be rolled back",
                    current=baseline.status.value,
                    stage="rollback",
                    baseline_id=baseline_id,
                )
            restored = baseline.previous_status or BaselineStatus.DRAFT
            rolled_back = baseline.with_changes(
                status=restored, previous_status=None, updated_at=_now()
            )
            self.storage.save(rolled_back)
            logger.warning(f"Rolled back baseline {baseline_id} to {restored.value}")
            return rolled_back

    # =========================================================================
    # Calculation
    # =========================================================================

    def calculate(self, baseline_id: str) -> Baseline:
        """
        Calculate a baseline and commit its periods and aggregates.

        Also accepted on a baseline left calculating by a timed-out run.

        Returns:
            The committed, active Baseline

        Raises:
            BaselineNotFoundError: Unknown id
            InputValidationError: Invalid configuration (nothing written)
            InvalidStateTransitionError: Archived baseline
            CalculationSupersededError: A newer request replaced this one
            CalculationTimeoutError: Wall-clock budget exceeded; status stays calculating
            CalculationError: Any other failure, wrapping the cause
        """
        baseline = self.get(baseline_id)
        baseline.validate()
        self._check_calculable(baseline)

        ticket = self._locks.issue_ticket(baseline_id)
        with self._locks.calculation(baseline_id):
            if not self._locks.is_latest(baseline_id, ticket):
                logger.warning(f"Calculation of {baseline_id} superseded by a newer request")
                raise CalculationSupersededError(
                    "Superseded by a newer calculation request",
                    stage="calculate",
                    baseline_id=baseline_id,
                )

            pending, previous = self._enter_calculating(baseline_id)
            logger.info(
                f"Calculating baseline {baseline_id} "
                f"({pending.calculation_method.value}, {pending.granularity.value})"
            )

            future = self._executor.submit(self._compute, pending)
            try:
                computed = future.result(timeout=self.timeout_seconds)
            except FuturesTimeoutError:
                future.cancel()
                logger.warning(
                    f"Calculation of {baseline_id} exceeded {self.timeout_seconds}s; "
                    "baseline left calculating"
                )
                raise CalculationTimeoutError(
                    "Calculation timed out",
                    timeout_seconds=self.timeout_seconds,
                    stage="calculate",
                    baseline_id=baseline_id,
                ) from None
            except Exception as e:
                self._restore(baseline_id, previous)
                stage = e.stage if isinstance(e, PromoliftError) and e.stage else "calculate"
                logger.error(f"Calculation of {baseline_id} failed at {stage}: {e}")
                raise CalculationError(
                    f"Calculation failed: {e}",
                    stage=stage,
                    baseline_id=baseline_id,
                ) from e

            return self._commit(baseline_id, ticket, computed)

    def _check_calculable(self, baseline: Baseline) -> None:
        if baseline.status is BaselineStatus.CALCULATING:
            return  # retry after timeout
        self._check_transition(baseline, BaselineStatus.CALCULATING, stage="calculate")

    def _enter_calculating(self, baseline_id: str) -> tuple[Baseline, BaselineStatus]:
        """Persist the calculating state; returns it with the status to restore."""
        with self._locks.record(baseline_id):
            baseline = self.get(baseline_id)
            self._check_calculable(baseline)
            if baseline.status is BaselineStatus.CALCULATING:
                previous = baseline.previous_status or BaselineStatus.DRAFT
            else:
                previous = baseline.status

            pending = baseline.with_changes(
                status=BaselineStatus.CALCULATING,
                previous_status=previous,
                updated_at=_now(),
            )
            self.storage.save(pending)
            return pending, previous

    def _restore(self, baseline_id: str, previous: BaselineStatus) -> None:
        with self._locks.record(baseline_id):
            baseline = self.storage.load(baseline_id)
            if baseline is None or baseline.status is not BaselineStatus.CALCULATING:
                return
            self.storage.save(
                baseline.with_changes(status=previous, previous_status=None, updated_at=_now())
            )

    def _commit(self, baseline_id: str, ticket: int, computed: Baseline) -> Baseline:
        """Write the computed baseline in one atomic save, if still ours to write."""
        with self._locks.record(baseline_id):
            stored = self.get(baseline_id)
            if (
                stored.status is not BaselineStatus.CALCULATING
                or not self._locks.is_latest(baseline_id, ticket)
            ):
                logger.warning(f"Baseline {baseline_id} changed during calculation; not committed")
                raise CalculationSupersededError(
                    "Baseline changed during calculation",
                    stage="commit",
                    baseline_id=baseline_id,
                )

            drift = check_baseline_drift(
                stored.to_dict(),
                computed.to_dict(),
                threshold_pct=self.engine_config.drift_threshold_pct,
            )

            now = _now()
            committed = computed.with_changes(
                status=BaselineStatus.ACTIVE,
                previous_status=None,
                calculated_at=now,
                updated_at=now,
                approved_at=None,
                approved_by=None,
                drift_warnings=tuple(str(w) for w in drift),
            )
            self.storage.save(committed)

        logger.info(
            f"Baseline {baseline_id} active: {len(committed.periods)} periods, "
            f"total base {committed.total_base_volume:,.1f}"
        )
        return committed

    def _compute(self, baseline: Baseline) -> Baseline:
        """
        Pure calculation core, run in a worker thread.

        Returns a copy of `baseline` with periods and aggregates filled in.
        Never touches storage.
        """
        history = self._fetch_history(baseline)
        frame = prepare_history(history, baseline)

        preprocessor = TimeSeriesPreprocessor(
            outlier_threshold=baseline.outlier_threshold,
            outlier_removal_enabled=baseline.outlier_removal_enabled,
            seasonality_enabled=baseline.seasonality_enabled,
            granularity=baseline.granularity,
        )
        cleaned = preprocessor.clean(frame["value"])

        options = ModelOptions(
            granularity=baseline.granularity,
            seasonality_enabled=baseline.seasonality_enabled,
            trend_enabled=baseline.trend_enabled,
            max_window=self.engine_config.max_moving_average_window,
            smoothing_grid=tuple(self.engine_config.smoothing_grid),
        )
        fit = get_model(baseline.calculation_method).fit(cleaned.values.to_numpy(), options)

        actual = frame["value"].to_numpy(dtype=float)
        excluded = frame["is_promoted"].to_numpy(dtype=bool).copy()
        excluded[:fit.warmup_periods] = True
        quality = StatisticalScorer(baseline.confidence_level).score(
            actual,
            fit.base_volume,
            is_promoted=excluded,
            trend_coefficient=fit.trend_coefficient,
        )

        periods = tuple(
            BaselinePeriod(
                period_number=i + 1,
                period_label=baseline.granularity.label(row.period_start),
                period_start=row.period_start,
                period_end=row.period_end,
                base_volume=float(fit.base_volume[i]),
                seasonality_factor=float(fit.seasonality_factor[i]),
                trend_adjustment=float(fit.trend_adjustment[i]),
                actual_volume=float(actual[i]),
                is_promoted=bool(row.is_promoted),
                promotion_id=row.promotion_id if isinstance(row.promotion_id, str) else None,
            )
            for i, row in enumerate(frame.itertuples(index=False))
        )

        factors = fit.seasonality_factor
        return baseline.with_changes(
            periods=periods,
            total_base_volume=float(np.sum(fit.base_volume)),
            avg_weekly_volume=float(np.mean(fit.base_volume)) * baseline.granularity.periods_per_week,
            r_squared=quality.r_squared,
            mape=quality.mape,
            trend_coefficient=quality.trend_coefficient,
            confidence_half_width=quality.confidence_half_width,
            seasonality_index=float(np.max(factors) / np.min(factors)),
            outliers_replaced=cleaned.outlier_count,
        )

    def _fetch_history(self, baseline: Baseline) -> pd.DataFrame:
        start, end = history_window(baseline)
        try:
            return self.sales_provider.get_series(baseline.scope, baseline.granularity, start, end)
        except PromoliftError:
            raise
        except Exception as e:
            raise DataFetchError(
                f"History fetch failed: {e}",
                source=self.sales_provider.SOURCE_NAME,
                stage="fetch",
                baseline_id=baseline.baseline_id,
            ) from e

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _config_only(config: dict[str, Any]) -> dict[str, Any]:
        unknown = set(config) - set(Baseline.CONFIG_FIELDS)
        if unknown:
            raise TypeError(f"Not configuration fields: {sorted(unknown)}")
        return config

    @staticmethod
    def _check_transition(baseline: Baseline, target: BaselineStatus, stage: str) -> None:
        if not baseline.status.can_transition_to(target):
            raise InvalidStateTransitionError(
                "Transition not allowed",
                current=baseline.status.value,
                target=target.value,
                stage=stage,
                baseline_id=baseline.baseline_id,
            )


def history_window(baseline: Baseline) -> tuple[date | None, date | None]:
    """Date window to fetch. base_year applies only when no explicit dates are set."""
    if baseline.start_date is None and baseline.end_date is None and baseline.base_year:
        return date(baseline.base_year, 1, 1), date(baseline.base_year, 12, 31)
    return baseline.start_date, baseline.end_date


def prepare_history(history: pd.DataFrame, baseline: Baseline) -> pd.DataFrame:
    """
    Align raw history onto a contiguous period calendar.

    Periods missing from the history are linearly interpolated and logged.
    The most recent `periods_used` periods are kept.

    Returns:
        DataFrame with period_start, period_end, value, is_promoted, promotion_id
    """
    column = baseline.baseline_type.column
    if history is None or history.empty:
        raise InsufficientDataError(
            "No history for baseline scope",
            required=1,
            available=0,
            stage="fetch",
            baseline_id=baseline.baseline_id,
        )
    if column not in history.columns:
        raise DataFetchError(
            f"History has no '{column}' column",
            stage="fetch",
            baseline_id=baseline.baseline_id,
        )

    df = history.copy()
    df["period_start"] = pd.to_datetime(df["period_start"]).dt.date
    if "is_promoted" not in df.columns:
        df["is_promoted"] = df["promotion_id"].notna() if "promotion_id" in df.columns else False
    if "promotion_id" not in df.columns:
        df["promotion_id"] = None
    df["is_promoted"] = df["is_promoted"].fillna(False).astype(bool)

    start, end = history_window(baseline)
    if start is not None:
        df = df[df["period_start"] >= start]
    if end is not None:
        df = df[df["period_start"] <= end]
    if df.empty:
        raise InsufficientDataError(
            "No history inside the baseline date range",
            required=1,
            available=0,
            stage="fetch",
            baseline_id=baseline.baseline_id,
        )

    df = df.sort_values("period_start", kind="stable")
    duplicates = int(df["period_start"].duplicated().sum())
    if duplicates:
        logger.warning(f"Dropping {duplicates} duplicate period(s); keeping the last row of each")
        df = df.drop_duplicates("period_start", keep="last")

    calendar = _calendar_covering(baseline.granularity, df["period_start"].iloc[0], df["period_start"].iloc[-1])
    aligned = pd.DataFrame(calendar, columns=["period_start", "period_end"])
    aligned = aligned.merge(
        df[["period_start", column, "is_promoted", "promotion_id"]],
        on="period_start",
        how="left",
    ).rename(columns={column: "value"})

    missing = int(aligned["value"].isna().sum())
    if missing:
        logger.warning(
            f"{missing} period(s) missing from history for {baseline.baseline_id}; interpolating"
        )
        aligned["value"] = aligned["value"].astype(float).interpolate(limit_direction="both")
    aligned["is_promoted"] = aligned["is_promoted"].fillna(False).astype(bool)

    return aligned.tail(baseline.periods_used).reset_index(drop=True)


def _calendar_covering(granularity: Granularity, first: date, last: date) -> list[tuple[date, date]]:
    """Calendar from `first` through the period starting at or before `last`."""
    count = 1
    while granularity.shift(first, count) <= last:
        count += 1
    return granularity.calendar(first, count)
