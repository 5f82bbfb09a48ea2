"""
Baseline service.

Entry point for callers (scripts, a host REST layer). Wires settings,
storage, providers, the calculator and the decomposer together:

    create -> calculate -> approve -> decompose promotions against it

The numeric core stays pure; this module owns the I/O around it.
"""

import logging
from datetime import date
from typing import Any

import numpy as np

from promolift.baseline.calculator import BaselineCalculator
from promolift.baseline.storage import BaselineStorage
from promolift.baseline.types import Baseline, VolumeDecomposition
from promolift.core.config import EngineConfig, Settings, get_settings, load_engine_config
from promolift.core.exceptions import BaselineNotFoundError, ConfigurationError, DataFetchError
from promolift.core.types import (
    BaselineStatus,
    BaselineType,
    CalculationMethod,
    EffectRates,
    Granularity,
)
from promolift.decomposition.decomposer import VolumeDecomposer
from promolift.ingest.base import HistoricalSalesProvider, PromotionProvider
from promolift.ingest.rest import RestAPIClient, RestPromotionProvider, RestSalesProvider


logger = logging.getLogger(__name__)


def _mean(values: list[float | None]) -> float | None:
    defined = [v for v in values if v is not None]
    return float(np.mean(defined)) if defined else None


class BaselineService:
    """
    Facade over baseline calculation and volume decomposition.

    Providers default to the REST providers when PROMOLIFT_API_BASE_URL is
    set; otherwise they must be passed in.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        sales_provider: HistoricalSalesProvider | None = None,
        promotion_provider: PromotionProvider | None = None,
        storage: BaselineStorage | None = None,
        engine_config: EngineConfig | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.engine_config = engine_config or load_engine_config(self.settings.engine_config_path)
        self.storage = storage or BaselineStorage(self.settings.baselines_dir)

        self._client: RestAPIClient | None = None
        if sales_provider is None or promotion_provider is None:
            if self.settings.api_base_url:
                self._client = RestAPIClient(
                    self.settings.api_base_url,
                    api_token=self.settings.api_token,
                )
                sales_provider = sales_provider or RestSalesProvider(self._client)
                promotion_provider = promotion_provider or RestPromotionProvider(self._client)

        self.promotion_provider = promotion_provider
        self.calculator = (
            BaselineCalculator(
                self.storage,
                sales_provider,
                engine_config=self.engine_config,
                timeout_seconds=self.settings.calculation_timeout_seconds,
            )
            if sales_provider is not None
            else None
        )
        self.decomposer = VolumeDecomposer(self.engine_config.efficiency)

    def close(self) -> None:
        if self.calculator is not None:
            self.calculator.close()
        if self._client is not None:
            self._client.close()

    def __enter__(self) -> "BaselineService":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    @property
    def _calc(self) -> BaselineCalculator:
        if self.calculator is None:
            raise ConfigurationError(
                "No sales history provider configured (pass one or set PROMOLIFT_API_BASE_URL)",
                stage="config",
            )
        return self.calculator

    # =========================================================================
    # Baselines
    # =========================================================================

    def create_baseline(self, name: str, **config: Any) -> Baseline:
        return self._calc.create(name, **config)

    def update_baseline(self, baseline_id: str, **changes: Any) -> Baseline:
        return self._calc.update(baseline_id, **changes)

    def get_baseline(self, baseline_id: str) -> Baseline:
        return self._calc.get(baseline_id)

    def calculate_baseline(self, baseline_id: str) -> dict[str, Any]:
        """
        Calculate a baseline.

        Returns:
            Dict with status, aggregates and the period list
        """
        return self._calc.calculate(baseline_id).results_dict()

    def approve_baseline(self, baseline_id: str, approved_by: str | None = None) -> str:
        """Approve an active baseline. Returns the new status."""
        return self._calc.approve(baseline_id, approved_by=approved_by).status.value

    def archive_baseline(self, baseline_id: str) -> str:
        return self._calc.archive(baseline_id).status.value

    def delete_baseline(self, baseline_id: str) -> None:
        self._calc.delete(baseline_id)

    def rollback_baseline(self, baseline_id: str) -> str:
        """Recover a baseline left calculating by a timeout. Returns the restored status."""
        return self._calc.force_rollback(baseline_id).status.value

    def list_baselines(
        self,
        status: BaselineStatus | str | None = None,
        baseline_type: BaselineType | str | None = None,
    ) -> list[Baseline]:
        return self._calc.list(status=status, baseline_type=baseline_type)

    # =========================================================================
    # Decompositions
    # =========================================================================

    def decompose_volume(
        self,
        baseline_id: str,
        promotion_id: str,
        rates: EffectRates | dict[str, float] | None = None,
        period_start: date | None = None,
        period_end: date | None = None,
    ) -> VolumeDecomposition:
        """
        Decompose a promotion against a baseline and store the record.

        Args:
            baseline_id: Active or approved baseline
            promotion_id: Promotion to fetch from the promotion provider
            rates: Effect rates (engine.yaml defaults if omitted)
            period_start: Window start (defaults to the promotion run)
            period_end: Window end, inclusive

        Returns:
            The stored VolumeDecomposition
        """
        if self.promotion_provider is None:
            raise ConfigurationError(
                "No promotion provider configured",
                stage="config",
                promotion_id=promotion_id,
            )

        if rates is None:
            rates = EffectRates.from_dict(self.engine_config.default_rates)
        elif isinstance(rates, dict):
            rates = EffectRates.from_dict(rates)

        baseline = self.storage.load(baseline_id)
        if baseline is None:
            raise BaselineNotFoundError("Baseline not found", baseline_id=baseline_id)

        try:
            promotion = self.promotion_provider.get_promotion(promotion_id)
        except DataFetchError as e:
            e.promotion_id = e.promotion_id or promotion_id
            raise

        decomposition = self.decomposer.decompose(
            baseline, promotion, rates, period_start=period_start, period_end=period_end
        )
        self.storage.save_decomposition(decomposition)
        return decomposition

    def list_decompositions(self, baseline_id: str) -> list[VolumeDecomposition]:
        return self.storage.list_decompositions(baseline_id)

    # =========================================================================
    # Portfolio views
    # =========================================================================

    def summary(self) -> dict[str, Any]:
        """
        Portfolio summary.

        Returns:
            {"baselines": {total, <status counts>, avg_confidence, avg_mape,
             avg_r_squared, total_base_volume},
             "decomposition": {count, total_incremental_volume, avg_lift_pct, avg_roi}}
        """
        baselines = self.storage.list_baselines()
        decompositions = [
            d for b in baselines for d in self.storage.list_decompositions(b.baseline_id)
        ]
        calculated = [b for b in baselines if b.is_calculated]

        by_status = {status.value: 0 for status in BaselineStatus}
        for b in baselines:
            by_status[b.status.value] += 1

        return {
            "baselines": {
                "total": len(baselines),
                **by_status,
                "avg_confidence": _mean([b.confidence_level for b in calculated]),
                "avg_mape": _mean([b.mape for b in calculated]),
                "avg_r_squared": _mean([b.r_squared for b in calculated]),
                "total_base_volume": float(sum(b.total_base_volume or 0.0 for b in calculated)),
            },
            "decomposition": {
                "count": len(decompositions),
                "total_incremental_volume": float(
                    sum(d.incremental_volume for d in decompositions)
                ),
                "avg_lift_pct": _mean([d.lift_pct for d in decompositions]),
                "avg_roi": _mean([d.roi for d in decompositions]),
            },
        }

    @staticmethod
    def options() -> dict[str, list[dict[str, str]]]:
        """Enumerations callers may offer as choices."""
        return {
            "baseline_types": [{"value": t.value, "label": t.value.title()} for t in BaselineType],
            "calculation_methods": [{"value": m.value, "label": m.label} for m in CalculationMethod],
            "granularities": [{"value": g.value, "label": g.value.title()} for g in Granularity],
            "statuses": [{"value": s.value, "label": s.value.title()} for s in BaselineStatus],
        }
