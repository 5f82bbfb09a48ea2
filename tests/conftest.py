"""
Pytest configuration and fixtures.
"""

from datetime import date, timedelta

import numpy as np
import pandas as pd
import pytest

from promolift.baseline import BaselineCalculator, BaselineStorage
from promolift.core.config import EngineConfig
from promolift.core.types import Promotion
from promolift.ingest import DataFrameSalesProvider, InMemoryPromotionProvider


HISTORY_START = date(2024, 1, 1)  # a Monday


def make_weekly_history(
    values: list[float],
    start: date = HISTORY_START,
    promoted: set[int] | None = None,
    **columns,
) -> pd.DataFrame:
    """Weekly history frame; `promoted` holds positions flagged as promoted."""
    promoted = promoted or set()
    starts = [start + timedelta(weeks=i) for i in range(len(values))]
    df = pd.DataFrame({
        "period_start": starts,
        "period_end": [s + timedelta(days=6) for s in starts],
        "actual_volume": values,
        "is_promoted": [i in promoted for i in range(len(values))],
        "promotion_id": [f"PR-{i}" if i in promoted else None for i in range(len(values))],
    })
    for name, value in columns.items():
        df[name] = value
    return df


def make_promotion(
    total_volume: float,
    run_start: date = date(2024, 3, 4),
    run_end: date = date(2024, 3, 10),
    cost: float = 100.0,
    average_selling_price: float = 2.0,
    promotion_id: str = "PR-B",
) -> Promotion:
    """One-period promotion with the given actual volume."""
    return Promotion(
        promotion_id=promotion_id,
        run_start=run_start,
        run_end=run_end,
        cost=cost,
        average_selling_price=average_selling_price,
        actuals=pd.DataFrame({
            "period_start": [run_start],
            "period_end": [run_end],
            "actual_volume": [total_volume],
        }),
    )


@pytest.fixture
def flat_history() -> pd.DataFrame:
    """12 weekly periods, every actual = 100."""
    return make_weekly_history([100.0] * 12)


@pytest.fixture
def seasonal_history() -> pd.DataFrame:
    """Two years of weekly data: linear growth times a yearly wave."""
    t = np.arange(104)
    values = (200 + 0.5 * t) * (1 + 0.2 * np.sin(2 * np.pi * t / 52))
    return make_weekly_history(values.tolist())


@pytest.fixture
def storage(tmp_path) -> BaselineStorage:
    """Baseline storage in a temporary directory."""
    return BaselineStorage(tmp_path / "baselines")


@pytest.fixture
def sales_provider(flat_history: pd.DataFrame) -> DataFrameSalesProvider:
    return DataFrameSalesProvider(flat_history)


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig()


@pytest.fixture
def calculator(storage, sales_provider, engine_config):
    """Calculator over the flat history."""
    calc = BaselineCalculator(storage, sales_provider, engine_config=engine_config)
    yield calc
    calc.close()


@pytest.fixture
def active_baseline(calculator):
    """Scenario A baseline: calculated and active."""
    baseline = calculator.create("Flat weekly", baseline_id="flat-weekly")
    return calculator.calculate(baseline.baseline_id)


@pytest.fixture
def promotion_b() -> Promotion:
    """Scenario B promotion: 150 units in the week of 2024-03-04."""
    return make_promotion(150.0)


@pytest.fixture
def promotion_provider(promotion_b) -> InMemoryPromotionProvider:
    return InMemoryPromotionProvider({promotion_b.promotion_id: promotion_b})


@pytest.fixture
def history_factory():
    """Builder for weekly history frames."""
    return make_weekly_history


@pytest.fixture
def promotion_factory():
    """Builder for one-period promotions."""
    return make_promotion
