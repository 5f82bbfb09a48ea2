"""
Provider interfaces for the data the engine consumes.

The engine never talks to a database or API directly: history and
promotions arrive through these two interfaces, so the numeric core stays
free of I/O.
"""

from abc import ABC, abstractmethod
from datetime import date

import pandas as pd

from promolift.core.types import Granularity, Promotion, Scope


# Columns every history frame carries; the measure columns depend on baseline type
HISTORY_COLUMNS = ["period_start", "period_end"]
MEASURE_COLUMNS = ["actual_volume", "actual_revenue", "actual_units"]
PROMOTION_COLUMNS = ["is_promoted", "promotion_id"]


class HistoricalSalesProvider(ABC):
    """Source of periodic sales actuals."""

    SOURCE_NAME: str = "base"  # Override in subclasses

    @abstractmethod
    def get_series(
        self,
        scope: Scope,
        granularity: Granularity,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> pd.DataFrame:
        """
        Fetch actuals for a scope.

        Args:
            scope: Customer/product/category/brand/channel/region filters
            granularity: Period length of the returned rows
            start_date: Earliest period start to include (optional)
            end_date: Latest period start to include (optional)

        Returns:
            DataFrame ordered by period_start with columns period_start,
            period_end and at least one of actual_volume / actual_revenue /
            actual_units; optionally is_promoted and promotion_id
        """
        ...


class PromotionProvider(ABC):
    """Source of promotion run data and actual performance."""

    SOURCE_NAME: str = "base"

    @abstractmethod
    def get_promotion(self, promotion_id: str) -> Promotion:
        """
        Fetch a promotion.

        Raises:
            DataFetchError: If the promotion cannot be found or fetched
        """
        ...


def normalize_history(df: pd.DataFrame) -> pd.DataFrame:
    """
    Coerce a raw history frame to the engine's conventions.

    Dates become datetime.date, promotion flags default to False, rows are
    ordered by period_start.
    """
    if df.empty:
        return df

    df = df.copy()
    df["period_start"] = pd.to_datetime(df["period_start"]).dt.date
    if "period_end" in df.columns:
        df["period_end"] = pd.to_datetime(df["period_end"]).dt.date

    if "is_promoted" not in df.columns:
        if "promotion_id" in df.columns:
            df["is_promoted"] = df["promotion_id"].notna()
        else:
            df["is_promoted"] = False
    df["is_promoted"] = df["is_promoted"].fillna(False).astype(bool)
    if "promotion_id" not in df.columns:
        df["promotion_id"] = None

    return df.sort_values("period_start", kind="stable").reset_index(drop=True)


def normalize_actuals(df: pd.DataFrame) -> pd.DataFrame:
    """Coerce promotion actuals rows (period_start, period_end, actual_volume, ...)."""
    if df.empty:
        return df

    df = df.copy()
    df["period_start"] = pd.to_datetime(df["period_start"]).dt.date
    df["period_end"] = pd.to_datetime(df["period_end"]).dt.date
    return df.sort_values("period_start", kind="stable").reset_index(drop=True)
