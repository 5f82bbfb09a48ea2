"""
In-memory providers backed by pandas DataFrames.

Used by the CLI scripts (CSV / JSON inputs) and by tests.
"""

import json
import logging
from datetime import date
from pathlib import Path
from typing import Any

import pandas as pd

from promolift.core.exceptions import DataFetchError
from promolift.core.types import Granularity, Promotion, Scope
from promolift.ingest.base import (
    HistoricalSalesProvider,
    PromotionProvider,
    normalize_actuals,
    normalize_history,
)


logger = logging.getLogger(__name__)


class DataFrameSalesProvider(HistoricalSalesProvider):
    """
    Serves history from a DataFrame.

    Scope filters are matched against columns of the same name; a filter
    whose column is absent matches nothing. Rows of several granularities
    may be mixed if a `granularity` column is present.
    """

    SOURCE_NAME = "frame"

    def __init__(self, history: pd.DataFrame) -> None:
        self.history = normalize_history(history)

    @classmethod
    def from_csv(cls, path: Path | str) -> "DataFrameSalesProvider":
        """Load history from a CSV file."""
        path = Path(path)
        if not path.exists():
            raise DataFetchError(f"History file not found: {path}", source=cls.SOURCE_NAME)
        return cls(pd.read_csv(path))

    def get_series(
        self,
        scope: Scope,
        granularity: Granularity,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> pd.DataFrame:
        df = self.history
        if df.empty:
            return df

        mask = pd.Series(True, index=df.index)
        for column, value in scope.to_dict().items():
            if column not in df.columns:
                logger.warning(f"History has no '{column}' column; scope filter matches nothing")
                return df.iloc[0:0]
            mask &= df[column] == value

        if "granularity" in df.columns:
            mask &= df["granularity"] == granularity.value
        if start_date is not None:
            mask &= df["period_start"] >= start_date
        if end_date is not None:
            mask &= df["period_start"] <= end_date

        return df[mask].reset_index(drop=True)


class InMemoryPromotionProvider(PromotionProvider):
    """Serves promotions from a dict keyed by promotion id."""

    SOURCE_NAME = "memory"

    def __init__(self, promotions: dict[str, Promotion] | None = None) -> None:
        self._promotions: dict[str, Promotion] = dict(promotions or {})

    def add(self, promotion: Promotion) -> None:
        self._promotions[promotion.promotion_id] = promotion

    def promotion_ids(self) -> list[str]:
        return list(self._promotions)

    def get_promotion(self, promotion_id: str) -> Promotion:
        try:
            return self._promotions[promotion_id]
        except KeyError:
            raise DataFetchError(
                "Promotion not found",
                source=self.SOURCE_NAME,
                promotion_id=promotion_id,
            ) from None

    @classmethod
    def from_json(cls, path: Path | str) -> "InMemoryPromotionProvider":
        """Load one promotion object, or a list of them, from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise DataFetchError(f"Promotion file not found: {path}", source=cls.SOURCE_NAME)
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        records = data if isinstance(data, list) else [data]
        return cls({p.promotion_id: p for p in (promotion_from_dict(r) for r in records)})


def promotion_from_dict(data: dict[str, Any]) -> Promotion:
    """Build a Promotion from a plain record (JSON file or API payload)."""
    try:
        return Promotion(
            promotion_id=str(data["promotion_id"]),
            run_start=date.fromisoformat(data["run_start"]),
            run_end=date.fromisoformat(data["run_end"]),
            cost=float(data.get("cost") or 0.0),
            average_selling_price=float(data.get("average_selling_price") or 0.0),
            actuals=normalize_actuals(pd.DataFrame(data.get("actuals", []))),
        )
    except (KeyError, ValueError, TypeError) as e:
        raise DataFetchError(
            f"Malformed promotion record: {e}",
            promotion_id=data.get("promotion_id"),
        ) from e
