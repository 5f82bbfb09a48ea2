"""
Data providers for PROMOLIFT.

History and promotions reach the engine only through the provider
interfaces in promolift.ingest.base.
"""

from promolift.ingest.base import HistoricalSalesProvider, PromotionProvider
from promolift.ingest.frame import (
    DataFrameSalesProvider,
    InMemoryPromotionProvider,
    promotion_from_dict,
)
from promolift.ingest.rest import RestAPIClient, RestPromotionProvider, RestSalesProvider

__all__ = [
    "HistoricalSalesProvider",
    "PromotionProvider",
    "DataFrameSalesProvider",
    "InMemoryPromotionProvider",
    "promotion_from_dict",
    "RestAPIClient",
    "RestSalesProvider",
    "RestPromotionProvider",
]
