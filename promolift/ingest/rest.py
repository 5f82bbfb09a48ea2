"""
REST client providers for a host sales/promotion API.

Endpoints (relative to base_url):
    GET /sales/history   ?granularity=&start_date=&end_date=&<scope filters>
                         -> {"data": [{period_start, period_end, actual_volume, ...}]}
    GET /promotions/{id} -> {"data": {promotion_id, run_start, run_end, cost,
                                      average_selling_price, actuals: [...]}}

Retry policy: 429 waits Retry-After, 5xx and transport errors back off
exponentially, other 4xx fail immediately.
"""

import logging
import time
from datetime import date
from typing import Any, Callable

import httpx
import pandas as pd

from promolift.core.exceptions import DataFetchError
from promolift.core.types import Granularity, Promotion, Scope
from promolift.ingest.base import HistoricalSalesProvider, PromotionProvider, normalize_history
from promolift.ingest.frame import promotion_from_dict


logger = logging.getLogger(__name__)


class RestAPIClient:
    """
    Synchronous JSON API client with retry.

    Synchronous because providers are called from the calculator's worker
    threads, which already give each calculation its own timeout.
    """

    SOURCE_NAME: str = "rest"

    def __init__(
        self,
        base_url: str,
        api_token: str | None = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Initialize API client.

        Args:
            base_url: Base URL for API requests
            api_token: Bearer token (optional)
            timeout: Request timeout in seconds
            max_retries: Maximum attempts per request
            transport: httpx transport override (tests use httpx.MockTransport)
            sleep: Wait function between retries
        """
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token
        self.max_retries = max_retries
        self._sleep = sleep

        headers = {"Accept": "application/json"}
        if api_token:
            headers["Authorization"] = f"Bearer {api_token}"
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "RestAPIClient":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def get(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        """
        GET an endpoint and return the JSON body's "data" member (or the body).

        Raises:
            DataFetchError: On a non-retryable status or once retries are exhausted
        """
        for attempt in range(self.max_retries):
            try:
                response = self._client.get(endpoint, params=params)
                response.raise_for_status()
                body = response.json()
                return body.get("data", body) if isinstance(body, dict) else body

            except httpx.HTTPStatusError as e:
                status = e.response.status_code

                if status == 429:  # Rate limited
                    retry_after = float(e.response.headers.get("Retry-After", 1))
                    logger.warning(
                        f"Rate limited by {self.SOURCE_NAME}, "
                        f"waiting {retry_after}s (attempt {attempt + 1})"
                    )
                    self._sleep(retry_after)
                    continue

                elif status >= 500:  # Server error
                    wait = 2 ** attempt
                    logger.warning(
                        f"Server error from {self.SOURCE_NAME}: {status}, "
                        f"retrying in {wait}s (attempt {attempt + 1})"
                    )
                    self._sleep(wait)
                    continue

                else:  # Client error - don't retry
                    raise DataFetchError(
                        f"API request failed: {e}",
                        source=self.SOURCE_NAME,
                        status_code=status,
                        stage="fetch",
                    ) from e

            except httpx.RequestError as e:
                wait = 2 ** attempt
                logger.warning(
                    f"Request error to {self.SOURCE_NAME}: {e}, "
                    f"retrying in {wait}s (attempt {attempt + 1})"
                )
                self._sleep(wait)
                continue

            except ValueError as e:
                raise DataFetchError(
                    f"Invalid JSON from {endpoint}: {e}",
                    source=self.SOURCE_NAME,
                    stage="fetch",
                ) from e

        # All retries exhausted
        raise DataFetchError(
            f"Max retries ({self.max_retries}) exceeded for {endpoint}",
            source=self.SOURCE_NAME,
            stage="fetch",
        )


class RestSalesProvider(HistoricalSalesProvider):
    """History from GET /sales/history."""

    SOURCE_NAME = "rest"

    def __init__(self, client: RestAPIClient) -> None:
        self.client = client

    def get_series(
        self,
        scope: Scope,
        granularity: Granularity,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> pd.DataFrame:
        params: dict[str, Any] = {"granularity": granularity.value, **scope.to_dict()}
        if start_date is not None:
            params["start_date"] = start_date.isoformat()
        if end_date is not None:
            params["end_date"] = end_date.isoformat()

        rows = self.client.get("/sales/history", params=params)
        if not isinstance(rows, list):
            raise DataFetchError(
                "Expected a list of history rows",
                source=self.SOURCE_NAME,
                stage="fetch",
            )
        logger.debug(f"Fetched {len(rows)} history rows for scope {scope.to_dict() or 'all'}")
        return normalize_history(pd.DataFrame(rows))


class RestPromotionProvider(PromotionProvider):
    """Promotions from GET /promotions/{id}."""

    SOURCE_NAME = "rest"

    def __init__(self, client: RestAPIClient) -> None:
        self.client = client

    def get_promotion(self, promotion_id: str) -> Promotion:
        data = self.client.get(f"/promotions/{promotion_id}")
        if not isinstance(data, dict):
            raise DataFetchError(
                "Expected a promotion object",
                source=self.SOURCE_NAME,
                stage="fetch",
                promotion_id=promotion_id,
            )
        return promotion_from_dict(data)
