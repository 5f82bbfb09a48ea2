"""
Tests for the REST providers using httpx.MockTransport.
"""

from datetime import date

import httpx
import pytest

from promolift.core.exceptions import DataFetchError
from promolift.core.types import Granularity, Scope
from promolift.ingest import RestAPIClient, RestPromotionProvider, RestSalesProvider


HISTORY_ROWS = [
    {"period_start": "2024-01-08", "period_end": "2024-01-14", "actual_volume": 110.0},
    {"period_start": "2024-01-01", "period_end": "2024-01-07", "actual_volume": 100.0},
]


def make_client(handler, sleeps=None, max_retries=3):
    """Client over a mock transport; waits are recorded instead of slept."""
    sleeps = sleeps if sleeps is not None else []
    return RestAPIClient(
        "https://sales.example.com/api",
        api_token="secret",
        max_retries=max_retries,
        transport=httpx.MockTransport(handler),
        sleep=sleeps.append,
    )


class TestRestAPIClient:
    """Tests for retry and error handling."""

    def test_unwraps_data_member(self):
        client = make_client(lambda request: httpx.Response(200, json={"data": [1, 2]}))

        assert client.get("/anything") == [1, 2]

    def test_sends_bearer_token(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={})

        make_client(handler).get("/anything")

        assert seen["auth"] == "Bearer secret"

    def test_retries_server_error(self):
        responses = iter([httpx.Response(503), httpx.Response(200, json={"data": "ok"})])
        sleeps = []
        client = make_client(lambda request: next(responses), sleeps)

        assert client.get("/flaky") == "ok"
        assert sleeps == [1]

    def test_rate_limit_honours_retry_after(self):
        responses = iter([
            httpx.Response(429, headers={"Retry-After": "7"}),
            httpx.Response(200, json={"data": "ok"}),
        ])
        sleeps = []
        client = make_client(lambda request: next(responses), sleeps)

        assert client.get("/limited") == "ok"
        assert sleeps == [7.0]

    def test_client_error_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404)

        with pytest.raises(DataFetchError) as exc_info:
            make_client(handler).get("/missing")

        assert exc_info.value.status_code == 404
        assert len(calls) == 1

    def test_retries_exhausted(self):
        sleeps = []
        client = make_client(lambda request: httpx.Response(500), sleeps, max_retries=3)

        with pytest.raises(DataFetchError, match="Max retries"):
            client.get("/down")

        assert sleeps == [1, 2, 4]

    def test_transport_error_retried(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) == 1:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200, json={"data": "ok"})

        assert make_client(handler).get("/x") == "ok"
        assert len(attempts) == 2

    def test_invalid_json(self):
        client = make_client(lambda request: httpx.Response(200, content=b"<html>"))

        with pytest.raises(DataFetchError, match="Invalid JSON"):
            client.get("/html")


class TestRestSalesProvider:
    """Tests for history fetching."""

    def test_query_and_normalization(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"data": HISTORY_ROWS})

        provider = RestSalesProvider(make_client(handler))
        df = provider.get_series(
            Scope(customer_id="C1", product_id="P9"),
            Granularity.WEEKLY,
            start_date=date(2024, 1, 1),
        )

        assert seen["path"] == "/api/sales/history"
        assert seen["params"] == {
            "granularity": "weekly",
            "customer_id": "C1",
            "product_id": "P9",
            "start_date": "2024-01-01",
        }
        assert df["period_start"].tolist() == [date(2024, 1, 1), date(2024, 1, 8)]
        assert not df["is_promoted"].any()

    def test_non_list_payload_rejected(self):
        provider = RestSalesProvider(make_client(lambda r: httpx.Response(200, json={"data": {}})))

        with pytest.raises(DataFetchError):
            provider.get_series(Scope(), Granularity.WEEKLY)


class TestRestPromotionProvider:
    """Tests for promotion fetching."""

    def test_parses_promotion(self):
        payload = {
            "data": {
                "promotion_id": "PR-7",
                "run_start": "2024-03-04",
                "run_end": "2024-03-10",
                "cost": 250,
                "average_selling_price": 3.5,
                "actuals": [
                    {"period_start": "2024-03-04", "period_end": "2024-03-10", "actual_volume": 900},
                ],
            }
        }
        provider = RestPromotionProvider(make_client(lambda r: httpx.Response(200, json=payload)))

        promotion = provider.get_promotion("PR-7")

        assert promotion.run_start == date(2024, 3, 4)
        assert promotion.cost == 250.0
        assert promotion.total_volume == 900.0

    def test_malformed_promotion(self):
        payload = {"data": {"promotion_id": "PR-8", "run_start": "not-a-date"}}
        provider = RestPromotionProvider(make_client(lambda r: httpx.Response(200, json=payload)))

        with pytest.raises(DataFetchError) as exc_info:
            provider.get_promotion("PR-8")

        assert exc_info.value.promotion_id == "PR-8"
