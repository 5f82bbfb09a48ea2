"""
Tests for the BaselineService facade.
"""

import pytest

from promolift.core.config import Settings
from promolift.core.exceptions import BaselineNotFoundError, ConfigurationError, DataFetchError
from promolift.pipeline import BaselineService


@pytest.fixture
def settings(tmp_path):
    return Settings(_env_file=None, data_dir=tmp_path / "data", config_dir=tmp_path / "config")


@pytest.fixture
def service(settings, sales_provider, promotion_provider, engine_config):
    svc = BaselineService(
        settings=settings,
        sales_provider=sales_provider,
        promotion_provider=promotion_provider,
        engine_config=engine_config,
    )
    yield svc
    svc.close()


@pytest.fixture
def ready_id(service):
    baseline = service.create_baseline("Flat weekly", baseline_id="flat")
    service.calculate_baseline(baseline.baseline_id)
    return baseline.baseline_id


class TestBaselineOperations:
    """Tests for the lifecycle passthroughs."""

    def test_calculate_returns_results(self, service):
        baseline = service.create_baseline("Flat", periods_used=8)

        results = service.calculate_baseline(baseline.baseline_id)

        assert results["status"] == "active"
        assert len(results["periods"]) == 8
        assert results["total_base_volume"] == pytest.approx(800.0)
        assert results["periods"][0]["period_label"] == "2024-W05"

    def test_approve_then_archive(self, service, ready_id):
        assert service.approve_baseline(ready_id, approved_by="analyst") == "approved"
        assert service.get_baseline(ready_id).approved_by == "analyst"
        assert service.archive_baseline(ready_id) == "archived"

    def test_list_filters_by_status(self, service, ready_id):
        service.create_baseline("Still draft")

        assert [b.baseline_id for b in service.list_baselines(status="active")] == [ready_id]
        assert len(service.list_baselines()) == 2

    def test_no_sales_provider(self, settings):
        with BaselineService(settings=settings) as bare:
            assert bare.calculator is None
            with pytest.raises(ConfigurationError):
                bare.create_baseline("Nothing to read")


class TestDecomposeVolume:
    """Tests for decomposition through the service."""

    def test_stores_record(self, service, ready_id):
        record = service.decompose_volume(ready_id, "PR-B", rates={"cannibalization_rate": 0.1})

        assert record.incremental_volume == pytest.approx(50.0)
        assert record.cannibalization_volume == pytest.approx(5.0)
        assert [d.decomposition_id for d in service.list_decompositions(ready_id)] == [
            record.decomposition_id
        ]

    def test_default_rates_from_engine_config(self, service, ready_id, engine_config):
        record = service.decompose_volume(ready_id, "PR-B")

        assert record.rates.cannibalization == engine_config.default_rates["cannibalization_rate"]
        assert record.cannibalization_volume == pytest.approx(50.0 * 0.08)

    def test_unknown_baseline(self, service):
        with pytest.raises(BaselineNotFoundError):
            service.decompose_volume("ghost", "PR-B")

    def test_unknown_promotion(self, service, ready_id):
        with pytest.raises(DataFetchError) as exc_info:
            service.decompose_volume(ready_id, "PR-404")

        assert exc_info.value.promotion_id == "PR-404"
        assert service.list_decompositions(ready_id) == []


class TestPortfolioViews:
    """Tests for summary and options."""

    def test_summary(self, service, ready_id):
        service.create_baseline("Draft")
        service.decompose_volume(ready_id, "PR-B")

        summary = service.summary()

        assert summary["baselines"]["total"] == 2
        assert summary["baselines"]["active"] == 1
        assert summary["baselines"]["draft"] == 1
        assert summary["baselines"]["total_base_volume"] == pytest.approx(1200.0)
        assert summary["baselines"]["avg_mape"] == 0.0
        assert summary["baselines"]["avg_r_squared"] is None
        assert summary["decomposition"]["count"] == 1
        assert summary["decomposition"]["avg_lift_pct"] == pytest.approx(50.0)

    def test_empty_summary(self, service):
        summary = service.summary()

        assert summary["baselines"]["total"] == 0
        assert summary["baselines"]["avg_confidence"] is None
        assert summary["decomposition"]["total_incremental_volume"] == 0.0

    def test_options(self):
        options = BaselineService.options()

        assert {"value": "seasonal_decomposition", "label": "Seasonal Decomposition"} in (
            options["calculation_methods"]
        )
        assert [s["value"] for s in options["statuses"]] == [
            "draft", "calculating", "active", "approved", "archived",
        ]
