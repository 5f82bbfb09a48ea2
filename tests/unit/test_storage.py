"""
Tests for baseline and decomposition persistence.
"""

import json

import pytest

from promolift.baseline import BaselineStorage, format_baseline_report
from promolift.core.exceptions import StorageError
from promolift.core.types import BaselineStatus, EffectRates
from promolift.decomposition import VolumeDecomposer


class TestBaselineFiles:
    """Tests for baseline records on disk."""

    def test_round_trip(self, storage, active_baseline):
        loaded = storage.load(active_baseline.baseline_id)

        assert loaded == active_baseline
        assert loaded.status is BaselineStatus.ACTIVE
        assert len(loaded.periods) == 12

    def test_missing_baseline_is_none(self, storage):
        assert storage.load("nope") is None
        assert not storage.exists("nope")

    def test_corrupt_file_raises(self, storage):
        (storage.base_dir / "broken.json").write_text("{not json", encoding="utf-8")

        with pytest.raises(StorageError) as exc_info:
            storage.load("broken")

        assert exc_info.value.baseline_id == "broken"

    def test_no_temporary_files_left(self, storage, active_baseline):
        assert list(storage.base_dir.glob("*.tmp")) == []

    def test_file_is_readable_json(self, storage, active_baseline):
        path = storage.base_dir / f"{active_baseline.baseline_id}.json"
        data = json.loads(path.read_text(encoding="utf-8"))

        assert data["status"] == "active"
        assert data["periods"][0]["period_label"] == "2024-W01"

    def test_list_ids_sorted(self, tmp_path, calculator):
        calculator.create("B", baseline_id="b")
        calculator.create("A", baseline_id="a")

        assert calculator.storage.list_ids() == ["a", "b"]

    def test_new_storage_creates_directories(self, tmp_path):
        storage = BaselineStorage(tmp_path / "nested" / "store")

        assert storage.base_dir.is_dir()
        assert storage.decompositions_dir.is_dir()


class TestDecompositionFiles:
    """Tests for append-only decomposition records."""

    def test_saved_and_listed(self, storage, active_baseline, promotion_b):
        record = VolumeDecomposer().decompose(active_baseline, promotion_b, EffectRates())
        storage.save_decomposition(record)

        listed = storage.list_decompositions(active_baseline.baseline_id)

        assert [r.decomposition_id for r in listed] == [record.decomposition_id]
        assert listed[0].incremental_volume == pytest.approx(50.0)

    def test_never_overwritten(self, storage, active_baseline, promotion_b):
        record = VolumeDecomposer().decompose(active_baseline, promotion_b, EffectRates())
        storage.save_decomposition(record)

        with pytest.raises(StorageError):
            storage.save_decomposition(record)

    def test_deleted_with_baseline(self, storage, active_baseline, promotion_b):
        record = VolumeDecomposer().decompose(active_baseline, promotion_b, EffectRates())
        storage.save_decomposition(record)

        assert storage.delete(active_baseline.baseline_id)
        assert storage.list_decompositions(active_baseline.baseline_id) == []
        assert not storage.delete(active_baseline.baseline_id)

    def test_none_for_unknown_baseline(self, storage):
        assert storage.list_decompositions("ghost") == []


class TestReport:
    """Tests for the text report."""

    def test_uncalculated(self, calculator):
        report = format_baseline_report(calculator.create("Fresh"))

        assert "Not calculated yet." in report
        assert "Status: draft" in report

    def test_calculated(self, active_baseline):
        report = format_baseline_report(active_baseline)

        assert "AGGREGATES" in report
        assert "2024-W01" in report
        assert "Total base volume: 1,200.0" in report
        assert "R²: undefined" in report
