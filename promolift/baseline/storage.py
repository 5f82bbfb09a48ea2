"""
Baseline Storage for PROMOLIFT.

Persists and retrieves baselines and their volume decompositions.
Records are stored as JSON files for human readability and easy inspection.

Storage structure:
    data/baselines/
    ├── <baseline_id>.json              # baseline record + full period set
    └── decompositions/
        └── <baseline_id>/
            ├── <decomposition_id>.json # append-only, never rewritten
            └── ...

A baseline file is written to a temporary file and moved into place with
os.replace, so readers see either the old period set or the new one,
never a mix.
"""

import json
import logging
import os
import shutil
import tempfile
from pathlib import Path

from promolift.baseline.types import Baseline, VolumeDecomposition
from promolift.core.exceptions import StorageError


logger = logging.getLogger(__name__)


class BaselineStorage:
    """
    Persistent storage for baselines and decompositions.

    Stored as JSON files for:
    - Human readability (can inspect a baseline's periods directly)
    - Atomic whole-file replacement of the period set
    - Simple debugging
    """

    def __init__(self, base_dir: Path | str = "data/baselines"):
        """
        Initialize baseline storage.

        Args:
            base_dir: Directory to store baseline files
        """
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.decompositions_dir.mkdir(parents=True, exist_ok=True)

    @property
    def decompositions_dir(self) -> Path:
        return self.base_dir / "decompositions"

    def _baseline_path(self, baseline_id: str) -> Path:
        """Get path for a baseline's file."""
        return self.base_dir / f"{baseline_id}.json"

    def _decomposition_dir(self, baseline_id: str) -> Path:
        return self.decompositions_dir / baseline_id

    def exists(self, baseline_id: str) -> bool:
        """Check if a baseline is stored."""
        return self._baseline_path(baseline_id).exists()

    def save(self, baseline: Baseline) -> None:
        """
        Atomically write a baseline and its period set.

        Raises:
            StorageError: If the file cannot be written
        """
        path = self._baseline_path(baseline.baseline_id)
        data = baseline.to_dict()

        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.base_dir, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, default=str)
            os.replace(tmp_name, path)
        except OSError as e:
            raise StorageError(
                f"Failed to save baseline: {e}",
                stage="persist",
                baseline_id=baseline.baseline_id,
            ) from e

        logger.debug(
            f"Saved baseline {baseline.baseline_id} "
            f"(status={baseline.status.value}, periods={len(baseline.periods)})"
        )

    def load(self, baseline_id: str) -> Baseline | None:
        """
        Load baseline from disk.

        Returns:
            Baseline or None if not found

        Raises:
            StorageError: If the file exists but cannot be parsed
        """
        path = self._baseline_path(baseline_id)

        if not path.exists():
            logger.debug(f"No baseline found for {baseline_id}")
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return Baseline.from_dict(data)
        except (OSError, ValueError, KeyError) as e:
            raise StorageError(
                f"Failed to load baseline: {e}",
                stage="load",
                baseline_id=baseline_id,
            ) from e

    def delete(self, baseline_id: str) -> bool:
        """Delete a baseline together with its decompositions."""
        path = self._baseline_path(baseline_id)
        if not path.exists():
            return False
        path.unlink()
        shutil.rmtree(self._decomposition_dir(baseline_id), ignore_errors=True)
        logger.info(f"Deleted baseline {baseline_id}")
        return True

    def list_ids(self) -> list[str]:
        """List all stored baseline ids."""
        return sorted(p.stem for p in self.base_dir.glob("*.json"))

    def list_baselines(self) -> list[Baseline]:
        """Load every stored baseline."""
        baselines = []
        for baseline_id in self.list_ids():
            baseline = self.load(baseline_id)
            if baseline is not None:
                baselines.append(baseline)
        return baselines

    def save_decomposition(self, decomposition: VolumeDecomposition) -> None:
        """
        Append a decomposition record.

        Raises:
            StorageError: If a record with the same id already exists
        """
        directory = self._decomposition_dir(decomposition.baseline_id)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{decomposition.decomposition_id}.json"

        try:
            # "x" mode refuses to overwrite: decompositions are immutable
            with open(path, "x", encoding="utf-8") as f:
                json.dump(decomposition.to_dict(), f, indent=2, default=str)
        except FileExistsError as e:
            raise StorageError(
                f"Decomposition {decomposition.decomposition_id} already exists",
                stage="persist",
                baseline_id=decomposition.baseline_id,
                promotion_id=decomposition.promotion_id,
            ) from e
        except OSError as e:
            raise StorageError(
                f"Failed to save decomposition: {e}",
                stage="persist",
                baseline_id=decomposition.baseline_id,
                promotion_id=decomposition.promotion_id,
            ) from e

        logger.info(
            f"Saved decomposition {decomposition.decomposition_id} "
            f"for promotion {decomposition.promotion_id}"
        )

    def list_decompositions(self, baseline_id: str) -> list[VolumeDecomposition]:
        """All decompositions for a baseline, oldest first."""
        directory = self._decomposition_dir(baseline_id)
        if not directory.exists():
            return []

        records = []
        for path in directory.glob("*.json"):
            with open(path, "r", encoding="utf-8") as f:
                records.append(VolumeDecomposition.from_dict(json.load(f)))
        return sorted(records, key=lambda d: (d.created_at is None, d.created_at, d.decomposition_id))


def format_baseline_report(baseline: Baseline) -> str:
    """
    Format baseline as human-readable report.

    Used for diagnostics and the CLI scripts.
    """
    def fmt(value: float | None, spec: str = ",.1f") -> str:
        return "undefined" if value is None else format(value, spec)

    lines = [
        f"{'='*60}",
        f"BASELINE: {baseline.name} ({baseline.baseline_id})",
        f"{'='*60}",
        f"",
        f"Status: {baseline.status.value}",
        f"Type: {baseline.baseline_type.value}",
        f"Method: {baseline.calculation_method.label}",
        f"Granularity: {baseline.granularity.value}",
        f"Scope: {baseline.scope.to_dict() or 'all'}",
        f"Periods used: {baseline.periods_used}",
        f"",
    ]

    if not baseline.is_calculated:
        lines.extend(["Not calculated yet.", f"{'='*60}"])
        return "\n".join(lines)

    start, end = baseline.coverage
    lines.extend([
        f"{'─'*60}",
        f"AGGREGATES",
        f"{'─'*60}",
        f"Coverage: {start} to {end} ({len(baseline.periods)} periods)",
        f"Total base volume: {fmt(baseline.total_base_volume)}",
        f"Avg weekly volume: {fmt(baseline.avg_weekly_volume)}",
        f"R²: {fmt(baseline.r_squared, '.3f')}",
        f"MAPE: {fmt(baseline.mape, '.2f')}%",
        f"Trend coefficient: {fmt(baseline.trend_coefficient, '.4f')}",
        f"Confidence ({baseline.confidence_level:.0%}): ± {fmt(baseline.confidence_half_width)}",
        f"Seasonality index: {fmt(baseline.seasonality_index, '.3f')}",
        f"Outliers replaced: {baseline.outliers_replaced}",
        f"",
        f"{'─'*60}",
        f"{'Period':<12}{'Base':>12}{'Actual':>12}{'Season':>8}{'Var %':>9}  Promo",
        f"{'─'*60}",
    ])

    for p in baseline.periods:
        lines.append(
            f"{p.period_label:<12}{p.base_volume:>12,.1f}"
            f"{fmt(p.actual_volume):>12}{p.seasonality_factor:>8.2f}"
            f"{fmt(p.variance_pct, '.1f'):>9}  {'yes' if p.is_promoted else ''}"
        )

    lines.append(f"{'='*60}")
    return "\n".join(lines)
