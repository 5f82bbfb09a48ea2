#!/usr/bin/env python3
"""
Compute a baseline from a history CSV.

Creates the baseline on first use (configuration from a YAML file and/or
command-line flags), otherwise recalculates the stored one, then prints
the baseline report.

History CSV columns:
    period_start, period_end, actual_volume[, actual_revenue, actual_units,
    is_promoted, promotion_id, customer_id, product_id, category, brand,
    channel, region, granularity]

Usage:
    python scripts/compute_baseline.py history.csv --baseline-id cola-weekly
    python scripts/compute_baseline.py history.csv --config baseline.yaml --approve
    python scripts/compute_baseline.py history.csv --baseline-id cola-weekly \\
        --method seasonal_decomposition --periods 104 --verbose
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import yaml
from dotenv import load_dotenv

from promolift.baseline import BaselineStorage, format_baseline_report
from promolift.core.config import get_settings
from promolift.core.exceptions import PromoliftError
from promolift.core.types import Scope
from promolift.ingest import DataFrameSalesProvider, InMemoryPromotionProvider
from promolift.pipeline import BaselineService

# Load environment
load_dotenv(PROJECT_ROOT / ".env")


def setup_logging(level: str = "INFO") -> None:
    """Configure logging."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="PROMOLIFT - Baseline Computation",
    )
    parser.add_argument(
        "history",
        type=Path,
        help="CSV file with periodic sales history",
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        help="YAML file with baseline configuration (name, calculation_method, scope, ...)",
    )
    parser.add_argument("--baseline-id", help="Baseline id (generated if omitted)")
    parser.add_argument("--name", help="Baseline name")
    parser.add_argument("--method", help="Calculation method")
    parser.add_argument("--granularity", help="daily, weekly, monthly or quarterly")
    parser.add_argument("--type", dest="baseline_type", help="volume, revenue or units")
    parser.add_argument("--periods", dest="periods_used", type=int, help="Periods of history to use")
    parser.add_argument(
        "--approve",
        action="store_true",
        help="Approve the baseline after a successful calculation",
    )
    parser.add_argument("--approved-by", help="Name recorded on approval")
    parser.add_argument(
        "--data-dir",
        type=Path,
        help="Baseline storage directory (default: <PROMOLIFT_DATA_DIR>/baselines)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print results as JSON instead of the text report",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser.parse_args()


def load_baseline_config(args: argparse.Namespace) -> dict[str, Any]:
    """Merge YAML configuration with command-line overrides."""
    config: dict[str, Any] = {}
    if args.config:
        with open(args.config) as f:
            config = (yaml.safe_load(f) or {}).get("baseline", {})

    for key in ("baseline_id", "name", "baseline_type", "periods_used"):
        value = getattr(args, key)
        if value is not None:
            config[key] = value
    if args.method:
        config["calculation_method"] = args.method
    if args.granularity:
        config["granularity"] = args.granularity

    if isinstance(config.get("scope"), dict):
        config["scope"] = Scope(**config["scope"])
    return config


def main() -> int:
    """Main entry point."""
    args = parse_args()
    settings = get_settings()

    setup_logging("DEBUG" if args.verbose else settings.log_level)
    logger = logging.getLogger(__name__)

    config = load_baseline_config(args)
    baseline_id = config.pop("baseline_id", None)
    name = config.pop("name", None)

    try:
        storage = BaselineStorage(args.data_dir or settings.baselines_dir)
        service = BaselineService(
            settings=settings,
            sales_provider=DataFrameSalesProvider.from_csv(args.history),
            promotion_provider=InMemoryPromotionProvider(),
            storage=storage,
        )
    except PromoliftError as e:
        logger.error(f"Setup failed: {e}")
        return 1

    with service:
        try:
            if baseline_id and storage.exists(baseline_id):
                if name:
                    config["name"] = name
                if config:
                    service.update_baseline(baseline_id, **config)
                logger.info(f"Recalculating existing baseline {baseline_id}")
            else:
                baseline = service.create_baseline(
                    name or baseline_id or args.history.stem,
                    baseline_id=baseline_id,
                    **config,
                )
                baseline_id = baseline.baseline_id

            results = service.calculate_baseline(baseline_id)

            if args.approve:
                results["status"] = service.approve_baseline(
                    baseline_id, approved_by=args.approved_by
                )

        except PromoliftError as e:
            logger.error(f"Baseline computation failed: {e}")
            if e.__cause__ is not None:
                logger.error(f"Caused by: {e.__cause__}")
            return 1

        if args.json:
            print(json.dumps(results, indent=2, default=str))
        else:
            print(format_baseline_report(service.get_baseline(baseline_id)))

    return 0


if __name__ == "__main__":
    sys.exit(main())
