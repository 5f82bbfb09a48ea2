#!/usr/bin/env python3
"""
Decompose a promotion's volume against a stored baseline.

The promotion file holds one promotion object (or a list of them):

    {
      "promotion_id": "PR-2024-017",
      "run_start": "2024-03-04",
      "run_end": "2024-03-17",
      "cost": 1200.0,
      "average_selling_price": 2.5,
      "actuals": [
        {"period_start": "2024-03-04", "period_end": "2024-03-10", "actual_volume": 1800},
        {"period_start": "2024-03-11", "period_end": "2024-03-17", "actual_volume": 1650}
      ]
    }

Rates default to the engine configuration (config/engine.yaml).

Usage:
    python scripts/decompose_promotion.py cola-weekly promo.json
    python scripts/decompose_promotion.py cola-weekly promo.json --promotion-id PR-2024-017 \\
        --cannibalization 0.1 --pantry-loading 0.05 --halo 0.03 --pull-forward 0.04
    python scripts/decompose_promotion.py cola-weekly --list
"""

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from dotenv import load_dotenv

from promolift.baseline import BaselineStorage
from promolift.core.config import get_settings
from promolift.core.exceptions import PromoliftError
from promolift.core.types import EffectRates
from promolift.ingest import InMemoryPromotionProvider
from promolift.pipeline import BaselineService

# Load environment
load_dotenv(PROJECT_ROOT / ".env")


RATE_FLAGS = ("cannibalization", "pantry_loading", "halo", "pull_forward")


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
        description="PROMOLIFT - Promotion Volume Decomposition",
    )
    parser.add_argument("baseline_id", help="Active or approved baseline id")
    parser.add_argument(
        "promotion_file",
        type=Path,
        nargs="?",
        help="JSON file with the promotion and its actuals",
    )
    parser.add_argument(
        "--promotion-id",
        help="Promotion to decompose when the file holds several",
    )
    for rate in RATE_FLAGS:
        parser.add_argument(
            f"--{rate.replace('_', '-')}",
            dest=rate,
            type=float,
            help=f"{rate.replace('_', ' ').title()} rate in [0, 1]",
        )
    parser.add_argument("--start", type=date.fromisoformat, help="Window start (YYYY-MM-DD)")
    parser.add_argument("--end", type=date.fromisoformat, help="Window end, inclusive (YYYY-MM-DD)")
    parser.add_argument(
        "--list",
        action="store_true",
        help="List stored decompositions for the baseline instead",
    )
    parser.add_argument("--data-dir", type=Path, help="Baseline storage directory")
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser.parse_args()


def format_decomposition(record: dict) -> str:
    """Format a decomposition record as a short text report."""
    def fmt(value, spec=",.2f"):
        return "undefined" if value is None else format(value, spec)

    lines = [
        f"{'='*60}",
        f"DECOMPOSITION {record['decomposition_id']}",
        f"Promotion {record['promotion_id']} vs baseline {record['baseline_id']}",
        f"Window: {record['period_start']} to {record['period_end']}",
        f"{'─'*60}",
        f"Total volume:          {fmt(record['total_volume'])}",
        f"Base volume:           {fmt(record['base_volume'])}",
        f"Incremental volume:    {fmt(record['incremental_volume'])}",
        f"  Cannibalization:     {fmt(record['cannibalization_volume'])}",
        f"  Pantry loading:      {fmt(record['pantry_loading_volume'])}",
        f"  Pull forward:        {fmt(record['pull_forward_volume'])}",
        f"  Net incremental:     {fmt(record['net_incremental_volume'])}",
        f"Halo volume:           {fmt(record['halo_volume'])}",
        f"{'─'*60}",
        f"Lift:                  {fmt(record['lift_pct'], '.1f')}%",
        f"ROI:                   {fmt(record['roi'], '.2f')}",
        f"Efficiency score:      {fmt(record['efficiency_score'], '.1f')}",
    ]
    if record["underperformed"]:
        lines.append("UNDERPERFORMED: total volume below baseline")
    lines.append(f"{'='*60}")
    return "\n".join(lines)


def main() -> int:
    """Main entry point."""
    args = parse_args()
    settings = get_settings()

    setup_logging("DEBUG" if args.verbose else settings.log_level)
    logger = logging.getLogger(__name__)

    storage = BaselineStorage(args.data_dir or settings.baselines_dir)

    if args.list:
        for record in storage.list_decompositions(args.baseline_id):
            print(json.dumps(record.to_dict(), default=str))
        return 0

    if args.promotion_file is None:
        logger.error("A promotion file is required unless --list is given")
        return 1

    try:
        promotions = InMemoryPromotionProvider.from_json(args.promotion_file)
        promotion_id = args.promotion_id or next(iter(promotions.promotion_ids()), None)
        if promotion_id is None:
            logger.error(f"No promotions in {args.promotion_file}")
            return 1

        with BaselineService(
            settings=settings,
            promotion_provider=promotions,
            storage=storage,
        ) as service:
            overrides = {
                f"{r}_rate": getattr(args, r) for r in RATE_FLAGS if getattr(args, r) is not None
            }
            rates = EffectRates.from_dict({**service.engine_config.default_rates, **overrides})

            decomposition = service.decompose_volume(
                args.baseline_id,
                promotion_id,
                rates=rates,
                period_start=args.start,
                period_end=args.end,
            )
    except PromoliftError as e:
        logger.error(f"Decomposition failed: {e}")
        return 1

    print(format_decomposition(decomposition.to_dict()))
    return 0


if __name__ == "__main__":
    sys.exit(main())
