"""
Seed the reference duration table with the catalog's default step durations.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from maison_api.dependencies import get_db_client
from planning.catalog import CONSTRUCTION_STEPS, DEFAULT_DURATIONS
from planning.durations import REFERENCE_SQUARE_FOOTAGE
from planning.schedule import ReferenceDuration

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed reference durations")
    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Replace durations that are already stored",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log what would be written without touching the database",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    db = get_db_client()
    existing = db.list_reference_durations()
    written = 0
    for step in CONSTRUCTION_STEPS:
        if step.id in existing and not args.overwrite:
            logger.info("Skipping %s (already stored)", step.id)
            continue
        ref = ReferenceDuration(
            step_id=step.id,
            step_name=step.title,
            base_duration_days=DEFAULT_DURATIONS[step.id],
            base_square_footage=REFERENCE_SQUARE_FOOTAGE,
        )
        if args.dry_run:
            logger.info("Would write %s: %d days", step.id, ref.base_duration_days)
        else:
            db.upsert_reference_duration(ref)
        written += 1

    logger.info("Wrote %d reference durations", written)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
