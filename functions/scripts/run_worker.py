"""
Run the quote analysis worker until interrupted.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from maison_api.worker import process_next, run_loop

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Quote analysis worker")
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=2.0,
        help="Seconds to wait on the queue before polling again",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Process at most one job and exit",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    if args.once:
        processed = process_next(block=False)
        logger.info("Processed a job" if processed else "No job waiting")
        return 0

    try:
        run_loop(poll_interval_seconds=args.poll_interval)
    except KeyboardInterrupt:
        logger.info("Worker stopped")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
