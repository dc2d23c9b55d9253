import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse
from datetime import date

import structlog

from villa_booking.config import DRY_RUN
from villa_booking.db.engine import engine
from villa_booking.logging_config import setup_logging
from villa_booking.services.bookings import complete_due_bookings

setup_logging()
logger = structlog.get_logger(__name__)


def main() -> None:
    """
    Complete every paid booking whose check-out date has passed.

    Meant to run from cron once a day. Exits non-zero if any booking failed
    unexpectedly so the scheduler can alert.
    """
    parser = argparse.ArgumentParser(description=main.__doc__)
    parser.add_argument("--today", type=date.fromisoformat, help="Reference date (YYYY-MM-DD)")
    parser.add_argument("--dry-run", action="store_true", default=DRY_RUN, help="Only log")
    args = parser.parse_args()

    try:
        counts = complete_due_bookings(engine, today=args.today, dry_run=args.dry_run)
    except Exception:
        logger.exception("completion_sweep_crashed")
        raise

    if counts["failed"]:
        sys.exit(1)


if __name__ == "__main__":
    main()
