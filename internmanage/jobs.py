"""Command line entry point for the attendance backfill.

Usage:
    internmanage-backfill               # up to yesterday
    internmanage-backfill --date 2024-03-15
    internmanage-backfill --company Acme
"""
import argparse
import sys
from datetime import date
from typing import List, Optional

import internmanage.models  # noqa: F401  registers the tables on Base
from internmanage.database import Base, SessionLocal, engine
from internmanage.exceptions import InternManageError
from internmanage.logging_config import logger, setup_logging
from internmanage.services.attendance_backfill import backfill_absences


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Mark unrecorded intern working days as absent.")
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Backfill up to the day before this date (YYYY-MM-DD). Defaults to today.",
    )
    parser.add_argument("--company", default=None, help="Only backfill interns of this company.")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    setup_logging()
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        summary = backfill_absences(db, as_of=args.date, company=args.company)
    except InternManageError as exc:
        logger.error("Attendance backfill failed: %s", exc.message)
        return 1
    finally:
        db.close()

    print(f"Processed {summary.interns_processed} interns, created {summary.records_created} absence records")
    return 0


if __name__ == "__main__":
    sys.exit(main())
