"""
Script to permanently remove soft-deleted file records.

Records marked deleted more than DELETED_FILE_RETENTION_DAYS ago are
removed from the database. Stored objects are not touched.

Run this script from the project root (e.g. from a daily cron job):
    python purge_deleted_files.py
    python purge_deleted_files.py --days 7
"""

import argparse
import logging
import os
import sys

# Add project root to Python path
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from intake import crud
from intake.core.config import settings
from intake.core.database import init_db, pool
from intake.core.logging_config import setup_logging

logger = logging.getLogger("purge_deleted_files")


def purge_deleted_files(days: int) -> int:
    """Delete file records soft-deleted more than ``days`` days ago."""
    init_db()
    db = pool.session()
    try:
        return crud.file_upload.purge_deleted(db, older_than_days=days)
    finally:
        db.close()
        pool.dispose()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Purge soft-deleted file records")
    parser.add_argument(
        "--days",
        type=int,
        default=settings.DELETED_FILE_RETENTION_DAYS,
        help="Retention window in days (default: %(default)s)",
    )
    args = parser.parse_args(argv)

    setup_logging(log_level=settings.LOG_LEVEL, json_logs=settings.JSON_LOGS)

    if args.days < 0:
        parser.error("--days must be zero or positive")

    logger.info(f"Purging file records soft-deleted more than {args.days} days ago")
    removed = purge_deleted_files(args.days)
    logger.info(f"Done. Removed {removed} records")
    return 0


if __name__ == "__main__":
    sys.exit(main())
