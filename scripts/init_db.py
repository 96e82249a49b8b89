#!/usr/bin/env python3
"""Bring the database schema up to date.

Creates the feedback and report_runs tables when they are missing. Tables
that already exist are left alone, so the script is safe to run on every
deploy. With --check it only reports missing tables and exits 1 if any.

Usage:
    python scripts/init_db.py [--check]
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import argparse
import logging

from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError

from feedback.config import get_config
from feedback.models.database import check_connection, init_db, pending_tables

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    """Create missing tables, or report them with --check."""
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only list missing tables; exit 1 if there are any",
    )
    args = parser.parse_args(argv)

    config = get_config()
    missing = config.validate()
    if missing:
        logger.error(f"Missing configuration: {', '.join(missing)}")
        logger.error("Copy .env.example to .env and configure it")
        return 1

    # Never log the password
    url = make_url(config.DATABASE_URL).render_as_string(hide_password=True)
    logger.info(f"Database: {url}")

    try:
        check_connection()

        if args.check:
            pending = pending_tables()
            if pending:
                logger.warning(f"Missing tables: {', '.join(pending)}")
                return 1
            logger.info("Schema is up to date")
            return 0

        created = init_db()
        if not created:
            logger.info("Schema already up to date, nothing to create")

    except SQLAlchemyError as e:
        logger.error(f"Database initialization failed: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
