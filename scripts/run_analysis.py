#!/usr/bin/env python3
"""Standalone feedback analysis script.

Runs one daily aggregation: counts yesterday's feedback, creates the Asana
summary task and records the report run. Safe to run repeatedly, a second
run on the same UTC day does nothing.
Useful for testing or running via cron/Cloud Scheduler.

Usage:
    python scripts/run_analysis.py
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import logging

from feedback.config import get_config
from feedback.exceptions import AggregationError, JobCancelled
from feedback.models.database import get_db_session, init_db
from feedback.services.aggregator import Aggregator
from feedback.services.asana_client import AsanaClient
from feedback.services.job_context import JobContext
from feedback.services.report_store import SQLAlchemyReportStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def main() -> int:
    """Run the feedback analysis job."""
    config = get_config()

    if config.DEBUG:
        logging.getLogger().setLevel(logging.DEBUG)

    # Validate configuration
    missing = config.validate_analysis()
    if missing:
        logger.error(f"Missing configuration: {', '.join(missing)}")
        return 1

    logger.info(
        f"Starting feedback analysis job "
        f"(workspace={config.ASANA_WORKSPACE_GID}, project={config.ASANA_PROJECT_GID})"
    )

    try:
        init_db()

        asana = AsanaClient(
            token=config.ASANA_TOKEN,
            workspace_gid=config.ASANA_WORKSPACE_GID,
            project_gid=config.ASANA_PROJECT_GID,
            base_url=config.ASANA_BASE_URL,
            timeout=config.ASANA_TIMEOUT_SECONDS,
        )

        context = JobContext(timeout=config.ANALYSIS_TIMEOUT_SECONDS)
        with get_db_session() as db:
            aggregator = Aggregator(
                store=SQLAlchemyReportStore(db, context=context),
                task_client=asana,
            )
            result = aggregator.run(context)

            if result.skipped:
                logger.info(f"Report for {result.report_date} already exists, nothing to do")
            else:
                logger.info(
                    f"Feedback analysis complete: report for {result.report_date}, "
                    f"Asana task {result.report.asana_task_gid}"
                )

    except JobCancelled as e:
        logger.error(f"Feedback analysis did not complete: {e}")
        return 1

    except AggregationError as e:
        logger.error(f"Feedback analysis failed: {e}", exc_info=True)
        return 1

    except Exception as e:
        logger.error(f"Feedback analysis job crashed: {e}", exc_info=True)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
