"""Feedback store queries used by the analysis job."""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Protocol

from sqlalchemy import func, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import CountOutOfRangeError, DuplicateReportError, StoreError
from ..models.feedback import Feedback, Sentiment
from ..models.report_run import REPORT_DATE_CONSTRAINT, ReportRun
from .job_context import JobContext

logger = logging.getLogger(__name__)

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1

# SQLite VM instructions between cancellation checks
SQLITE_PROGRESS_STEPS = 1000


@dataclass
class FeedbackCounts:
    """Feedback counts by sentiment for a time window."""

    positive: int = 0
    negative: int = 0


def ensure_int32(name: str, value: int) -> int:
    """Return value unchanged, or raise CountOutOfRangeError if it overflows int32."""
    if value < INT32_MIN or value > INT32_MAX:
        raise CountOutOfRangeError(f"{name} {value} exceeds int32 range")
    return value


def is_duplicate_report(error: IntegrityError) -> bool:
    """Check whether an IntegrityError is the report date uniqueness violation."""
    diag = getattr(error.orig, "diag", None)
    constraint = getattr(diag, "constraint_name", None)
    if constraint:
        return constraint == REPORT_DATE_CONSTRAINT
    # SQLite names the column rather than the constraint
    message = str(error.orig)
    return REPORT_DATE_CONSTRAINT in message or "report_runs.report_date" in message


class ReportStore(Protocol):
    """Store operations the aggregator depends on."""

    def report_exists(self, report_date: date) -> bool:
        ...

    def count_by_sentiment(
        self, window_start: datetime, window_end: datetime
    ) -> FeedbackCounts:
        ...

    def create_report_run(
        self,
        report_date: date,
        window_start: datetime,
        window_end: datetime,
        positive_count: int,
        negative_count: int,
        asana_task_gid: str,
    ) -> ReportRun:
        ...


class SQLAlchemyReportStore:
    """ReportStore backed by a SQLAlchemy session.

    With a job context, the read queries stop when the context is cancelled
    or its deadline passes: SQLite through a progress handler, PostgreSQL
    through a transaction-local statement_timeout and a driver-level cancel.
    The insert is never interrupted, it runs after the Asana task exists.
    """

    def __init__(self, db_session: Session, context: Optional[JobContext] = None):
        """Initialize store.

        Args:
            db_session: Session the queries run on
            context: Cancellation and deadline for the read queries
        """
        self.db = db_session
        self.context = context

    @contextmanager
    def _interruptible(self):
        if self.context is None:
            yield
            return

        context = self.context
        connection = self.db.connection()
        driver_connection = connection.connection.driver_connection
        dialect = connection.dialect.name

        if dialect == "sqlite":
            driver_connection.set_progress_handler(
                lambda: context.cancelled or context.expired, SQLITE_PROGRESS_STEPS
            )
            try:
                yield
            finally:
                driver_connection.set_progress_handler(None, 0)

        elif dialect == "postgresql":
            remaining = context.remaining()
            if remaining is not None:
                timeout_ms = max(1, int(remaining * 1000))
                connection.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))
            unregister = context.on_cancel(driver_connection.cancel)
            try:
                yield
            finally:
                unregister()
            if remaining is not None:
                connection.execute(text("SET LOCAL statement_timeout = DEFAULT"))

        else:
            yield

    def _failed(self, step: str, error: SQLAlchemyError, message: str) -> Exception:
        self.db.rollback()
        if self.context is not None:
            cancelled = self.context.interrupted(step)
            if cancelled is not None:
                logger.warning(f"Store query interrupted while {step}")
                return cancelled
        return StoreError(f"{message}: {error}")

    def report_exists(self, report_date: date) -> bool:
        logger.debug(f"Checking if report run exists for {report_date}")
        try:
            with self._interruptible():
                return ReportRun.exists_for_date(self.db, report_date)
        except SQLAlchemyError as e:
            raise self._failed(
                "checking for an existing report",
                e,
                f"Failed to check report run for {report_date}",
            ) from e

    def count_by_sentiment(
        self, window_start: datetime, window_end: datetime
    ) -> FeedbackCounts:
        """Count feedback with created_at in [window_start, window_end)."""
        logger.debug(f"Counting feedback from {window_start} to {window_end}")
        try:
            with self._interruptible():
                rows = (
                    self.db.query(Feedback.sentiment, func.count(Feedback.id))
                    .filter(
                        Feedback.created_at >= window_start,
                        Feedback.created_at < window_end,
                    )
                    .group_by(Feedback.sentiment)
                    .all()
                )
        except SQLAlchemyError as e:
            raise self._failed(
                "counting feedback", e, "Failed to query feedback counts"
            ) from e

        by_sentiment = {sentiment: count for sentiment, count in rows}
        counts = FeedbackCounts(
            positive=int(by_sentiment.get(Sentiment.POSITIVE.value, 0)),
            negative=int(by_sentiment.get(Sentiment.NEGATIVE.value, 0)),
        )
        logger.debug(f"Feedback counts: positive={counts.positive} negative={counts.negative}")
        return counts

    def create_report_run(
        self,
        report_date: date,
        window_start: datetime,
        window_end: datetime,
        positive_count: int,
        negative_count: int,
        asana_task_gid: str,
    ) -> ReportRun:
        """Insert and commit a report run.

        Raises:
            CountOutOfRangeError: a count does not fit the int32 column
            DuplicateReportError: a report for report_date already exists
            StoreError: any other database failure
        """
        report = ReportRun(
            report_date=report_date,
            window_start=window_start,
            window_end=window_end,
            positive_count=ensure_int32("positive count", positive_count),
            negative_count=ensure_int32("negative count", negative_count),
            asana_task_gid=asana_task_gid,
        )

        try:
            self.db.add(report)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if is_duplicate_report(e):
                raise DuplicateReportError(
                    f"Report run for {report_date} already exists"
                ) from e
            raise StoreError(f"Failed to insert report run into DB: {e}") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"Failed to insert report run into DB: {e}") from e

        return report
