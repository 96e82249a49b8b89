"""Daily feedback aggregation job.

One call to `Aggregator.run()` is one attempt at producing the report for
the current UTC day:

    1. skip if a report run already exists for today
    2. count yesterday's feedback by sentiment
    3. create an Asana task with the summary
    4. record the report run

Nothing is retried here. A failed attempt leaves no report run behind, so
the next scheduler trigger starts over. If the Asana task was created but
the report run could not be saved, the next attempt creates a second task.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..exceptions import TaskCreationError
from ..models.report_run import ReportRun
from .asana_client import TaskClient
from .job_context import JobContext
from .report_store import FeedbackCounts, ReportStore, ensure_int32
from .time_window import (
    Clock,
    TimeWindow,
    calculate_time_window,
    current_report_date,
    utc_now,
)

logger = logging.getLogger(__name__)

WINDOW_FORMAT = "%Y-%m-%d %H:%M"


@dataclass
class FeedbackSummary:
    """Counts and percentages for one window."""

    positive_count: int
    negative_count: int
    total: int
    positive_percent: float
    negative_percent: float

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "positive_count": self.positive_count,
            "negative_count": self.negative_count,
            "total": self.total,
            "positive_percent": self.positive_percent,
            "negative_percent": self.negative_percent,
        }


@dataclass
class AggregationResult:
    """Outcome of one aggregation attempt."""

    report_date: date
    skipped: bool = False  # True if a report already existed
    report: Optional[ReportRun] = None
    summary: Optional[FeedbackSummary] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "report_date": self.report_date.isoformat(),
            "skipped": self.skipped,
            "report": self.report.to_dict() if self.report else None,
            "summary": self.summary.to_dict() if self.summary else None,
        }


def calculate_feedback_summary(counts: FeedbackCounts) -> FeedbackSummary:
    """Derive totals and percentages. An empty window gives 0.0 for both."""
    total = counts.positive + counts.negative
    positive_percent = 0.0
    negative_percent = 0.0
    if total > 0:
        positive_percent = round(counts.positive / total * 100, 1)
        negative_percent = round(counts.negative / total * 100, 1)

    return FeedbackSummary(
        positive_count=counts.positive,
        negative_count=counts.negative,
        total=total,
        positive_percent=positive_percent,
        negative_percent=negative_percent,
    )


def format_task_name(window_end: datetime) -> str:
    return f"Daily Feedback Summary - {window_end.strftime('%Y-%m-%d')}"


def format_task_notes(summary: FeedbackSummary, window: TimeWindow) -> str:
    """Build the plain text body of the Asana task."""
    window_range = (
        f"Window: {window.start.strftime(WINDOW_FORMAT)} "
        f"to {window.end.strftime(WINDOW_FORMAT)} (UTC)"
    )
    lines = [
        "Feedback Summary Report",
        "",
        window_range,
        "",
        f"Positive: {summary.positive_count} ({summary.positive_percent:.1f}%)",
        f"Negative: {summary.negative_count} ({summary.negative_percent:.1f}%)",
        f"Total: {summary.total}",
        "",
        "This report was generated automatically by the feedback analysis job.",
    ]
    return "\n".join(lines)


class Aggregator:
    """Runs the daily feedback aggregation."""

    def __init__(
        self,
        store: ReportStore,
        task_client: TaskClient,
        clock: Clock = utc_now,
    ):
        """Initialize aggregator.

        Args:
            store: Feedback store queries
            task_client: Creates the summary task
            clock: Returns the current instant, swappable in tests
        """
        self.store = store
        self.task_client = task_client
        self.clock = clock

    def run(self, context: Optional[JobContext] = None) -> AggregationResult:
        """Run one aggregation attempt.

        Args:
            context: Cancellation and deadline for this run

        Returns:
            AggregationResult, with skipped=True if today's report already exists

        Raises:
            StoreError: a store query or insert failed
            TaskCreationError: the Asana task could not be created
            CountOutOfRangeError: a count does not fit int32
            JobCancelled: the context was cancelled or its deadline passed
        """
        context = context or JobContext()
        now = self.clock()
        report_date = current_report_date(now)

        logger.info(f"Starting daily feedback aggregation for {report_date}")

        context.raise_if_done("checking for an existing report")
        if self.store.report_exists(report_date):
            logger.info(f"Report run for {report_date} already exists, skipping aggregation")
            return AggregationResult(report_date=report_date, skipped=True)

        window = calculate_time_window(now)

        context.raise_if_done("counting feedback")
        counts = self.store.count_by_sentiment(window.start, window.end)
        ensure_int32("positive count", counts.positive)
        ensure_int32("negative count", counts.negative)

        summary = calculate_feedback_summary(counts)
        title = format_task_name(window.end)
        notes = format_task_notes(summary, window)

        step = "creating the Asana task"
        context.raise_if_done(step)
        timeout = context.remaining()
        try:
            task_gid = context.call(
                lambda: self.task_client.create_task(title, notes, timeout=timeout),
                step,
            )
        except TaskCreationError as e:
            cancelled = context.interrupted(step)
            if cancelled is not None:
                raise cancelled from e
            logger.error(f"Failed to create Asana task: {e}")
            raise

        logger.info(f"Created Asana task {task_gid} for {report_date}")

        # The task exists now, record it even if cancellation was requested meanwhile.
        report = self.store.create_report_run(
            report_date=window.report_date,
            window_start=window.start,
            window_end=window.end,
            positive_count=counts.positive,
            negative_count=counts.negative,
            asana_task_gid=task_gid,
        )

        logger.info(
            f"Report created successfully: report_date={window.report_date} "
            f"positive={summary.positive_count} negative={summary.negative_count}"
        )

        return AggregationResult(
            report_date=report_date, report=report, summary=summary
        )
