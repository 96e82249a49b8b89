"""Services for Feedback Collector."""

from .aggregator import AggregationResult, Aggregator, FeedbackSummary
from .asana_client import AsanaClient, TaskClient
from .job_context import JobContext
from .report_store import FeedbackCounts, ReportStore, SQLAlchemyReportStore

__all__ = [
    "AggregationResult",
    "Aggregator",
    "FeedbackSummary",
    "AsanaClient",
    "TaskClient",
    "JobContext",
    "FeedbackCounts",
    "ReportStore",
    "SQLAlchemyReportStore",
]
