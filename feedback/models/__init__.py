"""Database models for Feedback Collector."""

from .database import Base, get_db, init_db
from .feedback import Feedback, Sentiment
from .report_run import ReportRun

__all__ = [
    "Base",
    "get_db",
    "init_db",
    "Feedback",
    "Sentiment",
    "ReportRun",
]
