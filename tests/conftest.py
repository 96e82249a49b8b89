"""Pytest fixtures for testing."""

import os
from datetime import date, datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Set test environment before importing app
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["ASANA_TOKEN"] = "test-token"
os.environ["ASANA_WORKSPACE_GID"] = "workspace-123"
os.environ["ASANA_PROJECT_GID"] = "project-456"

from feedback import create_app
from feedback.config import reset_config
from feedback.exceptions import DuplicateReportError
from feedback.models.database import Base, close_db
from feedback.models.report_run import ReportRun
from feedback.services.report_store import FeedbackCounts, ensure_int32


class FakeReportStore:
    """In-memory ReportStore that records what the aggregator did."""

    def __init__(self, positive: int = 0, negative: int = 0):
        self.counts = FeedbackCounts(positive=positive, negative=negative)
        self.reports: dict[date, ReportRun] = {}
        self.exists_calls = 0
        self.count_calls = 0
        self.last_window = None

    def report_exists(self, report_date: date) -> bool:
        self.exists_calls += 1
        return report_date in self.reports

    def count_by_sentiment(self, window_start: datetime, window_end: datetime) -> FeedbackCounts:
        self.count_calls += 1
        self.last_window = (window_start, window_end)
        return self.counts

    def create_report_run(
        self,
        report_date,
        window_start,
        window_end,
        positive_count,
        negative_count,
        asana_task_gid,
    ) -> ReportRun:
        if report_date in self.reports:
            raise DuplicateReportError(f"Report run for {report_date} already exists")
        report = ReportRun(
            report_date=report_date,
            window_start=window_start,
            window_end=window_end,
            positive_count=ensure_int32("positive count", positive_count),
            negative_count=ensure_int32("negative count", negative_count),
            asana_task_gid=asana_task_gid,
        )
        self.reports[report_date] = report
        return report


class FakeTaskClient:
    """In-memory TaskClient."""

    def __init__(self, gid: str = "1234567890", error: Exception = None):
        self.gid = gid
        self.error = error
        self.calls = []

    def create_task(self, title: str, notes: str, timeout=None) -> str:
        self.calls.append({"title": title, "notes": notes, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.gid


def fixed_clock(moment: datetime):
    """Clock that always returns the same instant."""
    return lambda: moment


@pytest.fixture
def now():
    """A mid-afternoon instant on 2024-06-15 UTC."""
    return datetime(2024, 6, 15, 14, 30, 45, 123456, tzinfo=timezone.utc)


@pytest.fixture
def app():
    """Create application for testing."""
    reset_config()
    close_db()
    application = create_app(testing=True)
    yield application
    close_db()
    reset_config()


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def db_session():
    """Create in-memory SQLite database for testing."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    session = Session()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def session_factory(tmp_path):
    """Session factory on a file-backed SQLite database.

    Sessions from it use separate connections, like concurrent job runs.
    """
    engine = create_engine(f"sqlite:///{tmp_path / 'feedback.db'}")
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine)
    engine.dispose()


@pytest.fixture
def fake_store():
    """Fake store with 75 positive and 25 negative submissions."""
    return FakeReportStore(positive=75, negative=25)


@pytest.fixture
def fake_task_client():
    """Fake task client that always succeeds."""
    return FakeTaskClient()
