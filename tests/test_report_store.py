"""Tests for the SQLAlchemy-backed report store."""

from datetime import date, datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError

from feedback.exceptions import (
    CountOutOfRangeError,
    DuplicateReportError,
    JobCancelled,
    StoreError,
)
from feedback.models.feedback import Feedback, Sentiment
from feedback.models.report_run import ReportRun
from feedback.services import report_store
from feedback.services.job_context import JobContext
from feedback.services.report_store import (
    INT32_MAX,
    FeedbackCounts,
    SQLAlchemyReportStore,
    ensure_int32,
)

WINDOW_START = datetime(2024, 6, 14, tzinfo=timezone.utc)
WINDOW_END = datetime(2024, 6, 15, tzinfo=timezone.utc)
REPORT_DATE = date(2024, 6, 15)


def create_report(store, gid="1234567890"):
    return store.create_report_run(
        report_date=REPORT_DATE,
        window_start=WINDOW_START,
        window_end=WINDOW_END,
        positive_count=3,
        negative_count=1,
        asana_task_gid=gid,
    )


def test_ensure_int32():
    assert ensure_int32("count", 0) == 0
    assert ensure_int32("count", INT32_MAX) == INT32_MAX
    with pytest.raises(CountOutOfRangeError, match="count 2147483648 exceeds int32 range"):
        ensure_int32("count", INT32_MAX + 1)


def test_report_exists(db_session):
    store = SQLAlchemyReportStore(db_session)

    assert store.report_exists(REPORT_DATE) is False
    create_report(store)
    assert store.report_exists(REPORT_DATE) is True
    assert store.report_exists(date(2024, 6, 16)) is False


def test_count_by_sentiment_empty(db_session):
    store = SQLAlchemyReportStore(db_session)

    assert store.count_by_sentiment(WINDOW_START, WINDOW_END) == FeedbackCounts(0, 0)


def test_count_by_sentiment_only_counts_window(db_session):
    rows = [
        (Sentiment.POSITIVE, datetime(2024, 6, 14, 0, 0, tzinfo=timezone.utc)),
        (Sentiment.POSITIVE, datetime(2024, 6, 14, 9, 15, tzinfo=timezone.utc)),
        (Sentiment.POSITIVE, datetime(2024, 6, 14, 18, 0, tzinfo=timezone.utc)),
        (Sentiment.NEGATIVE, datetime(2024, 6, 14, 23, 59, 59, tzinfo=timezone.utc)),
        (Sentiment.NEGATIVE, datetime(2024, 6, 15, 0, 0, tzinfo=timezone.utc)),
        (Sentiment.POSITIVE, datetime(2024, 6, 13, 12, 0, tzinfo=timezone.utc)),
    ]
    for sentiment, created_at in rows:
        db_session.add(Feedback(sentiment=sentiment.value, created_at=created_at))
    db_session.commit()

    counts = SQLAlchemyReportStore(db_session).count_by_sentiment(WINDOW_START, WINDOW_END)

    assert counts == FeedbackCounts(positive=3, negative=1)


def test_count_by_sentiment_missing_category_is_zero(db_session):
    db_session.add(
        Feedback(sentiment="negative", created_at=datetime(2024, 6, 14, 8, tzinfo=timezone.utc))
    )
    db_session.commit()

    counts = SQLAlchemyReportStore(db_session).count_by_sentiment(WINDOW_START, WINDOW_END)

    assert counts == FeedbackCounts(positive=0, negative=1)


def test_create_report_run(db_session):
    report = create_report(SQLAlchemyReportStore(db_session))

    assert report.id is not None
    assert report.created_at is not None

    stored = db_session.query(ReportRun).one()
    assert stored.report_date == REPORT_DATE
    assert stored.positive_count == 3
    assert stored.negative_count == 1
    assert stored.asana_task_gid == "1234567890"
    assert stored.to_dict()["report_date"] == "2024-06-15"


def test_create_report_run_rejects_out_of_range_counts(db_session):
    store = SQLAlchemyReportStore(db_session)

    with pytest.raises(CountOutOfRangeError):
        store.create_report_run(
            report_date=REPORT_DATE,
            window_start=WINDOW_START,
            window_end=WINDOW_END,
            positive_count=INT32_MAX + 1,
            negative_count=0,
            asana_task_gid="1",
        )

    assert db_session.query(ReportRun).count() == 0


def test_duplicate_report_date_is_rejected(db_session):
    store = SQLAlchemyReportStore(db_session)
    create_report(store, gid="first")

    with pytest.raises(DuplicateReportError):
        create_report(store, gid="second")

    # The session is usable again after the failed insert.
    runs = db_session.query(ReportRun).all()
    assert [r.asana_task_gid for r in runs] == ["first"]


def test_concurrent_runs_store_one_report(session_factory):
    first_session = session_factory()
    second_session = session_factory()
    first = SQLAlchemyReportStore(first_session)
    second = SQLAlchemyReportStore(second_session)

    try:
        # Both runs pass the existence check before either inserts.
        assert first.report_exists(REPORT_DATE) is False
        assert second.report_exists(REPORT_DATE) is False

        create_report(first, gid="first")
        with pytest.raises(DuplicateReportError):
            create_report(second, gid="second")
    finally:
        first_session.close()
        second_session.close()

    check_session = session_factory()
    try:
        runs = check_session.query(ReportRun).all()
        assert len(runs) == 1
        assert runs[0].asana_task_gid == "first"
    finally:
        check_session.close()


def test_query_failure_is_wrapped(db_session, mocker):
    mocker.patch.object(
        db_session,
        "query",
        side_effect=OperationalError("SELECT 1", {}, Exception("database is locked")),
    )
    store = SQLAlchemyReportStore(db_session)

    with pytest.raises(StoreError, match="Failed to check report run"):
        store.report_exists(REPORT_DATE)

    with pytest.raises(StoreError, match="Failed to query feedback counts"):
        store.count_by_sentiment(WINDOW_START, WINDOW_END)


def test_insert_failure_is_wrapped(db_session, mocker):
    mocker.patch.object(
        db_session,
        "commit",
        side_effect=OperationalError("INSERT", {}, Exception("disk I/O error")),
    )

    with pytest.raises(StoreError, match="Failed to insert report run") as exc_info:
        create_report(SQLAlchemyReportStore(db_session))

    assert not isinstance(exc_info.value, DuplicateReportError)


@pytest.fixture
def check_every_step(monkeypatch):
    monkeypatch.setattr(report_store, "SQLITE_PROGRESS_STEPS", 1)


def test_live_context_does_not_interrupt_queries(db_session, check_every_step):
    db_session.add(Feedback(sentiment=Sentiment.POSITIVE.value, created_at=WINDOW_START))
    db_session.commit()
    store = SQLAlchemyReportStore(db_session, context=JobContext(timeout=30))

    assert store.report_exists(REPORT_DATE) is False
    assert store.count_by_sentiment(WINDOW_START, WINDOW_END) == FeedbackCounts(1, 0)


def test_cancelled_context_interrupts_queries(db_session, check_every_step):
    context = JobContext()
    context.cancel()
    store = SQLAlchemyReportStore(db_session, context=context)

    with pytest.raises(JobCancelled, match="cancelled while counting feedback"):
        store.count_by_sentiment(WINDOW_START, WINDOW_END)

    with pytest.raises(JobCancelled, match="cancelled while checking for an existing report"):
        store.report_exists(REPORT_DATE)


def test_expired_context_interrupts_queries(db_session, check_every_step):
    store = SQLAlchemyReportStore(db_session, context=JobContext(timeout=0))

    with pytest.raises(JobCancelled, match="deadline exceeded while counting feedback"):
        store.count_by_sentiment(WINDOW_START, WINDOW_END)


def test_insert_ignores_cancellation(db_session, check_every_step):
    context = JobContext()
    context.cancel()

    create_report(SQLAlchemyReportStore(db_session, context=context))

    assert db_session.query(ReportRun).count() == 1


def test_other_integrity_errors_are_not_duplicates(db_session):
    store = SQLAlchemyReportStore(db_session)

    with pytest.raises(StoreError, match="Failed to insert report run") as exc_info:
        store.create_report_run(
            report_date=REPORT_DATE,
            window_start=None,
            window_end=WINDOW_END,
            positive_count=1,
            negative_count=0,
            asana_task_gid="1",
        )

    assert not isinstance(exc_info.value, DuplicateReportError)
