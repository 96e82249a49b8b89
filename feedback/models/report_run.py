"""Report run model recording each completed daily aggregation."""

from datetime import date, datetime, timezone

from sqlalchemy import Column, Date, DateTime, Integer, String, UniqueConstraint

from .database import Base

REPORT_DATE_CONSTRAINT = "uq_report_runs_report_date"


class ReportRun(Base):
    """One completed aggregation for a UTC calendar day."""

    __tablename__ = "report_runs"

    id = Column(Integer, primary_key=True)
    report_date = Column(Date, nullable=False, index=True)  # Window end date (UTC)
    window_start = Column(DateTime(timezone=True), nullable=False)
    window_end = Column(DateTime(timezone=True), nullable=False)
    positive_count = Column(Integer, nullable=False, default=0)
    negative_count = Column(Integer, nullable=False, default=0)
    asana_task_gid = Column(String(64))
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        UniqueConstraint("report_date", name=REPORT_DATE_CONSTRAINT),
    )

    def __repr__(self) -> str:
        return f"<ReportRun {self.report_date} task={self.asana_task_gid}>"

    @classmethod
    def exists_for_date(cls, db_session, report_date: date) -> bool:
        """Check whether a report was already produced for a date."""
        return (
            db_session.query(cls.id).filter(cls.report_date == report_date).first()
            is not None
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "report_date": self.report_date.isoformat() if self.report_date else None,
            "window_start": self.window_start.isoformat() if self.window_start else None,
            "window_end": self.window_end.isoformat() if self.window_end else None,
            "positive_count": self.positive_count,
            "negative_count": self.negative_count,
            "asana_task_gid": self.asana_task_gid,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
