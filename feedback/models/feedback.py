"""Feedback model for user sentiment submissions."""

import enum
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, Text

from .database import Base


class Sentiment(str, enum.Enum):
    """Sentiment a user can pick on the feedback form."""

    POSITIVE = "positive"
    NEGATIVE = "negative"

    @classmethod
    def parse(cls, value: str) -> Optional["Sentiment"]:
        """Return the matching sentiment or None for anything else."""
        try:
            return cls(value.strip())
        except ValueError:
            return None


class Feedback(Base):
    """A single feedback submission. Rows are never updated or deleted."""

    __tablename__ = "feedback"

    id = Column(Integer, primary_key=True)
    sentiment = Column(String(20), nullable=False, index=True)  # 'positive' or 'negative'
    message = Column(Text)  # Optional free text
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )

    __table_args__ = (
        CheckConstraint(
            "sentiment IN ('positive', 'negative')", name="ck_feedback_sentiment"
        ),
    )

    def __repr__(self) -> str:
        return f"<Feedback {self.id} sentiment={self.sentiment}>"

    @classmethod
    def create(
        cls, db_session, sentiment: Sentiment, message: Optional[str] = None
    ) -> "Feedback":
        """Add a new feedback row to the session.

        Args:
            db_session: SQLAlchemy session
            sentiment: Submitted sentiment
            message: Optional message, stored as NULL when empty

        Returns:
            The pending Feedback instance (caller commits)
        """
        feedback = cls(sentiment=sentiment.value, message=message or None)
        db_session.add(feedback)
        return feedback

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "sentiment": self.sentiment,
            "message": self.message,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
