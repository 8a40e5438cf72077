"""ReviewFeedbackEntry model

Append-only log of reviewer comments attached to status transitions.
Rows are never updated or deleted; the thesis.review_feedback column only
mirrors the newest entry.
"""

from sqlalchemy import Column, DateTime, Index, Integer, Text, Uuid

from .base import Base, utcnow


class ReviewFeedbackEntry(Base):
    """One comment recorded while a thesis entered ``status``.

    No foreign key to thesis: entries outlive a deleted record as part of
    the audit trail. Deletion is only possible in draft, so the entries left
    behind are comments made on draft self-transitions.
    """

    __tablename__ = 'review_feedback_entry'

    # Monotonic id breaks ties between entries with equal authored_at
    id = Column(Integer, primary_key=True, autoincrement=True)
    thesis_id = Column(Uuid(as_uuid=True), nullable=False)
    status = Column(Text, nullable=False, comment="Status being entered when the comment was made")
    comment = Column(Text, nullable=False)
    author_ref = Column(Text, nullable=True)
    authored_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index('ix_review_feedback_entry_thesis_authored', 'thesis_id', 'authored_at'),
    )
