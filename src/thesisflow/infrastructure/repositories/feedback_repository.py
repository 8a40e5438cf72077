"""Review feedback log repository"""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...domain.thesis.errors import StorageError
from ...domain.thesis.ports import ReviewFeedbackLogPort
from ...domain.thesis.status import ThesisStatus
from ...models.base import utcnow
from ...models.review_feedback import ReviewFeedbackEntry

logger = logging.getLogger(__name__)


class SqlAlchemyReviewFeedbackLog(ReviewFeedbackLogPort):
    """Append-only review feedback log stored in review_feedback_entry.

    Shares the caller's session, so entries commit or roll back together
    with the thesis update that produced them.
    """

    def __init__(self, db: Session):
        self.db = db

    def append(
        self,
        thesis_id: UUID,
        status: ThesisStatus,
        comment: str,
        author_ref: Optional[str] = None,
    ) -> ReviewFeedbackEntry:
        entry = ReviewFeedbackEntry(
            thesis_id=thesis_id,
            status=ThesisStatus(status).value,
            comment=comment,
            author_ref=author_ref,
            authored_at=utcnow(),
        )
        try:
            self.db.add(entry)
            self.db.flush()
        except SQLAlchemyError as e:
            logger.error(f"Failed to append feedback for thesis {thesis_id}: {e}")
            raise StorageError(f"Failed to record feedback for thesis {thesis_id}")
        return entry

    def latest_for(self, thesis_id: UUID) -> Optional[ReviewFeedbackEntry]:
        stmt = (
            select(ReviewFeedbackEntry)
            .where(ReviewFeedbackEntry.thesis_id == thesis_id)
            .order_by(ReviewFeedbackEntry.authored_at.desc(), ReviewFeedbackEntry.id.desc())
            .limit(1)
        )
        try:
            return self.db.execute(stmt).scalars().first()
        except SQLAlchemyError as e:
            logger.error(f"Failed to read feedback for thesis {thesis_id}: {e}")
            raise StorageError(f"Failed to read feedback for thesis {thesis_id}")

    def history_for(self, thesis_id: UUID) -> List[ReviewFeedbackEntry]:
        stmt = (
            select(ReviewFeedbackEntry)
            .where(ReviewFeedbackEntry.thesis_id == thesis_id)
            .order_by(ReviewFeedbackEntry.authored_at, ReviewFeedbackEntry.id)
        )
        try:
            return list(self.db.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Failed to read feedback for thesis {thesis_id}: {e}")
            raise StorageError(f"Failed to read feedback for thesis {thesis_id}")
