"""Thesis repository for database operations"""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ...domain.thesis.errors import ConflictError, StorageError
from ...domain.thesis.ports import ThesisFilter, ThesisRepositoryPort
from ...models.thesis import Thesis

logger = logging.getLogger(__name__)


def _keyword_matches(thesis: Thesis, needle: str) -> bool:
    needle = needle.lower()
    return any(needle in keyword.lower() for keyword in (thesis.keywords or []))


class SqlAlchemyThesisRepository(ThesisRepositoryPort):
    """Repository for thesis database operations.

    Version checks ride on the mapper's version_id_col: save() assigns
    expected_version + 1 and the flushed UPDATE only matches the row if it
    is still at expected_version.
    """

    def __init__(self, db: Session):
        """Initialize repository with database session.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    def get(self, thesis_id: UUID) -> Optional[Thesis]:
        try:
            return self.db.get(Thesis, thesis_id, populate_existing=True)
        except SQLAlchemyError as e:
            logger.error(f"Failed to load thesis {thesis_id}: {e}")
            raise StorageError(f"Failed to load thesis {thesis_id}")

    def add(self, thesis: Thesis) -> Thesis:
        thesis.version = 0
        try:
            self.db.add(thesis)
            self.db.flush()
        except SQLAlchemyError as e:
            logger.error(f"Failed to insert thesis: {e}")
            raise StorageError("Failed to create thesis")
        return thesis

    def save(self, thesis: Thesis, expected_version: int) -> Thesis:
        thesis.version = expected_version + 1
        try:
            self.db.flush()
        except StaleDataError:
            logger.info(
                f"Version conflict on thesis {thesis.id}: expected_version={expected_version}"
            )
            raise ConflictError(thesis.id, expected_version)
        except SQLAlchemyError as e:
            logger.error(f"Failed to save thesis {thesis.id}: {e}")
            raise StorageError(f"Failed to save thesis {thesis.id}")
        return thesis

    def delete(self, thesis: Thesis, expected_version: int) -> None:
        thesis_id = thesis.id
        try:
            self.db.delete(thesis)
            self.db.flush()
        except StaleDataError:
            logger.info(
                f"Version conflict deleting thesis {thesis_id}: expected_version={expected_version}"
            )
            raise ConflictError(thesis_id, expected_version)
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete thesis {thesis_id}: {e}")
            raise StorageError(f"Failed to delete thesis {thesis_id}")

    def query(self, criteria: ThesisFilter) -> List[Thesis]:
        """List theses matching the filter, newest first.

        Keyword matching runs after the SQL query so it behaves the same on
        PostgreSQL JSONB and SQLite JSON columns.
        """
        conditions = []
        if criteria.status is not None:
            conditions.append(Thesis.status == criteria.status.value)
        if criteria.student_ref is not None:
            conditions.append(Thesis.student_ref == criteria.student_ref)
        if criteria.supervisor_ref is not None:
            conditions.append(Thesis.supervisor_ref == criteria.supervisor_ref)

        stmt = select(Thesis)
        if conditions:
            stmt = stmt.where(and_(*conditions))
        stmt = stmt.order_by(Thesis.created_at.desc(), Thesis.id)

        try:
            rows = list(self.db.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Failed to query theses: {e}")
            raise StorageError("Failed to query theses")

        if criteria.keyword_contains:
            rows = [t for t in rows if _keyword_matches(t, criteria.keyword_contains)]
        return rows

    def commit(self) -> None:
        try:
            self.db.commit()
        except StaleDataError:
            self.db.rollback()
            raise StorageError("Commit rejected: stale data")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Commit failed: {e}")
            raise StorageError("Failed to commit changes")

    def rollback(self) -> None:
        self.db.rollback()
