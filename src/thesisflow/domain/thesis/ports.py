"""Persistence ports for the thesis workflow (Hexagonal Architecture).

The workflow engine depends only on these interfaces. The SQLAlchemy
adapters live in infrastructure.repositories.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional
from uuid import UUID

from .status import ThesisStatus


@dataclass
class ThesisFilter:
    """Query filter for listing theses.

    All criteria are optional and combined with AND. Status and refs are
    equality matches; keyword_contains is a case-insensitive substring match
    against any keyword.
    """
    status: Optional[ThesisStatus] = None
    student_ref: Optional[str] = None
    supervisor_ref: Optional[str] = None
    keyword_contains: Optional[str] = None


class ThesisRepositoryPort(ABC):
    """Port interface for thesis persistence.

    Implementations must make save() and delete() conditional on the
    record's version: the write only succeeds if the stored version still
    equals expected_version, otherwise ConflictError is raised and nothing
    is written.
    """

    @abstractmethod
    def get(self, thesis_id: UUID) -> Optional[Any]:
        """Load a thesis by id, or None if it does not exist."""
        pass

    @abstractmethod
    def add(self, thesis: Any) -> Any:
        """Persist a new thesis (version 0)."""
        pass

    @abstractmethod
    def save(self, thesis: Any, expected_version: int) -> Any:
        """Persist a mutated thesis as version expected_version + 1.

        Raises:
            ConflictError: If the stored version is no longer expected_version
            StorageError: On any other storage failure
        """
        pass

    @abstractmethod
    def delete(self, thesis: Any, expected_version: int) -> None:
        """Hard-delete a thesis if its stored version is expected_version.

        Raises:
            ConflictError: If the stored version is no longer expected_version
            StorageError: On any other storage failure
        """
        pass

    @abstractmethod
    def query(self, criteria: ThesisFilter) -> List[Any]:
        """List theses matching the filter, newest first."""
        pass

    @abstractmethod
    def commit(self) -> None:
        """Commit the current unit of work."""
        pass

    @abstractmethod
    def rollback(self) -> None:
        """Discard the current unit of work."""
        pass


class ReviewFeedbackLogPort(ABC):
    """Port interface for the append-only review feedback log."""

    @abstractmethod
    def append(
        self,
        thesis_id: UUID,
        status: ThesisStatus,
        comment: str,
        author_ref: Optional[str] = None,
    ) -> Any:
        """Append a comment for the status being entered.

        Raises:
            StorageError: If the entry cannot be written
        """
        pass

    @abstractmethod
    def latest_for(self, thesis_id: UUID) -> Optional[Any]:
        """Most recent entry for the thesis, or None."""
        pass

    @abstractmethod
    def history_for(self, thesis_id: UUID) -> List[Any]:
        """All entries for the thesis, oldest first."""
        pass
