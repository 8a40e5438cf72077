"""Thesis workflow engine.

The only code path that changes a thesis. Every mutating operation runs as
one unit of work against the caller's session:

    load -> version check -> table/guard check -> authorization
         -> side effects -> versioned save -> feedback -> audit -> commit

Any failure rolls the whole unit back, so readers never observe a partially
applied transition.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..audit.service import (
    THESIS_CREATED,
    THESIS_DELETED,
    THESIS_STATUS_CHANGED,
    THESIS_UPDATED,
    ClientInfo,
    log_audit_event,
)
from ..auth.roles import Actor
from ..domain.thesis.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
    ThesisValidationError,
    ThesisWorkflowError,
)
from ..domain.thesis.permissions import (
    allowed_targets_for,
    can_view,
    ensure_can_create,
    ensure_can_modify,
    ensure_can_transition,
    ensure_can_view,
)
from ..domain.thesis.ports import (
    ReviewFeedbackLogPort,
    ThesisFilter,
    ThesisRepositoryPort,
)
from ..domain.thesis.status import (
    DELETABLE_STATES,
    INITIAL_STATUS,
    StateTransitionError,
    ThesisStatus,
    get_allowed_transitions,
    is_editable,
    validate_transition,
)
from ..domain.thesis.validation import normalize_keywords, validate_new_thesis, validate_patch
from ..infrastructure.repositories.feedback_repository import SqlAlchemyReviewFeedbackLog
from ..infrastructure.repositories.thesis_repository import SqlAlchemyThesisRepository
from ..models.base import utcnow
from ..models.thesis import Thesis
from ..observability.metrics import (
    operations_rejected_total,
    theses_created_total,
    transitions_total,
)

logger = logging.getLogger(__name__)

StatusLike = Union[ThesisStatus, str]


def coerce_status(value: StatusLike, field: str = "target_status") -> ThesisStatus:
    """Parse a status value, reporting unknown names as a field error."""
    try:
        return ThesisStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in ThesisStatus)
        raise ThesisValidationError([
            {"field": field, "message": f"Unknown status {value!r}; expected one of: {allowed}"}
        ])


def _actor_fields(actor: Optional[Actor]) -> Dict[str, Any]:
    if actor is None:
        return {}
    return {"actor_id": actor.id, "actor_role": actor.role.value}


class WorkflowEngine:
    """Authoritative state machine for thesis records.

    Args:
        db: SQLAlchemy session; one engine instance per request
        repository: Thesis persistence (defaults to the SQLAlchemy adapter)
        feedback_log: Review feedback log (defaults to the SQLAlchemy adapter)
        client: Request origin recorded on audit entries

    Every public operation accepts an optional ``actor``. When given, role
    and ownership rules apply; ``None`` means a trusted internal caller.
    """

    def __init__(
        self,
        db: Session,
        repository: Optional[ThesisRepositoryPort] = None,
        feedback_log: Optional[ReviewFeedbackLogPort] = None,
        client: Optional[ClientInfo] = None,
    ):
        self.db = db
        self.repository = repository or SqlAlchemyThesisRepository(db)
        self.feedback_log = feedback_log or SqlAlchemyReviewFeedbackLog(db)
        self.client = client

    # Unit-of-work plumbing, shared with DocumentBinder

    @contextmanager
    def guard(self, operation: str, thesis_id: Optional[UUID] = None) -> Iterator[None]:
        """Roll back and count the operation if it is rejected.

        Domain errors propagate unchanged. Stray SQLAlchemy errors are
        wrapped into StorageError.
        """
        try:
            yield
        except ThesisWorkflowError as e:
            self.repository.rollback()
            self.record_rejection(operation, e, thesis_id)
            raise
        except SQLAlchemyError as e:
            self.repository.rollback()
            error = StorageError(f"Storage failure during {operation}")
            self.record_rejection(operation, error, thesis_id)
            raise error from e

    def record_rejection(
        self,
        operation: str,
        error: ThesisWorkflowError,
        thesis_id: Optional[UUID],
    ) -> None:
        operations_rejected_total.labels(operation=operation, error=error.error).inc()
        log = logger.error if isinstance(error, StorageError) else logger.warning
        log(
            f"{operation} rejected: {error.message}",
            extra={
                "operation": operation,
                "error_code": error.error,
                "thesis_id": str(thesis_id) if thesis_id else None,
            },
        )

    def _get_or_raise(self, thesis_id: UUID) -> Thesis:
        thesis = self.repository.get(thesis_id)
        if thesis is None:
            raise NotFoundError(thesis_id)
        return thesis

    def load_for_update(self, thesis_id: UUID, expected_version: int) -> Thesis:
        """Load a record and check the caller saw its current version.

        Raises:
            NotFoundError: Unknown id
            ConflictError: Record has moved past expected_version
        """
        thesis = self._get_or_raise(thesis_id)
        if thesis.version != expected_version:
            raise ConflictError(thesis_id, expected_version, thesis.version)
        return thesis

    def apply_transition(
        self,
        thesis: Thesis,
        target: ThesisStatus,
        actor: Optional[Actor] = None,
    ) -> ThesisStatus:
        """Validate and apply a status change to an in-memory record.

        Sets domain timestamps only when the status actually changes. Does
        not persist; the caller saves with the version it checked.

        Returns:
            The status the record was in before the call

        Raises:
            InvalidTransitionError: Edge not in the transition table
            PermissionDeniedError: Actor may not request this edge
        """
        current = thesis.status_enum
        try:
            validate_transition(current, target)
        except StateTransitionError as e:
            raise InvalidTransitionError(str(e), current.value, target.value)

        ensure_can_transition(actor, thesis, current, target)

        if target != current:
            now = utcnow()
            if target == ThesisStatus.SUBMITTED:
                if thesis.submission_date is None:
                    thesis.submission_date = now
                else:
                    thesis.last_resubmitted_at = now
            elif target == ThesisStatus.APPROVED and thesis.approval_date is None:
                thesis.approval_date = now
            thesis.status = target.value

        return current

    def commit_mutation(
        self,
        thesis: Thesis,
        expected_version: int,
        audit_events: Iterable[tuple],
        actor: Optional[Actor] = None,
        comment: Optional[str] = None,
    ) -> Thesis:
        """Persist a mutated record as expected_version + 1 and commit.

        Args:
            thesis: Record already mutated in memory
            expected_version: Version the caller checked
            audit_events: (action, metadata) pairs to record
            actor: Caller, for feedback authorship and audit
            comment: Reviewer comment for the status now held by the record
        """
        thesis.updated_at = utcnow()
        if comment:
            thesis.review_feedback = comment

        self.repository.save(thesis, expected_version)

        if comment:
            self.feedback_log.append(
                thesis.id,
                thesis.status_enum,
                comment,
                author_ref=actor.id if actor else None,
            )

        for action, metadata in audit_events:
            log_audit_event(
                db=self.db,
                action=action,
                actor=actor,
                entity_id=thesis.id,
                metadata={**metadata, "version": thesis.version},
                client=self.client,
            )

        self.repository.commit()
        return thesis

    # Public operations

    def create(
        self,
        title: str,
        student_ref: str,
        supervisor_ref: str,
        abstract: Optional[str] = None,
        keywords: Union[None, str, List[str]] = None,
        actor: Optional[Actor] = None,
    ) -> Thesis:
        """Create a thesis in Draft at version 0.

        Raises:
            ThesisValidationError: Empty title, missing refs, malformed keywords
            PermissionDeniedError: Actor may not create for this student
        """
        with self.guard("create"):
            keywords = normalize_keywords(keywords)
            validate_new_thesis(title, keywords, student_ref, supervisor_ref)
            ensure_can_create(actor, student_ref.strip())

            now = utcnow()
            thesis = Thesis(
                title=title.strip(),
                abstract=abstract,
                keywords=list(keywords or []),
                student_ref=student_ref.strip(),
                supervisor_ref=supervisor_ref.strip(),
                status=INITIAL_STATUS.value,
                created_at=now,
                updated_at=now,
            )
            self.repository.add(thesis)
            log_audit_event(
                db=self.db,
                action=THESIS_CREATED,
                actor=actor,
                entity_id=thesis.id,
                metadata={
                    "title": thesis.title,
                    "student_ref": thesis.student_ref,
                    "supervisor_ref": thesis.supervisor_ref,
                    "version": 0,
                },
                client=self.client,
            )
            self.repository.commit()

        theses_created_total.inc()
        logger.info(
            f"Created thesis {thesis.id}",
            extra={"thesis_id": str(thesis.id), "to_status": thesis.status, **_actor_fields(actor)},
        )
        return thesis

    def load(self, thesis_id: UUID, actor: Optional[Actor] = None) -> Thesis:
        """Load a thesis by id.

        Raises:
            NotFoundError: Unknown id
            PermissionDeniedError: Actor may not see this thesis
        """
        with self.guard("load", thesis_id):
            thesis = self._get_or_raise(thesis_id)
            ensure_can_view(actor, thesis)
        return thesis

    def list_with_filter(
        self,
        status: Optional[StatusLike] = None,
        student_ref: Optional[str] = None,
        supervisor_ref: Optional[str] = None,
        keyword_contains: Optional[str] = None,
        actor: Optional[Actor] = None,
    ) -> List[Thesis]:
        """List theses matching every given criterion, newest first.

        Results are narrowed to what the actor may view.
        """
        with self.guard("list"):
            criteria = ThesisFilter(
                status=coerce_status(status, "status") if status is not None else None,
                student_ref=student_ref,
                supervisor_ref=supervisor_ref,
                keyword_contains=keyword_contains or None,
            )
            theses = self.repository.query(criteria)
        return [t for t in theses if can_view(actor, t)]

    def transition(
        self,
        thesis_id: UUID,
        expected_version: int,
        target_status: StatusLike,
        comment: Optional[str] = None,
        actor: Optional[Actor] = None,
    ) -> Thesis:
        """Move a thesis to target_status.

        Raises:
            NotFoundError: Unknown id
            ConflictError: Stale expected_version
            InvalidTransitionError: Target unreachable (always, from a terminal state)
            PermissionDeniedError: Actor may not request this edge
            StorageError: Persistence failure
        """
        with self.guard("transition", thesis_id):
            target = coerce_status(target_status)
            thesis = self.load_for_update(thesis_id, expected_version)
            previous = self.apply_transition(thesis, target, actor)
            comment = comment.strip() if comment else None

            self.commit_mutation(
                thesis,
                expected_version,
                [(THESIS_STATUS_CHANGED, {
                    "from": previous.value,
                    "to": target.value,
                    "comment": comment,
                })],
                actor=actor,
                comment=comment,
            )

        transitions_total.labels(from_status=previous.value, to_status=target.value).inc()
        logger.info(
            f"Thesis {thesis_id} {previous.value} -> {target.value} (version {thesis.version})",
            extra={
                "thesis_id": str(thesis_id),
                "from_status": previous.value,
                "to_status": target.value,
                **_actor_fields(actor),
            },
        )
        return thesis

    def edit_fields(
        self,
        thesis_id: UUID,
        expected_version: int,
        patch: Dict[str, Any],
        actor: Optional[Actor] = None,
    ) -> Thesis:
        """Update title, abstract and/or keywords.

        Raises:
            NotFoundError: Unknown id
            ConflictError: Stale expected_version
            PermissionDeniedError: Status is not Draft/RevisionNeeded, or actor
                is not the owning student or an admin
            ThesisValidationError: Empty patch, immutable field, bad values
        """
        with self.guard("edit_fields", thesis_id):
            thesis = self.load_for_update(thesis_id, expected_version)
            if not is_editable(thesis.status_enum):
                raise PermissionDeniedError(
                    f"Thesis {thesis_id} cannot be edited in status {thesis.status}",
                    details={"current_status": thesis.status},
                )
            ensure_can_modify(actor, thesis, "edit")

            patch = dict(patch)
            if "keywords" in patch:
                patch["keywords"] = normalize_keywords(patch["keywords"])
            cleaned = validate_patch(patch)

            for field, value in cleaned.items():
                setattr(thesis, field, value)

            self.commit_mutation(
                thesis,
                expected_version,
                [(THESIS_UPDATED, {"fields": sorted(cleaned)})],
                actor=actor,
            )

        logger.info(
            f"Edited thesis {thesis_id}: {sorted(cleaned)}",
            extra={"thesis_id": str(thesis_id), **_actor_fields(actor)},
        )
        return thesis

    def delete(
        self,
        thesis_id: UUID,
        expected_version: int,
        actor: Optional[Actor] = None,
    ) -> None:
        """Hard-delete a thesis. Only Draft theses can be deleted.

        Raises:
            NotFoundError: Unknown id
            ConflictError: Stale expected_version
            PermissionDeniedError: Status is not Draft, or actor may not delete
        """
        with self.guard("delete", thesis_id):
            thesis = self.load_for_update(thesis_id, expected_version)
            if thesis.status_enum not in DELETABLE_STATES:
                raise PermissionDeniedError(
                    f"Thesis {thesis_id} cannot be deleted in status {thesis.status}",
                    details={"current_status": thesis.status},
                )
            ensure_can_modify(actor, thesis, "delete")

            title = thesis.title
            self.repository.delete(thesis, expected_version)
            log_audit_event(
                db=self.db,
                action=THESIS_DELETED,
                actor=actor,
                entity_id=thesis_id,
                metadata={"title": title, "version": expected_version},
                client=self.client,
            )
            self.repository.commit()

        logger.info(
            f"Deleted thesis {thesis_id}",
            extra={"thesis_id": str(thesis_id), **_actor_fields(actor)},
        )

    def feedback_history(self, thesis_id: UUID, actor: Optional[Actor] = None) -> list:
        """All review comments for a thesis, oldest first."""
        thesis = self.load(thesis_id, actor)
        with self.guard("feedback_history", thesis_id):
            return self.feedback_log.history_for(thesis.id)

    def allowed_transitions(
        self,
        thesis_id: UUID,
        actor: Optional[Actor] = None,
    ) -> List[ThesisStatus]:
        """Targets the actor could request now, in table order."""
        thesis = self.load(thesis_id, actor)
        permitted = allowed_targets_for(actor, thesis)
        return [t for t in get_allowed_transitions(thesis.status_enum) if t in permitted]
