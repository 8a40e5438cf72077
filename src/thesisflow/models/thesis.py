"""Thesis model

A thesis record moves through the review workflow:
draft → submitted → under_review → revision_needed | approved | rejected → published.

The ``version`` column is registered as the mapper's version counter with
application-assigned values, so every UPDATE and DELETE the ORM emits carries
``WHERE version = <last committed value>``. A concurrent writer that got there
first makes the statement match zero rows and SQLAlchemy raises
``StaleDataError``.
"""

from uuid import uuid4

from sqlalchemy import Column, DateTime, Enum as SQLEnum, Index, Integer, Text, Uuid

from ..domain.thesis.status import ThesisStatus
from .base import Base, PortableJSONB, TimestampMixin


class Thesis(TimestampMixin, Base):
    """Thesis record owned by one student and reviewed by one supervisor.

    Lifecycle:
    1. Created by the owning student (status=draft, version=0)
    2. Document uploaded (status=submitted, submission_date set)
    3. Supervisor starts review (status=under_review)
    4. Supervisor disposes: revision_needed, approved or rejected
    5. Revised theses are resubmitted (last_resubmitted_at set)
    6. Approved theses are published (terminal)

    All status changes go through theses.workflow.WorkflowEngine.
    """

    __tablename__ = 'thesis'

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)

    title = Column(Text, nullable=False)
    abstract = Column(Text, nullable=True)
    keywords = Column(
        PortableJSONB,
        nullable=False,
        default=list,
        comment="Ordered keyword list, duplicates allowed"
    )

    # Ownership (immutable after creation)
    student_ref = Column(Text, nullable=False, comment="Owning student identifier")
    supervisor_ref = Column(Text, nullable=False, comment="Assigned reviewer identifier")

    # State machine
    status = Column(
        SQLEnum(
            *[s.value for s in ThesisStatus],
            name='thesis_status'
        ),
        nullable=False,
        default=ThesisStatus.DRAFT.value,
        comment="draft → submitted → under_review → revision_needed|approved|rejected → published"
    )

    document_ref = Column(Text, nullable=True, comment="Object storage key of the bound document")

    # Workflow timestamps
    submission_date = Column(DateTime(timezone=True), nullable=True)
    last_resubmitted_at = Column(DateTime(timezone=True), nullable=True)
    approval_date = Column(DateTime(timezone=True), nullable=True)

    # Projection of the latest review_feedback_entry comment
    review_feedback = Column(Text, nullable=True)

    # Optimistic concurrency
    version = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index('ix_thesis_status', 'status'),
        Index('ix_thesis_student_ref', 'student_ref'),
        Index('ix_thesis_supervisor_ref', 'supervisor_ref'),
    )

    __mapper_args__ = {
        "version_id_col": version,
        "version_id_generator": False,
    }

    @property
    def status_enum(self) -> ThesisStatus:
        return ThesisStatus(self.status)

    def __repr__(self) -> str:
        return f"<Thesis id={self.id} status={self.status} version={self.version}>"
