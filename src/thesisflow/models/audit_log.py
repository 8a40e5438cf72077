"""Append-only record of accepted thesis mutations."""

from uuid import uuid4

from sqlalchemy import Column, DateTime, Index, Text, Uuid

from .base import Base, PortableJSONB, utcnow


class AuditLog(Base):
    """One audit event.

    ``action`` is one of THESIS_CREATED, THESIS_UPDATED,
    THESIS_STATUS_CHANGED, THESIS_DOCUMENT_BOUND or THESIS_DELETED.
    ``entity_id`` is the thesis id. Rows outlive the thesis they describe
    and are never updated.
    """
    __tablename__ = "audit_log"
    __table_args__ = (
        Index("ix_audit_log_entity", "entity_type", "entity_id"),
        Index("ix_audit_log_created_at", "created_at"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    action = Column(Text, nullable=False)
    entity_type = Column(Text, nullable=True)
    entity_id = Column(Uuid(as_uuid=True), nullable=True)
    actor_id = Column(Text, nullable=True)
    actor_role = Column(Text, nullable=True)
    metadata_json = Column(PortableJSONB, nullable=True)
    ip_address = Column(Text, nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<AuditLog {self.action} entity={self.entity_id}>"
