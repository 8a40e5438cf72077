"""Response schemas for the audit trail (read-only)."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class AuditLogResponse(BaseModel):
    """One recorded thesis mutation.

    ``metadata`` carries the event payload, e.g. ``{"from": "draft",
    "to": "submitted", "version": 1}`` for THESIS_STATUS_CHANGED.
    """

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    action: str
    entity_type: Optional[str] = None
    entity_id: Optional[UUID] = Field(None, description="Thesis id")
    actor_id: Optional[str] = Field(None, description="None for internal callers")
    actor_role: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="metadata_json")
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime


class AuditLogListResponse(BaseModel):
    entries: List[AuditLogResponse]
    total: int
    page: int
    per_page: int
    has_more: bool
