"""Audit trail query endpoint (ADMIN only).

The trail is written by the workflow engine inside each mutation's
transaction; there is no API to create, change or delete entries.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..auth.dependencies import require_role
from ..auth.roles import Actor, ActorRole
from ..database import get_db
from ..models.audit_log import AuditLog
from .schemas import AuditLogListResponse, AuditLogResponse

router = APIRouter(prefix="/audit", tags=["Audit Logs"])


@router.get(
    "",
    response_model=AuditLogListResponse,
    summary="Query the thesis audit trail (ADMIN only)",
)
def query_audit_logs(
    entity_id: Optional[UUID] = Query(None, description="Only events for this thesis"),
    action: Optional[str] = Query(None, description="e.g. THESIS_STATUS_CHANGED"),
    actor_id: Optional[str] = Query(None, description="Only events caused by this actor"),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
    admin: Actor = Depends(require_role(ActorRole.ADMIN)),
) -> AuditLogListResponse:
    """Audit events, newest first.

    Example:
        GET /api/v1/audit?entity_id=...&action=THESIS_STATUS_CHANGED
    """
    conditions = []
    if entity_id is not None:
        conditions.append(AuditLog.entity_id == entity_id)
    if action:
        conditions.append(AuditLog.action == action)
    if actor_id:
        conditions.append(AuditLog.actor_id == actor_id)

    total = db.execute(
        select(func.count()).select_from(AuditLog).where(*conditions)
    ).scalar_one()

    rows = db.execute(
        select(AuditLog)
        .where(*conditions)
        .order_by(AuditLog.created_at.desc(), AuditLog.id)
        .offset((page - 1) * per_page)
        .limit(per_page)
    ).scalars().all()

    return AuditLogListResponse(
        entries=[AuditLogResponse.model_validate(row) for row in rows],
        total=total,
        page=page,
        per_page=per_page,
        has_more=page * per_page < total,
    )
