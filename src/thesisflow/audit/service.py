"""Writing the thesis audit trail.

Rows are added to the caller's session and flushed, never committed here:
the workflow engine commits them together with the mutation they
describe, so a rolled-back change leaves no audit row behind.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import Request
from sqlalchemy.orm import Session

from ..auth.roles import Actor
from ..models.audit_log import AuditLog

THESIS_CREATED = "THESIS_CREATED"
THESIS_UPDATED = "THESIS_UPDATED"
THESIS_STATUS_CHANGED = "THESIS_STATUS_CHANGED"
THESIS_DOCUMENT_BOUND = "THESIS_DOCUMENT_BOUND"
THESIS_DELETED = "THESIS_DELETED"

THESIS_ENTITY = "thesis"


@dataclass(frozen=True)
class ClientInfo:
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


def client_info_from_request(request: Request) -> ClientInfo:
    """Origin of an API call; the first X-Forwarded-For hop wins over the socket peer."""
    forwarded_for = request.headers.get("X-Forwarded-For", "")
    first_hop = forwarded_for.split(",")[0].strip()
    peer = request.client.host if request.client else None
    return ClientInfo(
        ip_address=first_hop or peer,
        user_agent=request.headers.get("User-Agent"),
    )


def log_audit_event(
    db: Session,
    action: str,
    actor: Optional[Actor] = None,
    entity_type: Optional[str] = THESIS_ENTITY,
    entity_id: Optional[UUID] = None,
    metadata: Optional[Dict[str, Any]] = None,
    client: Optional[ClientInfo] = None,
) -> AuditLog:
    """Stage one audit row in ``db``.

    ``actor`` is None for trusted internal callers; the row then has no
    actor columns. Example metadata for a transition::

        {"from": "under_review", "to": "revision_needed", "version": 3}
    """
    client = client or ClientInfo()
    entry = AuditLog(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_id=actor.id if actor else None,
        actor_role=actor.role.value if actor else None,
        metadata_json=metadata,
        ip_address=client.ip_address,
        user_agent=client.user_agent,
    )
    db.add(entry)
    db.flush()
    return entry
