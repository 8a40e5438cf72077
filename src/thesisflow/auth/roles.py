"""Actor roles for the thesis workflow.

Roles are asserted by the external authentication service in the ``role``
claim of the access token.

Permission Matrix:
┌──────────────────────────────┬─────────┬────────────┬───────┐
│ Action                       │ STUDENT │ SUPERVISOR │ ADMIN │
├──────────────────────────────┼─────────┼────────────┼───────┤
│ Create thesis (own)          │    ✓    │            │   ✓   │
│ Edit / delete / upload (own) │    ✓    │            │   ✓   │
│ Submit / resubmit (own)      │    ✓    │            │   ✓   │
│ Review / dispose (assigned)  │         │     ✓      │   ✓   │
│ Publish                      │         │            │   ✓   │
│ View own / assigned theses   │    ✓    │     ✓      │   ✓   │
│ View all theses, audit log   │         │            │   ✓   │
└──────────────────────────────┴─────────┴────────────┴───────┘

The per-transition rules live in domain.thesis.permissions.
"""

from dataclasses import dataclass
from enum import Enum


class ActorRole(str, Enum):
    """Roles recognised by the workflow.

    Values must match the ``role`` claim issued by the auth service.
    """
    STUDENT = "STUDENT"
    SUPERVISOR = "SUPERVISOR"
    ADMIN = "ADMIN"


@dataclass(frozen=True)
class Actor:
    """Authenticated caller of a workflow operation.

    Attributes:
        id: Subject identifier; compared against thesis.student_ref and
            thesis.supervisor_ref
        role: Role asserted by the auth service
    """
    id: str
    role: ActorRole

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN

    @property
    def is_student(self) -> bool:
        return self.role == ActorRole.STUDENT

    @property
    def is_supervisor(self) -> bool:
        return self.role == ActorRole.SUPERVISOR
