"""Actor authorization rules for thesis operations.

These checks run inside the workflow engine so that a client cannot skip
them. Status rules (which transitions exist at all, which states allow
edits) are evaluated first; an actor check only ever narrows what the
status table already allows.
"""

from typing import Dict, FrozenSet, Optional, Set, Tuple

from ...auth.roles import Actor, ActorRole
from .errors import PermissionDeniedError
from .status import ThesisStatus, get_allowed_transitions

S = ThesisStatus

# (current, target) pairs each role may request, on top of ownership checks
STUDENT_TRANSITIONS: FrozenSet[Tuple[ThesisStatus, ThesisStatus]] = frozenset({
    (S.DRAFT, S.DRAFT),
    (S.DRAFT, S.SUBMITTED),
    (S.REVISION_NEEDED, S.REVISION_NEEDED),
    (S.REVISION_NEEDED, S.SUBMITTED),
})

SUPERVISOR_TRANSITIONS: FrozenSet[Tuple[ThesisStatus, ThesisStatus]] = frozenset({
    (S.SUBMITTED, S.SUBMITTED),
    (S.SUBMITTED, S.UNDER_REVIEW),
    (S.UNDER_REVIEW, S.UNDER_REVIEW),
    (S.UNDER_REVIEW, S.REVISION_NEEDED),
    (S.UNDER_REVIEW, S.APPROVED),
    (S.UNDER_REVIEW, S.REJECTED),
})

ROLE_TRANSITIONS: Dict[ActorRole, FrozenSet[Tuple[ThesisStatus, ThesisStatus]]] = {
    ActorRole.STUDENT: STUDENT_TRANSITIONS,
    ActorRole.SUPERVISOR: SUPERVISOR_TRANSITIONS,
}


def is_owner(actor: Actor, thesis) -> bool:
    return actor.is_student and thesis.student_ref == actor.id


def is_assigned_supervisor(actor: Actor, thesis) -> bool:
    return actor.is_supervisor and thesis.supervisor_ref == actor.id


def can_view(actor: Optional[Actor], thesis) -> bool:
    if actor is None or actor.is_admin:
        return True
    return is_owner(actor, thesis) or is_assigned_supervisor(actor, thesis)


def can_request_transition(
    actor: Optional[Actor],
    thesis,
    current: ThesisStatus,
    target: ThesisStatus,
) -> bool:
    """Check the role/ownership half of a transition request.

    Does not consult the status table; callers validate the edge first.
    """
    if actor is None or actor.is_admin:
        return True
    if (current, target) not in ROLE_TRANSITIONS.get(actor.role, frozenset()):
        return False
    if actor.is_student:
        return is_owner(actor, thesis)
    return is_assigned_supervisor(actor, thesis)


def allowed_targets_for(actor: Optional[Actor], thesis) -> Set[ThesisStatus]:
    """Transition targets the actor could request right now."""
    current = ThesisStatus(thesis.status)
    return {
        target
        for target in get_allowed_transitions(current)
        if can_request_transition(actor, thesis, current, target)
    }


def ensure_can_view(actor: Optional[Actor], thesis) -> None:
    if not can_view(actor, thesis):
        raise PermissionDeniedError(f"Not allowed to access thesis {thesis.id}")


def ensure_can_modify(actor: Optional[Actor], thesis, operation: str) -> None:
    """Owner student or admin only (edit, delete, document binding).

    Raises:
        PermissionDeniedError: If the actor may not modify this thesis
    """
    if actor is None or actor.is_admin or is_owner(actor, thesis):
        return
    raise PermissionDeniedError(
        f"{actor.role.value} {actor.id} may not {operation} thesis {thesis.id}",
        details={"operation": operation, "role": actor.role.value},
    )


def ensure_can_transition(
    actor: Optional[Actor],
    thesis,
    current: ThesisStatus,
    target: ThesisStatus,
) -> None:
    if not can_request_transition(actor, thesis, current, target):
        raise PermissionDeniedError(
            f"{actor.role.value} {actor.id} may not move thesis {thesis.id} "
            f"from {current.value} to {target.value}",
            details={
                "role": actor.role.value,
                "current_status": current.value,
                "target_status": target.value,
            },
        )


def ensure_can_create(actor: Optional[Actor], student_ref: str) -> None:
    if actor is None or actor.is_admin:
        return
    if actor.is_student and actor.id == student_ref:
        return
    raise PermissionDeniedError(
        f"{actor.role.value} {actor.id} may not create a thesis for student {student_ref}"
    )
