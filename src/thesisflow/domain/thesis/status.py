"""Thesis status state machine.

Single source of truth for which status changes a thesis may undergo.

State Flow:
    DRAFT → SUBMITTED → UNDER_REVIEW → REVISION_NEEDED | APPROVED | REJECTED
    REVISION_NEEDED → SUBMITTED (resubmission)
    APPROVED → PUBLISHED

Terminal States: REJECTED, PUBLISHED

Self-transitions are listed explicitly for every non-terminal state. They
bump the record version and updated_at but never touch workflow timestamps.
"""

from enum import Enum
from typing import Dict, FrozenSet, List


class ThesisStatus(str, Enum):
    """Thesis status enumeration.

    Values are the lowercase strings stored in the database and exchanged
    over the API.
    """
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    REVISION_NEEDED = "revision_needed"
    APPROVED = "approved"
    REJECTED = "rejected"
    PUBLISHED = "published"


ALLOWED_TRANSITIONS: Dict[ThesisStatus, List[ThesisStatus]] = {
    ThesisStatus.DRAFT: [
        ThesisStatus.DRAFT,
        ThesisStatus.SUBMITTED,
    ],
    ThesisStatus.SUBMITTED: [
        ThesisStatus.SUBMITTED,
        ThesisStatus.UNDER_REVIEW,
    ],
    ThesisStatus.UNDER_REVIEW: [
        ThesisStatus.UNDER_REVIEW,
        ThesisStatus.REVISION_NEEDED,
        ThesisStatus.APPROVED,
        ThesisStatus.REJECTED,
    ],
    ThesisStatus.REVISION_NEEDED: [
        ThesisStatus.REVISION_NEEDED,
        ThesisStatus.SUBMITTED,
    ],
    ThesisStatus.APPROVED: [
        ThesisStatus.APPROVED,
        ThesisStatus.PUBLISHED,
    ],
    ThesisStatus.REJECTED: [],  # Terminal state
    ThesisStatus.PUBLISHED: [],  # Terminal state
}

INITIAL_STATUS = ThesisStatus.DRAFT

TERMINAL_STATES: FrozenSet[ThesisStatus] = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)

# Title/abstract/keywords may only change while the student owns the draft
EDITABLE_STATES: FrozenSet[ThesisStatus] = frozenset({
    ThesisStatus.DRAFT,
    ThesisStatus.REVISION_NEEDED,
})

DOCUMENT_BINDABLE_STATES: FrozenSet[ThesisStatus] = EDITABLE_STATES

DELETABLE_STATES: FrozenSet[ThesisStatus] = frozenset({ThesisStatus.DRAFT})


class StateTransitionError(Exception):
    """Raised when a status change is not in ALLOWED_TRANSITIONS."""

    def __init__(self, current_status: ThesisStatus, new_status: ThesisStatus):
        self.current_status = current_status
        self.new_status = new_status
        allowed = get_allowed_transitions(current_status)
        if allowed:
            detail = f"Allowed transitions from {current_status.value}: {[s.value for s in allowed]}"
        else:
            detail = f"{current_status.value} is a terminal state"
        super().__init__(
            f"Invalid transition: {current_status.value} -> {new_status.value}. {detail}"
        )


def validate_transition(
    current_status: ThesisStatus,
    new_status: ThesisStatus
) -> None:
    """Validate that a state transition is allowed.

    Args:
        current_status: Current thesis status
        new_status: Target status to transition to

    Raises:
        StateTransitionError: If transition is not allowed
    """
    if not can_transition(current_status, new_status):
        raise StateTransitionError(current_status, new_status)


def can_transition(
    current_status: ThesisStatus,
    new_status: ThesisStatus
) -> bool:
    """Check if a state transition is allowed without raising exception.

    Example:
        >>> can_transition(ThesisStatus.DRAFT, ThesisStatus.SUBMITTED)
        True
        >>> can_transition(ThesisStatus.PUBLISHED, ThesisStatus.PUBLISHED)
        False
    """
    return new_status in ALLOWED_TRANSITIONS.get(current_status, [])


def get_allowed_transitions(status: ThesisStatus) -> List[ThesisStatus]:
    """Get list of allowed transitions from a given status."""
    return list(ALLOWED_TRANSITIONS.get(status, []))


def is_terminal(status: ThesisStatus) -> bool:
    return status in TERMINAL_STATES


def is_editable(status: ThesisStatus) -> bool:
    return status in EDITABLE_STATES
