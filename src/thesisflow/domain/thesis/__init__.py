"""Thesis domain module - status table, guards, validation, error taxonomy, ports"""

from .status import (
    ThesisStatus,
    ALLOWED_TRANSITIONS,
    TERMINAL_STATES,
    EDITABLE_STATES,
    DOCUMENT_BINDABLE_STATES,
    DELETABLE_STATES,
    StateTransitionError,
    can_transition,
    validate_transition,
    get_allowed_transitions,
    is_terminal,
)
from .errors import (
    ThesisWorkflowError,
    NotFoundError,
    InvalidTransitionError,
    PermissionDeniedError,
    ThesisValidationError,
    ConflictError,
    StorageError,
)
from .ports import ThesisFilter, ThesisRepositoryPort, ReviewFeedbackLogPort

__all__ = [
    "ThesisStatus",
    "ALLOWED_TRANSITIONS",
    "TERMINAL_STATES",
    "EDITABLE_STATES",
    "DOCUMENT_BINDABLE_STATES",
    "DELETABLE_STATES",
    "StateTransitionError",
    "can_transition",
    "validate_transition",
    "get_allowed_transitions",
    "is_terminal",
    "ThesisWorkflowError",
    "NotFoundError",
    "InvalidTransitionError",
    "PermissionDeniedError",
    "ThesisValidationError",
    "ConflictError",
    "StorageError",
    "ThesisFilter",
    "ThesisRepositoryPort",
    "ReviewFeedbackLogPort",
]
