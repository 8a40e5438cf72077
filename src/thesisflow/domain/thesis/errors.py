"""Thesis workflow error taxonomy.

Every failure the workflow core reports is one of these exceptions. Each
carries a stable ``error`` code that the HTTP layer renders verbatim, plus
optional structured ``details``. Only StorageError is worth retrying as-is;
everything else is a local validation outcome.
"""

from typing import Any, Dict, List, Optional
from uuid import UUID


class ThesisWorkflowError(Exception):
    """Base class for all thesis workflow errors."""

    error = "workflow_error"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(ThesisWorkflowError):
    """Unknown thesis id (or nothing bound where a document was expected)."""

    error = "not_found"

    def __init__(self, thesis_id: UUID, message: Optional[str] = None):
        super().__init__(message or f"Thesis {thesis_id} not found")
        self.thesis_id = thesis_id


class InvalidTransitionError(ThesisWorkflowError):
    """Target status is not reachable from the current status."""

    error = "invalid_transition"

    def __init__(self, message: str, current_status: str, target_status: str):
        super().__init__(
            message,
            details={"current_status": current_status, "target_status": target_status},
        )
        self.current_status = current_status
        self.target_status = target_status


class PermissionDeniedError(ThesisWorkflowError):
    """Operation not allowed in the current status or for the calling actor."""

    error = "permission_denied"


class ThesisValidationError(ThesisWorkflowError):
    """Field-level validation failure (empty title, malformed keyword, ...)."""

    error = "validation_error"

    def __init__(self, field_errors: List[Dict[str, str]]):
        fields = ", ".join(e["field"] for e in field_errors)
        super().__init__(f"Invalid value for: {fields}", details=field_errors)
        self.field_errors = field_errors


class ConflictError(ThesisWorkflowError):
    """Stale expected_version: another actor mutated the record first."""

    error = "version_conflict"

    def __init__(self, thesis_id: UUID, expected_version: int, actual_version: Optional[int] = None):
        if actual_version is None:
            message = (
                f"Thesis {thesis_id} was modified concurrently "
                f"(expected version {expected_version}); reload and retry"
            )
        else:
            message = (
                f"Thesis {thesis_id} is at version {actual_version}, "
                f"expected {expected_version}; reload and retry"
            )
        super().__init__(
            message,
            details={"expected_version": expected_version, "actual_version": actual_version},
        )
        self.thesis_id = thesis_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class StorageError(ThesisWorkflowError):
    """Repository or blob store I/O failure. Safe to retry verbatim."""

    error = "storage_error"
