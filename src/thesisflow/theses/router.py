"""Theses API Router

CRUD, workflow transitions and document handling for thesis records.
Role and ownership rules are enforced by the WorkflowEngine; this layer
only authenticates the caller and translates HTTP to engine calls.
Domain errors are rendered by the exception handlers in main.py.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status

from ..auth.dependencies import get_current_actor, require_role
from ..auth.roles import Actor, ActorRole
from ..config import get_settings
from ..dependencies import get_document_binder, get_workflow_engine
from ..domain.thesis.status import ThesisStatus
from .document_binder import DocumentBinder
from .schemas import (
    AllowedTransitionsResponse,
    DocumentRefRequest,
    DocumentUrlResponse,
    ErrorResponse,
    FeedbackEntryResponse,
    FeedbackHistoryResponse,
    ThesisCreate,
    ThesisListResponse,
    ThesisResponse,
    ThesisUpdate,
    TransitionRequest,
)
from .workflow import WorkflowEngine


ERROR_RESPONSES = {
    403: {"model": ErrorResponse, "description": "Not allowed in this status or for this caller"},
    404: {"model": ErrorResponse, "description": "Thesis not found"},
    409: {"model": ErrorResponse, "description": "Version conflict or invalid transition"},
    422: {"model": ErrorResponse, "description": "Field validation failed"},
}

router = APIRouter(prefix="/theses", tags=["theses"], responses=ERROR_RESPONSES)


@router.post(
    "",
    response_model=ThesisResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a thesis in Draft",
)
def create_thesis(
    body: ThesisCreate,
    actor: Actor = Depends(get_current_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> ThesisResponse:
    """Create a thesis (status=draft, version=0).

    Students create theses for themselves; student_ref defaults to the
    caller.
    """
    thesis = engine.create(
        title=body.title,
        abstract=body.abstract,
        keywords=body.keywords,
        student_ref=body.student_ref or actor.id,
        supervisor_ref=body.supervisor_ref,
        actor=actor,
    )
    return ThesisResponse.model_validate(thesis)


@router.get(
    "",
    response_model=ThesisListResponse,
    summary="List theses",
)
def list_theses(
    status_filter: Optional[ThesisStatus] = Query(None, alias="status", description="Filter by status"),
    student_ref: Optional[str] = Query(None, description="Filter by owning student"),
    supervisor_ref: Optional[str] = Query(None, description="Filter by supervisor"),
    keyword: Optional[str] = Query(None, description="Case-insensitive keyword substring"),
    actor: Actor = Depends(get_current_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> ThesisListResponse:
    """List theses visible to the caller, newest first."""
    theses = engine.list_with_filter(
        status=status_filter,
        student_ref=student_ref,
        supervisor_ref=supervisor_ref,
        keyword_contains=keyword,
        actor=actor,
    )
    return ThesisListResponse(
        items=[ThesisResponse.model_validate(t) for t in theses],
        total=len(theses),
    )


@router.get(
    "/mine",
    response_model=ThesisListResponse,
    summary="List the calling student's theses",
)
def list_my_theses(
    actor: Actor = Depends(require_role(ActorRole.STUDENT)),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> ThesisListResponse:
    theses = engine.list_with_filter(student_ref=actor.id, actor=actor)
    return ThesisListResponse(
        items=[ThesisResponse.model_validate(t) for t in theses],
        total=len(theses),
    )


@router.get(
    "/{thesis_id}",
    response_model=ThesisResponse,
    summary="Get a thesis",
)
def get_thesis(
    thesis_id: UUID,
    actor: Actor = Depends(get_current_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> ThesisResponse:
    return ThesisResponse.model_validate(engine.load(thesis_id, actor))


@router.patch(
    "/{thesis_id}",
    response_model=ThesisResponse,
    summary="Edit title, abstract or keywords",
)
def update_thesis(
    thesis_id: UUID,
    body: ThesisUpdate,
    actor: Actor = Depends(get_current_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> ThesisResponse:
    """Edit a thesis in draft or revision_needed.

    Only fields present in the body are changed; sending none is a
    validation error.
    """
    patch = body.model_dump(exclude_unset=True, exclude={"expected_version"})
    thesis = engine.edit_fields(thesis_id, body.expected_version, patch, actor=actor)
    return ThesisResponse.model_validate(thesis)


@router.delete(
    "/{thesis_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a draft thesis",
)
def delete_thesis(
    thesis_id: UUID,
    expected_version: int = Query(..., ge=0),
    actor: Actor = Depends(get_current_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> Response:
    engine.delete(thesis_id, expected_version, actor=actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{thesis_id}/transition",
    response_model=ThesisResponse,
    summary="Change thesis status",
)
def transition_thesis(
    thesis_id: UUID,
    body: TransitionRequest,
    actor: Actor = Depends(get_current_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> ThesisResponse:
    """Request a status transition.

    **Transitions:**
    - draft → draft, submitted
    - submitted → submitted, under_review
    - under_review → under_review, revision_needed, approved, rejected
    - revision_needed → revision_needed, submitted
    - approved → approved, published
    - rejected, published: terminal
    """
    thesis = engine.transition(
        thesis_id,
        body.expected_version,
        body.target_status,
        comment=body.comment,
        actor=actor,
    )
    return ThesisResponse.model_validate(thesis)


@router.get(
    "/{thesis_id}/transitions",
    response_model=AllowedTransitionsResponse,
    summary="List transitions available to the caller",
)
def list_allowed_transitions(
    thesis_id: UUID,
    actor: Actor = Depends(get_current_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> AllowedTransitionsResponse:
    allowed = engine.allowed_transitions(thesis_id, actor)
    thesis = engine.load(thesis_id, actor)
    return AllowedTransitionsResponse(
        thesis_id=thesis.id,
        current_status=thesis.status,
        version=thesis.version,
        allowed=allowed,
    )


@router.post(
    "/{thesis_id}/document",
    response_model=ThesisResponse,
    summary="Upload the thesis PDF",
)
async def upload_thesis_document(
    thesis_id: UUID,
    file: UploadFile = File(..., description="Thesis document (PDF, max 10 MB)"),
    expected_version: int = Form(..., ge=0),
    actor: Actor = Depends(get_current_actor),
    binder: DocumentBinder = Depends(get_document_binder),
) -> ThesisResponse:
    """Upload and bind the thesis document.

    A draft thesis is submitted by its first upload. During revision the
    document is replaced and the thesis stays in revision_needed.
    """
    thesis = await binder.upload_document(
        thesis_id,
        expected_version,
        file.file,
        file.filename or "",
        file.content_type,
        actor=actor,
    )
    return ThesisResponse.model_validate(thesis)


@router.put(
    "/{thesis_id}/document-ref",
    response_model=ThesisResponse,
    summary="Bind an externally stored document",
)
def bind_thesis_document(
    thesis_id: UUID,
    body: DocumentRefRequest,
    actor: Actor = Depends(get_current_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> ThesisResponse:
    binder = DocumentBinder(engine)
    thesis = binder.bind_document(thesis_id, body.expected_version, body.document_ref, actor=actor)
    return ThesisResponse.model_validate(thesis)


@router.get(
    "/{thesis_id}/document",
    response_model=DocumentUrlResponse,
    summary="Get a download URL for the thesis document",
)
async def get_thesis_document(
    thesis_id: UUID,
    actor: Actor = Depends(get_current_actor),
    binder: DocumentBinder = Depends(get_document_binder),
) -> DocumentUrlResponse:
    url = await binder.document_url(thesis_id, actor)
    thesis = binder.engine.load(thesis_id, actor)
    return DocumentUrlResponse(
        thesis_id=thesis_id,
        document_ref=thesis.document_ref,
        url=url,
        expires_in_seconds=get_settings().PRESIGNED_URL_EXPIRY_SECONDS,
    )


@router.get(
    "/{thesis_id}/feedback",
    response_model=FeedbackHistoryResponse,
    summary="Review feedback history",
)
def get_feedback_history(
    thesis_id: UUID,
    actor: Actor = Depends(get_current_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> FeedbackHistoryResponse:
    entries = engine.feedback_history(thesis_id, actor)
    return FeedbackHistoryResponse(
        thesis_id=thesis_id,
        entries=[FeedbackEntryResponse.model_validate(e) for e in entries],
    )
