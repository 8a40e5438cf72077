"""Pydantic schemas for the Theses API

Every mutating request carries ``expected_version``: the version the client
last read. A stale value is answered with 409 version_conflict.
"""

from datetime import datetime
from typing import List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..domain.thesis.status import ThesisStatus


# ============================================================================
# Requests
# ============================================================================

class ThesisCreate(BaseModel):
    """Schema for creating a thesis (POST /theses)"""
    title: str = Field(..., description="Thesis title (trimmed, non-empty)")
    abstract: Optional[str] = None
    keywords: Union[List[str], str, None] = Field(
        None,
        description="Keyword list or comma-separated string",
        examples=[["machine learning", "vision"], "machine learning, vision"],
    )
    supervisor_ref: str = Field(..., description="Assigned supervisor identifier")
    student_ref: Optional[str] = Field(
        None,
        description="Owning student; defaults to the caller",
    )

    model_config = ConfigDict(extra='forbid')


class ThesisUpdate(BaseModel):
    """Schema for editing a thesis (PATCH /theses/{id})

    Only fields present in the request body are changed.
    """
    expected_version: int = Field(..., ge=0)
    title: Optional[str] = None
    abstract: Optional[str] = None
    keywords: Union[List[str], str, None] = None

    model_config = ConfigDict(extra='forbid')


class TransitionRequest(BaseModel):
    """Schema for POST /theses/{id}/transition"""
    expected_version: int = Field(..., ge=0)
    target_status: ThesisStatus
    comment: Optional[str] = Field(None, description="Reviewer comment, appended to the feedback log")

    model_config = ConfigDict(extra='forbid')


class DocumentRefRequest(BaseModel):
    """Schema for PUT /theses/{id}/document-ref"""
    expected_version: int = Field(..., ge=0)
    document_ref: str = Field(..., min_length=1, description="Storage key produced by an upload service")

    model_config = ConfigDict(extra='forbid')


# ============================================================================
# Responses
# ============================================================================

class ThesisResponse(BaseModel):
    """Full thesis record"""
    id: UUID
    title: str
    abstract: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    student_ref: str
    supervisor_ref: str
    status: ThesisStatus
    document_ref: Optional[str] = None
    submission_date: Optional[datetime] = None
    last_resubmitted_at: Optional[datetime] = None
    approval_date: Optional[datetime] = None
    review_feedback: Optional[str] = None
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ThesisListResponse(BaseModel):
    items: List[ThesisResponse]
    total: int


class AllowedTransitionsResponse(BaseModel):
    """Targets the caller may request from the current status"""
    thesis_id: UUID
    current_status: ThesisStatus
    version: int
    allowed: List[ThesisStatus]


class FeedbackEntryResponse(BaseModel):
    id: int
    thesis_id: UUID
    status: ThesisStatus
    comment: str
    author_ref: Optional[str] = None
    authored_at: datetime

    model_config = ConfigDict(from_attributes=True)


class FeedbackHistoryResponse(BaseModel):
    thesis_id: UUID
    entries: List[FeedbackEntryResponse]


class DocumentUrlResponse(BaseModel):
    thesis_id: UUID
    document_ref: str
    url: str
    expires_in_seconds: int


class ErrorResponse(BaseModel):
    """Error body shared by every non-2xx response"""
    error: str
    message: str
    details: Optional[Union[dict, list]] = None
