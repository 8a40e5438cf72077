"""Document binding for thesis records.

Attaching a document is only possible while the student holds the thesis
(Draft or RevisionNeeded). The first binding in Draft also submits the
thesis, in the same write: one version bump, not two. Binding during
revision leaves the status alone; resubmission is an explicit transition.
"""

import logging
import os
from typing import BinaryIO, Optional
from uuid import UUID

from ..audit.service import THESIS_DOCUMENT_BOUND, THESIS_STATUS_CHANGED
from ..auth.roles import Actor
from ..config import get_settings
from ..domain.documents.ports.object_storage_port import ObjectStoragePort
from ..domain.documents.validation import (
    PDF_MAGIC,
    is_supported_mime_type,
    looks_like_pdf,
    sanitize_filename,
    validate_file_size,
    validate_filename,
)
from ..domain.thesis.errors import (
    NotFoundError,
    PermissionDeniedError,
    StorageError,
    ThesisValidationError,
    ThesisWorkflowError,
)
from ..domain.thesis.permissions import ensure_can_modify
from ..domain.thesis.status import DOCUMENT_BINDABLE_STATES, ThesisStatus
from ..models.thesis import Thesis
from ..observability.metrics import (
    document_upload_bytes,
    documents_bound_total,
    transitions_total,
)
from .workflow import WorkflowEngine

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"


def _ensure_bindable(thesis: Thesis, actor: Optional[Actor]) -> None:
    if thesis.status_enum not in DOCUMENT_BINDABLE_STATES:
        raise PermissionDeniedError(
            f"Cannot attach a document to thesis {thesis.id} in status {thesis.status}",
            details={"current_status": thesis.status},
        )
    ensure_can_modify(actor, thesis, "attach a document to")


def _stream_size(file: BinaryIO) -> int:
    file.seek(0, os.SEEK_END)
    size = file.tell()
    file.seek(0)
    return size


class DocumentBinder:
    """Records document references on theses and drives first submission.

    Args:
        engine: Workflow engine owning the unit of work
        storage: Blob store used by upload_document and document_url
    """

    def __init__(self, engine: WorkflowEngine, storage: Optional[ObjectStoragePort] = None):
        self.engine = engine
        self.storage = storage

    def bind_document(
        self,
        thesis_id: UUID,
        expected_version: int,
        document_ref: str,
        actor: Optional[Actor] = None,
    ) -> Thesis:
        """Attach document_ref; submit the thesis if it is still a Draft.

        Raises:
            NotFoundError: Unknown id
            ConflictError: Stale expected_version
            PermissionDeniedError: Not in Draft/RevisionNeeded, or actor may not bind
            ThesisValidationError: Empty reference
        """
        engine = self.engine
        with engine.guard("bind_document", thesis_id):
            thesis = engine.load_for_update(thesis_id, expected_version)
            _ensure_bindable(thesis, actor)

            if not isinstance(document_ref, str) or not document_ref.strip():
                raise ThesisValidationError([
                    {"field": "document_ref", "message": "Document reference must not be empty"}
                ])
            document_ref = document_ref.strip()

            thesis.document_ref = document_ref
            events = [(THESIS_DOCUMENT_BOUND, {"document_ref": document_ref})]

            previous = thesis.status_enum
            if previous == ThesisStatus.DRAFT:
                engine.apply_transition(thesis, ThesisStatus.SUBMITTED, actor)
                events.append((THESIS_STATUS_CHANGED, {
                    "from": previous.value,
                    "to": ThesisStatus.SUBMITTED.value,
                    "trigger": "document_upload",
                }))

            engine.commit_mutation(thesis, expected_version, events, actor=actor)

        documents_bound_total.inc()
        if thesis.status != previous.value:
            transitions_total.labels(from_status=previous.value, to_status=thesis.status).inc()
        logger.info(
            f"Bound document to thesis {thesis_id} (status {thesis.status}, version {thesis.version})",
            extra={
                "thesis_id": str(thesis_id),
                "from_status": previous.value,
                "to_status": thesis.status,
            },
        )
        return thesis

    def _validate_upload(self, file: BinaryIO, filename: str, mime_type: Optional[str]) -> int:
        errors = []

        if not is_supported_mime_type(mime_type):
            errors.append({
                "field": "file",
                "message": f"Unsupported content type {mime_type!r}; only {PDF_MIME_TYPE} is accepted",
            })

        is_valid, message = validate_filename(filename)
        if not is_valid:
            errors.append({"field": "filename", "message": message})

        size_bytes = _stream_size(file)
        is_valid, message = validate_file_size(size_bytes)
        if not is_valid:
            errors.append({"field": "file", "message": message})
        elif not looks_like_pdf(file.read(len(PDF_MAGIC))):
            errors.append({"field": "file", "message": "File content is not a PDF document"})
        file.seek(0)

        if errors:
            raise ThesisValidationError(errors)
        return size_bytes

    async def upload_document(
        self,
        thesis_id: UUID,
        expected_version: int,
        file: BinaryIO,
        filename: str,
        mime_type: Optional[str],
        actor: Optional[Actor] = None,
    ) -> Thesis:
        """Validate, store and bind an uploaded thesis document.

        The record is checked before anything is written to storage. If the
        bind fails after the blob was stored, the blob is removed again unless
        the committed record already references it; the original error is
        raised either way.

        Raises:
            ThesisValidationError: Not a PDF, empty, too large, unsafe filename
            StorageError: Blob store unavailable
            (plus everything bind_document raises)
        """
        engine = self.engine
        with engine.guard("upload_document", thesis_id):
            size_bytes = self._validate_upload(file, filename, mime_type)

            thesis = engine.load_for_update(thesis_id, expected_version)
            _ensure_bindable(thesis, actor)

            if self.storage is None:
                raise StorageError("Document storage is not configured")

        # Release the read transaction while the upload is in flight
        engine.repository.rollback()

        try:
            stored = await self.storage.store_file(
                file=file,
                thesis_id=thesis_id,
                filename=sanitize_filename(filename),
                mime_type=PDF_MIME_TYPE,
            )
        except StorageError as e:
            engine.record_rejection("upload_document", e, thesis_id)
            raise

        document_upload_bytes.observe(size_bytes)

        try:
            return self.bind_document(thesis_id, expected_version, stored.storage_key, actor)
        except ThesisWorkflowError:
            if not self._bound_now(thesis_id, stored.storage_key):
                await self._discard(stored.storage_key)
            raise

    def _bound_now(self, thesis_id: UUID, storage_key: str) -> bool:
        """Whether the committed record references storage_key.

        Keys are content addressed, so a concurrent upload of the same bytes
        may have bound this very key. When the record cannot be read the key
        is treated as bound and the blob is kept.
        """
        repository = self.engine.repository
        repository.rollback()
        try:
            thesis = repository.get(thesis_id)
        except StorageError as e:
            logger.warning(
                f"Keeping document {storage_key}: could not re-read thesis {thesis_id}: {e.message}",
                extra={"thesis_id": str(thesis_id), "storage_key": storage_key},
            )
            return True
        return thesis is not None and thesis.document_ref == storage_key

    async def _discard(self, storage_key: str) -> None:
        try:
            await self.storage.delete_file(storage_key)
        except StorageError as e:
            logger.error(f"Failed to remove orphaned document {storage_key}: {e.message}")

    async def document_url(self, thesis_id: UUID, actor: Optional[Actor] = None) -> str:
        """Presigned download URL for the bound document.

        Raises:
            NotFoundError: Unknown id, nothing bound, or blob missing
            StorageError: Blob store unavailable
        """
        thesis = self.engine.load(thesis_id, actor)
        if not thesis.document_ref:
            raise NotFoundError(thesis_id, f"No document bound to thesis {thesis_id}")
        if self.storage is None:
            raise StorageError("Document storage is not configured")

        try:
            return await self.storage.generate_presigned_url(
                thesis.document_ref,
                expires_in_seconds=get_settings().PRESIGNED_URL_EXPIRY_SECONDS,
            )
        except FileNotFoundError:
            raise NotFoundError(
                thesis_id,
                f"Document {thesis.document_ref} for thesis {thesis_id} is missing from storage",
            )
