"""Pytest fixtures for the thesis workflow.

Provides reusable test fixtures for:
- A per-test SQLite database file and session
- WorkflowEngine / DocumentBinder bound to that session
- An in-memory ObjectStoragePort double
- Test clients with JWT tokens for each role

Usage:
    def test_submit(client, student_headers):
        response = client.post("/api/v1/theses", json={...}, headers=student_headers)
        assert response.status_code == 201
"""

import hashlib
import os
from io import BytesIO
from typing import BinaryIO, Dict, Generator
from uuid import UUID

# Set environment variables BEFORE any thesisflow imports (settings are cached)
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-key-256-bits-minimum-length-required-for-security")
os.environ.setdefault("LOG_JSON", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from thesisflow.auth.jwt import create_access_token
from thesisflow.auth.roles import Actor, ActorRole
from thesisflow.database import get_db as database_get_db
from thesisflow.domain.documents.ports.object_storage_port import (
    ObjectStoragePort,
    StoredFile,
)
from thesisflow.domain.thesis.errors import StorageError
from thesisflow.domain.thesis.status import ThesisStatus
from thesisflow.infrastructure.storage.s3_storage_adapter import S3StorageAdapter
from thesisflow.models import Base
from thesisflow.theses.document_binder import DocumentBinder
from thesisflow.theses.workflow import WorkflowEngine


STUDENT_ID = "s-1001"
OTHER_STUDENT_ID = "s-2002"
SUPERVISOR_ID = "sup-77"
OTHER_SUPERVISOR_ID = "sup-88"
ADMIN_ID = "admin-1"

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\ntrailer\n%%EOF\n"


class InMemoryObjectStorage(ObjectStoragePort):
    """ObjectStoragePort double keeping blobs in a dict.

    Set fail_store / fail_delete to simulate an unavailable blob store.
    """

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.deleted: list = []
        self.fail_store = False
        self.fail_delete = False

    async def store_file(self, file: BinaryIO, thesis_id: UUID, filename: str, mime_type: str) -> StoredFile:
        if self.fail_store:
            raise StorageError("Failed to upload file: ServiceUnavailable")
        content = file.read()
        if not content:
            raise ValueError("Cannot store empty file")
        sha256 = hashlib.sha256(content).hexdigest()
        key = S3StorageAdapter.generate_storage_key(thesis_id, sha256, filename)
        self.objects[key] = content
        return StoredFile(storage_key=key, sha256=sha256, size_bytes=len(content), mime_type=mime_type)

    async def retrieve_file(self, storage_key: str) -> BinaryIO:
        if storage_key not in self.objects:
            raise FileNotFoundError(storage_key)
        return BytesIO(self.objects[storage_key])

    async def delete_file(self, storage_key: str) -> bool:
        if self.fail_delete:
            raise StorageError("Failed to delete file: ServiceUnavailable")
        self.deleted.append(storage_key)
        return self.objects.pop(storage_key, None) is not None

    async def file_exists(self, storage_key: str) -> bool:
        return storage_key in self.objects

    async def generate_presigned_url(self, storage_key: str, expires_in_seconds: int = 3600) -> str:
        if storage_key not in self.objects:
            raise FileNotFoundError(storage_key)
        return f"https://storage.test/{storage_key}?expires={expires_in_seconds}"


@pytest.fixture(scope="function")
def db_engine(tmp_path):
    """SQLite database file private to one test."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'thesisflow.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator[Session, None, None]:
    """Create a fresh database session for each test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def workflow(db_session: Session) -> WorkflowEngine:
    return WorkflowEngine(db_session)


@pytest.fixture(scope="function")
def storage() -> InMemoryObjectStorage:
    return InMemoryObjectStorage()


@pytest.fixture(scope="function")
def binder(workflow: WorkflowEngine, storage: InMemoryObjectStorage) -> DocumentBinder:
    return DocumentBinder(workflow, storage)


@pytest.fixture
def student() -> Actor:
    return Actor(id=STUDENT_ID, role=ActorRole.STUDENT)


@pytest.fixture
def other_student() -> Actor:
    return Actor(id=OTHER_STUDENT_ID, role=ActorRole.STUDENT)


@pytest.fixture
def supervisor() -> Actor:
    return Actor(id=SUPERVISOR_ID, role=ActorRole.SUPERVISOR)


@pytest.fixture
def other_supervisor() -> Actor:
    return Actor(id=OTHER_SUPERVISOR_ID, role=ActorRole.SUPERVISOR)


@pytest.fixture
def admin() -> Actor:
    return Actor(id=ADMIN_ID, role=ActorRole.ADMIN)


@pytest.fixture(scope="function")
def draft_thesis(workflow: WorkflowEngine):
    """A Draft thesis owned by STUDENT_ID and assigned to SUPERVISOR_ID."""
    return workflow.create(
        title="Sparse Attention for Long Documents",
        abstract="We study sparse attention patterns.",
        keywords=["nlp", "transformers"],
        student_ref=STUDENT_ID,
        supervisor_ref=SUPERVISOR_ID,
    )


# Shortest transition path from Draft to each status
PATH_TO_STATUS = {
    ThesisStatus.DRAFT: [],
    ThesisStatus.SUBMITTED: [ThesisStatus.SUBMITTED],
    ThesisStatus.UNDER_REVIEW: [ThesisStatus.SUBMITTED, ThesisStatus.UNDER_REVIEW],
    ThesisStatus.REVISION_NEEDED: [
        ThesisStatus.SUBMITTED, ThesisStatus.UNDER_REVIEW, ThesisStatus.REVISION_NEEDED,
    ],
    ThesisStatus.APPROVED: [ThesisStatus.SUBMITTED, ThesisStatus.UNDER_REVIEW, ThesisStatus.APPROVED],
    ThesisStatus.REJECTED: [ThesisStatus.SUBMITTED, ThesisStatus.UNDER_REVIEW, ThesisStatus.REJECTED],
    ThesisStatus.PUBLISHED: [
        ThesisStatus.SUBMITTED, ThesisStatus.UNDER_REVIEW, ThesisStatus.APPROVED, ThesisStatus.PUBLISHED,
    ],
}


@pytest.fixture(scope="function")
def thesis_in_status(workflow: WorkflowEngine):
    """Factory: create a thesis and walk it to the requested status.

    Returns the thesis id; the record version equals the number of steps.
    """
    def _make(status: ThesisStatus) -> UUID:
        thesis = workflow.create(
            title="Graph Neural Networks for Timetabling",
            student_ref=STUDENT_ID,
            supervisor_ref=SUPERVISOR_ID,
            keywords=["gnn"],
        )
        thesis_id = thesis.id
        for version, step in enumerate(PATH_TO_STATUS[status]):
            workflow.transition(thesis_id, version, step)
        return thesis_id

    return _make


def _auth_headers(actor_id: str, role: ActorRole) -> Dict[str, str]:
    token = create_access_token(actor_id=actor_id, role=role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def student_headers() -> Dict[str, str]:
    return _auth_headers(STUDENT_ID, ActorRole.STUDENT)


@pytest.fixture
def other_student_headers() -> Dict[str, str]:
    return _auth_headers(OTHER_STUDENT_ID, ActorRole.STUDENT)


@pytest.fixture
def supervisor_headers() -> Dict[str, str]:
    return _auth_headers(SUPERVISOR_ID, ActorRole.SUPERVISOR)


@pytest.fixture
def admin_headers() -> Dict[str, str]:
    return _auth_headers(ADMIN_ID, ActorRole.ADMIN)


@pytest.fixture(scope="function")
def client(db_session: Session, storage: InMemoryObjectStorage) -> Generator[TestClient, None, None]:
    """Test client with the test database and in-memory storage.

    Requests carry no credentials; pass one of the *_headers fixtures.
    """
    from thesisflow.dependencies import get_storage
    from thesisflow.main import app
    from thesisflow.observability.router import optional_storage

    def override_get_db():
        yield db_session

    app.dependency_overrides[database_get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[optional_storage] = lambda: storage

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def pdf_bytes() -> bytes:
    return PDF_BYTES
