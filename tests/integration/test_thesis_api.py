"""Integration tests for the Theses API

Drives the FastAPI app through TestClient with the SQLite session and the
in-memory storage double from conftest.
"""

import pytest

from thesisflow.auth.jwt import create_access_token
from thesisflow.auth.roles import ActorRole
from thesisflow.domain.thesis.errors import StorageError

pytestmark = pytest.mark.integration

API = "/api/v1"


@pytest.fixture
def created(client, student_headers, supervisor):
    """A Draft thesis created by the student through the API"""
    response = client.post(
        f"{API}/theses",
        json={
            "title": "Learning to Rank Exam Timetables",
            "abstract": "Ranking models for timetabling.",
            "keywords": "ranking, timetabling",
            "supervisor_ref": supervisor.id,
        },
        headers=student_headers,
    )
    assert response.status_code == 201
    return response.json()


def _transition(client, thesis_id, version, target, headers, comment=None):
    body = {"expected_version": version, "target_status": target}
    if comment is not None:
        body["comment"] = comment
    return client.post(f"{API}/theses/{thesis_id}/transition", json=body, headers=headers)


class TestAuthentication:
    """Test token handling on thesis endpoints"""

    def test_missing_token(self, client):
        response = client.get(f"{API}/theses")
        assert response.status_code == 401

    def test_invalid_token(self, client):
        response = client.get(f"{API}/theses", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401

    def test_expired_token(self, client):
        token = create_access_token(actor_id="s-1001", role=ActorRole.STUDENT, expiry_minutes=-1)
        response = client.get(f"{API}/theses", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Token has expired"


class TestCreateAndRead:
    """Test POST/GET /theses"""

    def test_create_returns_draft(self, created, student):
        assert created["status"] == "draft"
        assert created["version"] == 0
        assert created["student_ref"] == student.id
        assert created["keywords"] == ["ranking", "timetabling"]
        assert created["submission_date"] is None

    def test_create_validation_error(self, client, student_headers):
        """Test domain validation errors render as 422 with field details"""
        response = client.post(
            f"{API}/theses",
            json={"title": "  ", "supervisor_ref": "sup-77", "keywords": ["ok", ""]},
            headers=student_headers,
        )
        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "validation_error"
        assert {d["field"] for d in body["details"]} == {"title", "keywords[1]"}

    def test_create_with_blank_keywords(self, client, student_headers):
        response = client.post(
            f"{API}/theses",
            json={"title": "T", "supervisor_ref": "sup-77", "keywords": ""},
            headers=student_headers,
        )
        assert response.status_code == 201
        assert response.json()["keywords"] == []

    def test_create_rejects_unknown_fields(self, client, student_headers):
        response = client.post(
            f"{API}/theses",
            json={"title": "T", "supervisor_ref": "sup-77", "status": "approved"},
            headers=student_headers,
        )
        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"

    def test_create_for_other_student_forbidden(self, client, student_headers):
        response = client.post(
            f"{API}/theses",
            json={"title": "T", "supervisor_ref": "sup-77", "student_ref": "s-2002"},
            headers=student_headers,
        )
        assert response.status_code == 403
        assert response.json()["error"] == "permission_denied"

    def test_get_thesis(self, client, created, supervisor_headers):
        response = client.get(f"{API}/theses/{created['id']}", headers=supervisor_headers)
        assert response.status_code == 200
        assert response.json()["title"] == "Learning to Rank Exam Timetables"

    def test_get_unknown_thesis(self, client, admin_headers):
        response = client.get(f"{API}/theses/00000000-0000-0000-0000-000000000000", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_stranger_cannot_read(self, client, created, other_student_headers):
        response = client.get(f"{API}/theses/{created['id']}", headers=other_student_headers)
        assert response.status_code == 403

    def test_list_filters(self, client, created, admin_headers):
        """Test status and keyword query parameters"""
        response = client.get(f"{API}/theses", params={"status": "draft", "keyword": "RANK"}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["total"] == 1

        response = client.get(f"{API}/theses", params={"status": "approved"}, headers=admin_headers)
        assert response.json()["items"] == []

    def test_list_unknown_status(self, client, admin_headers):
        response = client.get(f"{API}/theses", params={"status": "archived"}, headers=admin_headers)
        assert response.status_code == 422

    def test_mine(self, client, created, student_headers, other_student_headers, supervisor_headers):
        assert client.get(f"{API}/theses/mine", headers=student_headers).json()["total"] == 1
        assert client.get(f"{API}/theses/mine", headers=other_student_headers).json()["total"] == 0
        assert client.get(f"{API}/theses/mine", headers=supervisor_headers).status_code == 403


class TestTransitions:
    """Test POST /theses/{id}/transition and error mapping"""

    def test_submit(self, client, created, student_headers):
        response = _transition(client, created["id"], 0, "submitted", student_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "submitted"
        assert body["version"] == 1
        assert body["submission_date"] is not None

    def test_invalid_transition_is_409(self, client, created, admin_headers):
        response = _transition(client, created["id"], 0, "approved", admin_headers)
        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "invalid_transition"
        assert body["details"] == {"current_status": "draft", "target_status": "approved"}

    def test_stale_version_is_409(self, client, created, student_headers):
        """Test the second caller with the same version gets version_conflict"""
        assert _transition(client, created["id"], 0, "draft", student_headers).status_code == 200
        response = _transition(client, created["id"], 0, "submitted", student_headers)
        assert response.status_code == 409
        assert response.json()["error"] == "version_conflict"

    def test_student_cannot_review(self, client, created, student_headers):
        _transition(client, created["id"], 0, "submitted", student_headers)
        response = _transition(client, created["id"], 1, "under_review", student_headers)
        assert response.status_code == 403
        assert response.json()["error"] == "permission_denied"

    def test_unknown_target_is_422(self, client, created, student_headers):
        response = _transition(client, created["id"], 0, "archived", student_headers)
        assert response.status_code == 422

    def test_allowed_transitions(self, client, created, student_headers, supervisor_headers):
        response = client.get(f"{API}/theses/{created['id']}/transitions", headers=student_headers)
        assert response.status_code == 200
        assert response.json() == {
            "thesis_id": created["id"],
            "current_status": "draft",
            "version": 0,
            "allowed": ["draft", "submitted"],
        }
        response = client.get(f"{API}/theses/{created['id']}/transitions", headers=supervisor_headers)
        assert response.json()["allowed"] == []


class TestEditAndDelete:
    """Test PATCH and DELETE /theses/{id}"""

    def test_patch_title(self, client, created, student_headers):
        response = client.patch(
            f"{API}/theses/{created['id']}",
            json={"expected_version": 0, "title": "Renamed"},
            headers=student_headers,
        )
        assert response.status_code == 200
        assert response.json()["title"] == "Renamed"
        assert response.json()["keywords"] == ["ranking", "timetabling"]

    def test_patch_blank_keywords_clears_them(self, client, created, student_headers):
        response = client.patch(
            f"{API}/theses/{created['id']}",
            json={"expected_version": 0, "keywords": ""},
            headers=student_headers,
        )
        assert response.status_code == 200
        assert response.json()["keywords"] == []

    def test_empty_patch(self, client, created, student_headers):
        response = client.patch(f"{API}/theses/{created['id']}", json={"expected_version": 0}, headers=student_headers)
        assert response.status_code == 422

    def test_patch_after_submit_forbidden(self, client, created, student_headers):
        _transition(client, created["id"], 0, "submitted", student_headers)
        response = client.patch(
            f"{API}/theses/{created['id']}",
            json={"expected_version": 1, "title": "Too late"},
            headers=student_headers,
        )
        assert response.status_code == 403

    def test_delete_draft(self, client, created, student_headers):
        response = client.delete(
            f"{API}/theses/{created['id']}", params={"expected_version": 0}, headers=student_headers,
        )
        assert response.status_code == 204
        assert client.get(f"{API}/theses/{created['id']}", headers=student_headers).status_code == 404

    def test_delete_submitted_forbidden(self, client, created, student_headers):
        _transition(client, created["id"], 0, "submitted", student_headers)
        response = client.delete(
            f"{API}/theses/{created['id']}", params={"expected_version": 1}, headers=student_headers,
        )
        assert response.status_code == 403
        assert client.get(f"{API}/theses/{created['id']}", headers=student_headers).json()["status"] == "submitted"


class TestDocuments:
    """Test upload, reference binding and download URLs"""

    def test_upload_submits(self, client, created, student_headers, storage, pdf_bytes):
        response = client.post(
            f"{API}/theses/{created['id']}/document",
            files={"file": ("thesis.pdf", pdf_bytes, "application/pdf")},
            data={"expected_version": "0"},
            headers=student_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "submitted"
        assert body["version"] == 1
        assert body["document_ref"] in storage.objects

        response = client.get(f"{API}/theses/{created['id']}/document", headers=student_headers)
        assert response.status_code == 200
        assert response.json()["url"].startswith("https://storage.test/theses/")
        assert response.json()["expires_in_seconds"] == 3600

    def test_upload_rejects_non_pdf(self, client, created, student_headers, storage):
        response = client.post(
            f"{API}/theses/{created['id']}/document",
            files={"file": ("notes.txt", b"plain text", "text/plain")},
            data={"expected_version": "0"},
            headers=student_headers,
        )
        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"
        assert storage.objects == {}

    def test_storage_unavailable_is_503(self, client, created, student_headers, storage, pdf_bytes):
        storage.fail_store = True
        response = client.post(
            f"{API}/theses/{created['id']}/document",
            files={"file": ("thesis.pdf", pdf_bytes, "application/pdf")},
            data={"expected_version": "0"},
            headers=student_headers,
        )
        assert response.status_code == 503
        assert response.json()["error"] == "storage_error"

    def test_bind_reference(self, client, created, student_headers):
        response = client.put(
            f"{API}/theses/{created['id']}/document-ref",
            json={"expected_version": 0, "document_ref": "theses/external/abc.pdf"},
            headers=student_headers,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "submitted"

    def test_no_document_is_404(self, client, created, student_headers):
        response = client.get(f"{API}/theses/{created['id']}/document", headers=student_headers)
        assert response.status_code == 404


class TestReviewFlow:
    """Test the full lifecycle over HTTP"""

    def test_lifecycle(self, client, created, student_headers, supervisor_headers, admin_headers, pdf_bytes):
        thesis_id = created["id"]

        response = client.post(
            f"{API}/theses/{thesis_id}/document",
            files={"file": ("thesis.pdf", pdf_bytes, "application/pdf")},
            data={"expected_version": "0"},
            headers=student_headers,
        )
        assert response.json()["status"] == "submitted"

        assert _transition(client, thesis_id, 1, "under_review", supervisor_headers).status_code == 200
        response = _transition(client, thesis_id, 2, "revision_needed", supervisor_headers, "add more data")
        assert response.json()["review_feedback"] == "add more data"

        response = client.patch(
            f"{API}/theses/{thesis_id}",
            json={"expected_version": 3, "abstract": "Now with more data."},
            headers=student_headers,
        )
        assert response.status_code == 200

        response = _transition(client, thesis_id, 4, "submitted", student_headers)
        assert response.json()["last_resubmitted_at"] is not None

        assert _transition(client, thesis_id, 5, "under_review", supervisor_headers).status_code == 200
        response = _transition(client, thesis_id, 6, "approved", supervisor_headers, "well done")
        assert response.json()["approval_date"] is not None

        assert _transition(client, thesis_id, 7, "published", supervisor_headers).status_code == 403
        response = _transition(client, thesis_id, 7, "published", admin_headers)
        assert response.json()["status"] == "published"
        assert _transition(client, thesis_id, 8, "published", admin_headers).status_code == 409

        response = client.get(f"{API}/theses/{thesis_id}/feedback", headers=student_headers)
        assert [(e["status"], e["comment"]) for e in response.json()["entries"]] == [
            ("revision_needed", "add more data"),
            ("approved", "well done"),
        ]


class TestAuditEndpoint:
    """Test GET /audit"""

    def test_admin_reads_audit_trail(self, client, created, student_headers, admin_headers):
        _transition(client, created["id"], 0, "submitted", student_headers)
        response = client.get(
            f"{API}/audit",
            params={"entity_id": created["id"]},
            headers={**admin_headers, "User-Agent": "pytest-agent"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 2
        assert {e["action"] for e in body["entries"]} == {"THESIS_CREATED", "THESIS_STATUS_CHANGED"}

        changed = next(e for e in body["entries"] if e["action"] == "THESIS_STATUS_CHANGED")
        assert changed["actor_id"] == "s-1001"
        assert changed["metadata"]["to"] == "submitted"

    def test_audit_filter_by_action(self, client, created, admin_headers):
        response = client.get(f"{API}/audit", params={"action": "THESIS_DELETED"}, headers=admin_headers)
        assert response.json()["total"] == 0

    def test_non_admin_forbidden(self, client, student_headers, supervisor_headers):
        assert client.get(f"{API}/audit", headers=student_headers).status_code == 403
        assert client.get(f"{API}/audit", headers=supervisor_headers).status_code == 403


class TestObservability:
    """Test /health, /metrics and request ids"""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["components"]["database"]["status"] == "healthy"
        assert body["components"]["object_storage"]["status"] == "healthy"

    def test_storage_outage_degrades(self, client, storage, monkeypatch):
        """Test a failing blob store is reported without failing the probe"""
        async def unreachable(storage_key):
            raise StorageError("Failed to check file: ServiceUnavailable")

        monkeypatch.setattr(storage, "file_exists", unreachable)
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
        assert response.json()["components"]["object_storage"]["status"] == "unhealthy"

    def test_metrics(self, client, created, student_headers):
        _transition(client, created["id"], 0, "submitted", student_headers)
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "thesisflow_transitions_total" in response.text
        assert "thesisflow_theses_created_total" in response.text

    def test_request_id_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_malformed_request_id_replaced(self, client):
        response = client.get("/health", headers={"X-Request-ID": "bad id with spaces"})
        assert response.headers["X-Request-ID"] != "bad id with spaces"
        assert len(response.headers["X-Request-ID"]) == 36
