"""Unit tests for actor authorization rules"""

from types import SimpleNamespace
from uuid import uuid4

import pytest

from thesisflow.auth.roles import Actor, ActorRole
from thesisflow.domain.thesis.errors import PermissionDeniedError
from thesisflow.domain.thesis.permissions import (
    allowed_targets_for,
    can_request_transition,
    can_view,
    ensure_can_create,
    ensure_can_modify,
    ensure_can_transition,
)
from thesisflow.domain.thesis.status import ThesisStatus

S = ThesisStatus

OWNER = Actor(id="s-1", role=ActorRole.STUDENT)
STRANGER = Actor(id="s-2", role=ActorRole.STUDENT)
SUPERVISOR = Actor(id="sup-1", role=ActorRole.SUPERVISOR)
OTHER_SUPERVISOR = Actor(id="sup-2", role=ActorRole.SUPERVISOR)
ADMIN = Actor(id="admin", role=ActorRole.ADMIN)


def _thesis(status: ThesisStatus = S.DRAFT):
    return SimpleNamespace(id=uuid4(), status=status.value, student_ref="s-1", supervisor_ref="sup-1")


class TestVisibility:
    """Test who may read a thesis"""

    @pytest.mark.parametrize("actor,expected", [
        (OWNER, True),
        (STRANGER, False),
        (SUPERVISOR, True),
        (OTHER_SUPERVISOR, False),
        (ADMIN, True),
        (None, True),
    ])
    def test_can_view(self, actor, expected):
        assert can_view(actor, _thesis()) is expected

    def test_supervisor_id_matching_student_ref_is_not_owner(self):
        """Test ownership requires the student role, not just a matching id"""
        impostor = Actor(id="s-1", role=ActorRole.SUPERVISOR)
        assert can_view(impostor, _thesis()) is False


class TestTransitionRules:
    """Test role/ownership checks for transitions"""

    @pytest.mark.parametrize("current,target", [
        (S.DRAFT, S.SUBMITTED),
        (S.DRAFT, S.DRAFT),
        (S.REVISION_NEEDED, S.SUBMITTED),
        (S.REVISION_NEEDED, S.REVISION_NEEDED),
    ])
    def test_owner_student_edges(self, current, target):
        assert can_request_transition(OWNER, _thesis(current), current, target) is True
        assert can_request_transition(STRANGER, _thesis(current), current, target) is False
        assert can_request_transition(SUPERVISOR, _thesis(current), current, target) is False

    @pytest.mark.parametrize("current,target", [
        (S.SUBMITTED, S.SUBMITTED),
        (S.SUBMITTED, S.UNDER_REVIEW),
        (S.UNDER_REVIEW, S.UNDER_REVIEW),
        (S.UNDER_REVIEW, S.REVISION_NEEDED),
        (S.UNDER_REVIEW, S.APPROVED),
        (S.UNDER_REVIEW, S.REJECTED),
    ])
    def test_assigned_supervisor_edges(self, current, target):
        assert can_request_transition(SUPERVISOR, _thesis(current), current, target) is True
        assert can_request_transition(OTHER_SUPERVISOR, _thesis(current), current, target) is False
        assert can_request_transition(OWNER, _thesis(current), current, target) is False

    @pytest.mark.parametrize("target", [S.APPROVED, S.PUBLISHED])
    def test_approved_edges_are_admin_only(self, target):
        thesis = _thesis(S.APPROVED)
        assert can_request_transition(ADMIN, thesis, S.APPROVED, target) is True
        assert can_request_transition(SUPERVISOR, thesis, S.APPROVED, target) is False
        assert can_request_transition(OWNER, thesis, S.APPROVED, target) is False

    def test_trusted_caller_may_request_anything(self):
        assert can_request_transition(None, _thesis(S.APPROVED), S.APPROVED, S.PUBLISHED) is True

    def test_ensure_can_transition_details(self):
        with pytest.raises(PermissionDeniedError) as exc_info:
            ensure_can_transition(OWNER, _thesis(S.SUBMITTED), S.SUBMITTED, S.UNDER_REVIEW)
        assert exc_info.value.details == {
            "role": "STUDENT",
            "current_status": "submitted",
            "target_status": "under_review",
        }

    def test_allowed_targets_for(self):
        thesis = _thesis(S.UNDER_REVIEW)
        assert allowed_targets_for(OWNER, thesis) == set()
        assert allowed_targets_for(SUPERVISOR, thesis) == {
            S.UNDER_REVIEW, S.REVISION_NEEDED, S.APPROVED, S.REJECTED,
        }
        assert allowed_targets_for(ADMIN, _thesis(S.PUBLISHED)) == set()


class TestModifyAndCreate:
    """Test edit/delete/bind and create rules"""

    @pytest.mark.parametrize("actor", [OWNER, ADMIN, None])
    def test_modify_allowed(self, actor):
        ensure_can_modify(actor, _thesis(), "edit")

    @pytest.mark.parametrize("actor", [STRANGER, SUPERVISOR])
    def test_modify_denied(self, actor):
        with pytest.raises(PermissionDeniedError) as exc_info:
            ensure_can_modify(actor, _thesis(), "delete")
        assert exc_info.value.details["operation"] == "delete"

    def test_student_creates_for_self(self):
        ensure_can_create(OWNER, "s-1")
        with pytest.raises(PermissionDeniedError):
            ensure_can_create(OWNER, "s-2")

    def test_admin_creates_for_anyone(self):
        ensure_can_create(ADMIN, "s-42")

    def test_supervisor_cannot_create(self):
        with pytest.raises(PermissionDeniedError):
            ensure_can_create(SUPERVISOR, "sup-1")
