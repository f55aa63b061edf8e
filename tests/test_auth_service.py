"""Tests for services/auth_service.py — login resolution and tokens."""

import time
from unittest.mock import patch

import pytest

from config.settings import Settings
from errors import AuthenticationError
from models.request import LoginRequest
from models.school import AppSettings
from models.viewer import AdminViewer, StudentViewer, TeacherViewer
from services import auth_service
from tests.factories import PAI


@pytest.fixture
def settings():
    return Settings(admin_password="fallback-admin", teacher_password="fallback-guru")


@pytest.fixture(autouse=True)
def clean_sessions():
    auth_service._sessions.clear()
    yield
    auth_service._sessions.clear()


def _login(state, settings, **fields):
    return auth_service.authenticate(state, LoginRequest(**fields), settings)


class TestAuthenticate:
    def test_admin_uses_stored_password(self, state, settings):
        viewer = _login(state, settings, role="admin", password="admin")
        assert isinstance(viewer, AdminViewer)
        with pytest.raises(AuthenticationError):
            _login(state, settings, role="admin", password="fallback-admin")

    def test_admin_falls_back_to_configured_password(self, state, settings):
        state = state.model_copy(update={"settings": AppSettings(admin_password=None)})
        assert isinstance(_login(state, settings, role="admin", password="fallback-admin"), AdminViewer)

    def test_admin_missing_password(self, state, settings):
        with pytest.raises(AuthenticationError):
            _login(state, settings, role="admin")

    def test_teacher_merges_assignments(self, state, settings):
        viewer = _login(state, settings, role="teacher", name="Siti Rahmawati", password="guru")
        assert isinstance(viewer, TeacherViewer)
        assert viewer.assignments == {PAI: ["7A", "7B"], "Bahasa Arab": ["7B"]}
        assert viewer.nip == "198501012010012001"

    def test_teacher_wrong_password(self, state, settings):
        with pytest.raises(AuthenticationError):
            _login(state, settings, role="teacher", name="Siti Rahmawati", password="nope")

    def test_unknown_teacher(self, state, settings):
        with pytest.raises(AuthenticationError, match="Unknown teacher"):
            _login(state, settings, role="teacher", name="Nobody", password="guru")

    def test_student_by_id(self, state, settings):
        viewer = _login(state, settings, role="student", student_id=6)
        assert isinstance(viewer, StudentViewer)
        assert viewer.class_name == "7B"
        with pytest.raises(AuthenticationError):
            _login(state, settings, role="student", student_id=999)


class TestTokens:
    def test_issue_and_resolve(self):
        token, expire_at = auth_service.issue_token(AdminViewer(), ttl_seconds=60)
        assert expire_at > time.time()
        assert isinstance(auth_service.resolve_token(token), AdminViewer)

    def test_tokens_not_stored_in_clear(self):
        token, _ = auth_service.issue_token(AdminViewer(), ttl_seconds=60)
        assert token not in auth_service._sessions

    def test_revoke(self):
        token, _ = auth_service.issue_token(AdminViewer(), ttl_seconds=60)
        auth_service.revoke_token(token)
        with pytest.raises(AuthenticationError):
            auth_service.resolve_token(token)

    def test_expired_token_rejected_and_removed(self):
        token, _ = auth_service.issue_token(AdminViewer(), ttl_seconds=60)
        with patch("services.auth_service.time.time", return_value=time.time() + 120):
            with pytest.raises(AuthenticationError, match="expired"):
                auth_service.resolve_token(token)
        assert auth_service._sessions == {}

    def test_cleanup_expired(self):
        auth_service.issue_token(AdminViewer(), ttl_seconds=60)
        auth_service.issue_token(AdminViewer(), ttl_seconds=600)
        with patch("services.auth_service.time.time", return_value=time.time() + 120):
            assert auth_service.cleanup_expired() == 1
        assert len(auth_service._sessions) == 1
