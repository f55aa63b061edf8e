"""Login and bearer tokens.

A successful login resolves the viewer context once; the token maps to it
in memory until it expires.  Tokens do not survive a restart.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
import time

from config.settings import Settings
from errors import AuthenticationError
from models.request import LoginRequest
from models.school import AppState
from models.viewer import AdminViewer, StudentViewer, TeacherViewer

logger = logging.getLogger(__name__)

# In-memory sessions: sha256(token)[:32] → (viewer, expire_at)
_sessions: dict[str, tuple[AdminViewer | TeacherViewer | StudentViewer, float]] = {}


def _key(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()[:32]


def _password_ok(provided: str | None, stored: str | None, fallback: str) -> bool:
    # settings saved without a password fall back to the configured one
    expected = stored or fallback
    return provided is not None and secrets.compare_digest(provided.encode(), expected.encode())


def authenticate(state: AppState, request: LoginRequest, settings: Settings):
    """Resolve the viewer for a login attempt or raise :class:`AuthenticationError`."""
    if request.role == "admin":
        if not _password_ok(request.password, state.settings.admin_password, settings.admin_password):
            raise AuthenticationError("Wrong admin password")
        return AdminViewer()

    if request.role == "teacher":
        name = (request.name or "").strip()
        rows = [t for t in state.teachers if t.name == name]
        if not rows:
            raise AuthenticationError(f"Unknown teacher '{name}'")
        if not _password_ok(
            request.password, state.settings.teacher_default_password, settings.teacher_password
        ):
            raise AuthenticationError("Wrong teacher password")
        assignments: dict[str, list[str]] = {}
        for t in rows:
            assignments.setdefault(t.subject, [])
            assignments[t.subject].extend(c for c in t.classes if c not in assignments[t.subject])
        return TeacherViewer(teacher_name=name, nip=rows[0].nip, assignments=assignments)

    student = state.find_student(request.student_id) if request.student_id is not None else None
    if student is None:
        raise AuthenticationError("Unknown student")
    return StudentViewer(student_id=student.id, class_name=student.class_name)


def issue_token(viewer, ttl_seconds: int) -> tuple[str, float]:
    cleanup_expired()
    token = secrets.token_urlsafe(32)
    expire_at = time.time() + ttl_seconds
    _sessions[_key(token)] = (viewer, expire_at)
    logger.info("Login: role=%s", viewer.role)
    return token, expire_at


def resolve_token(token: str):
    """Viewer for a live token; expired entries are removed on sight."""
    key = _key(token)
    cached = _sessions.get(key)
    if cached is None:
        raise AuthenticationError("Invalid token")
    viewer, expire_at = cached
    if time.time() >= expire_at:
        _sessions.pop(key, None)
        raise AuthenticationError("Token expired")
    return viewer


def revoke_token(token: str) -> None:
    _sessions.pop(_key(token), None)


def cleanup_expired() -> int:
    now = time.time()
    expired = [k for k, (_, expire_at) in _sessions.items() if now >= expire_at]
    for k in expired:
        del _sessions[k]
    return len(expired)
