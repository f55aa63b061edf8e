"""Shared request helpers: viewer resolution and error translation."""

from __future__ import annotations

from urllib.parse import quote

from fastapi import HTTPException, Request
from fastapi.responses import Response

from errors import AuthenticationError, GradebookError, PermissionDeniedError
from models.grades import SemesterKey
from models.school import AppState
from models.viewer import AdminViewer, Capability, StudentViewer, TeacherViewer
from services.auth_service import resolve_token


def bearer_token(request: Request) -> str:
    return request.headers.get("Authorization", "").removeprefix("Bearer ").strip()


def get_viewer(request: Request) -> AdminViewer | TeacherViewer | StudentViewer:
    """Resolve the caller's viewer context from ``Authorization: Bearer``."""
    token = bearer_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Missing Authorization header")
    try:
        return resolve_token(token)
    except AuthenticationError as exc:
        raise HTTPException(status_code=401, detail=exc.message) from exc


def to_http(exc: GradebookError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)


def require(viewer, capability: Capability) -> None:
    try:
        viewer.require(capability)
    except PermissionDeniedError as exc:
        raise to_http(exc) from exc


def require_class_access(viewer, subject: str, class_name: str) -> None:
    """Admins see every class; teachers only the classes they teach for ``subject``."""
    if viewer.can(Capability.VIEW_ALL_CLASSES):
        return
    if isinstance(viewer, TeacherViewer) and viewer.teaches(subject, class_name):
        return
    raise HTTPException(
        status_code=403,
        detail=f"No access to class '{class_name}' for subject '{subject}'",
    )


def require_teaching(viewer, subject: str, class_name: str) -> None:
    """Grade-changing operations: only the teacher of the subject and class."""
    if isinstance(viewer, TeacherViewer) and viewer.teaches(subject, class_name):
        return
    raise HTTPException(
        status_code=403,
        detail=f"Not assigned to teach '{subject}' in class '{class_name}'",
    )


def semester_or_active(semester: SemesterKey | None, state: AppState) -> SemesterKey:
    return semester or state.settings.active_semester


def download(content: bytes | str, filename: str, media_type: str) -> Response:
    body = content.encode("utf-8") if isinstance(content, str) else content
    return Response(
        content=body,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
    )
