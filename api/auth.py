"""Login / logout and the login-page roster."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from api.deps import bearer_token, get_viewer, to_http
from config.settings import get_settings
from errors import GradebookError
from models.request import LoginRequest, LoginResponse
from services.auth_service import authenticate, issue_token, revoke_token
from services.state_store import get_state_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.get("/options")
async def login_options():
    """What the login page offers: classes with their students, teacher names."""
    state = get_state_store().state
    classes = {
        name: [{"id": s.id, "name": s.name} for s in state.class_students(name)]
        for name in state.class_names()
    }
    teachers = sorted({t.name for t in state.teachers})
    return {"classes": classes, "teachers": teachers}


@router.post("/login", response_model=LoginResponse)
async def login(req: LoginRequest):
    settings = get_settings()
    try:
        viewer = authenticate(get_state_store().state, req, settings)
    except GradebookError as exc:
        logger.info("Login rejected: role=%s (%s)", req.role, exc.message)
        raise to_http(exc) from exc
    token, expires_at = issue_token(viewer, settings.session_ttl)
    return LoginResponse(token=token, expires_at=expires_at, viewer=viewer)


@router.post("/logout")
async def logout(request: Request, viewer=Depends(get_viewer)):
    revoke_token(bearer_token(request))
    return {"status": "ok"}


@router.get("/me")
async def me(viewer=Depends(get_viewer)):
    data = viewer.model_dump(by_alias=True, mode="json")
    data["capabilities"] = sorted(c.value for c in viewer.capabilities)
    return data
