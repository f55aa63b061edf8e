"""School settings and per-subject chapter visibility."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from api.deps import get_viewer, require
from models.school import AppSettings, ChapterVisibility
from models.viewer import Capability, TeacherViewer
from services.state_store import SaveChapterConfig, SaveSettings, get_state_store

router = APIRouter(prefix="/api/settings", tags=["settings"])

_SECRET_FIELDS = {"admin_password", "teacher_default_password"}


@router.get("")
async def get_app_settings(viewer=Depends(get_viewer)):
    """Passwords are only shown to admins."""
    settings = get_state_store().state.settings
    exclude = None if viewer.can(Capability.MANAGE_SETTINGS) else _SECRET_FIELDS
    return settings.model_dump(by_alias=True, mode="json", exclude=exclude)


@router.put("")
async def save_app_settings(req: AppSettings, viewer=Depends(get_viewer)):
    require(viewer, Capability.MANAGE_SETTINGS)
    new_state = get_state_store().dispatch(SaveSettings(settings=req))
    return new_state.settings.to_wire()


@router.get("/chapters/{subject}")
async def get_chapter_config(subject: str, viewer=Depends(get_viewer)):
    state = get_state_store().state
    return {
        "subject": subject,
        "custom": subject in state.chapter_configs,
        "config": state.visibility_for(subject).to_wire(),
    }


@router.put("/chapters/{subject}")
async def save_chapter_config(subject: str, req: ChapterVisibility, viewer=Depends(get_viewer)):
    """Teachers configure the subjects they teach; admins any subject."""
    if not viewer.can(Capability.MANAGE_SETTINGS):
        require(viewer, Capability.CONFIGURE_CHAPTERS)
        if isinstance(viewer, TeacherViewer) and subject not in viewer.assignments:
            raise HTTPException(status_code=403, detail=f"Not assigned to teach '{subject}'")
    get_state_store().dispatch(SaveChapterConfig(subject=subject, config=req))
    return {"subject": subject, "custom": True, "config": req.to_wire()}
