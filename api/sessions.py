"""Assessment sessions: the history entries that unlock scoring slots."""

from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Depends, HTTPException, Query

from api.deps import (
    get_viewer,
    require,
    require_class_access,
    require_teaching,
    semester_or_active,
    to_http,
)
from errors import GradebookError
from models.grades import ChapterKey, SemesterKey
from models.request import ResetHistoryRequest, SessionRequest
from models.school import AssessmentSession
from models.viewer import Capability
from services import gradebook
from services.state_store import DeleteSession, ResetHistory, SaveSession, get_state_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@router.get("")
async def list_sessions(
    subject: str,
    class_name: str = Query(..., alias="className"),
    semester: SemesterKey | None = None,
    viewer=Depends(get_viewer),
):
    store = get_state_store()
    state = store.state
    require_class_access(viewer, subject, class_name)
    history = gradebook.class_history(
        state, class_name, semester_or_active(semester, state), subject, store.default_subject
    )
    return {
        "sessions": [
            {**h.to_wire(), "taskName": h.task_name()}
            for h in history
        ]
    }


@router.get("/available-fields")
async def available_fields(
    subject: str,
    chapter: ChapterKey,
    class_name: str = Query(..., alias="className"),
    semester: SemesterKey | None = None,
    editing: str | None = None,
    viewer=Depends(get_viewer),
):
    """Fields of ``chapter`` still free for a new session (``editing`` excluded)."""
    store = get_state_store()
    state = store.state
    require_class_access(viewer, subject, class_name)
    fields = gradebook.available_fields(
        state,
        class_name,
        semester_or_active(semester, state),
        subject,
        chapter,
        store.default_subject,
        editing_session_id=editing,
    )
    return {"fields": [f.value for f in fields]}


def _save(req: SessionRequest, viewer, session_id: str) -> dict:
    require(viewer, Capability.OPEN_SESSIONS)
    require_teaching(viewer, req.subject, req.target_class)
    store = get_state_store()

    try:
        session = AssessmentSession(
            id=session_id,
            semester=req.semester,
            target_class=req.target_class,
            target_subject=req.subject,
            date=req.date,
            type=req.type,
            chapter_key=req.chapter_key,
            formative_key=req.formative_key,
            description=req.description,
        )
        gradebook.ensure_slot_available(store.state, session, req.subject, store.default_subject)
        new_state = store.dispatch(SaveSession(session=session, subject=req.subject))
    except GradebookError as exc:
        raise to_http(exc) from exc

    saved = new_state.find_session(session_id)
    logger.info("Session saved: %s %s %s", req.target_class, req.subject, saved.task_name())
    return {**saved.to_wire(), "taskName": saved.task_name()}


@router.post("")
async def open_session(req: SessionRequest, viewer=Depends(get_viewer)):
    session_id = req.id or str(int(time.time() * 1000))
    if get_state_store().state.find_session(session_id) is not None:
        raise HTTPException(status_code=409, detail=f"Session '{session_id}' already exists")
    return _save(req, viewer, session_id)


@router.put("/{session_id}")
async def edit_session(session_id: str, req: SessionRequest, viewer=Depends(get_viewer)):
    existing = get_state_store().state.find_session(session_id)
    if existing is None:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    return _save(req, viewer, session_id)


@router.delete("/{session_id}")
async def delete_session(session_id: str, viewer=Depends(get_viewer)):
    """Scores stay; the slot is locked again."""
    require(viewer, Capability.OPEN_SESSIONS)
    store = get_state_store()
    session = store.state.find_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    require_teaching(viewer, session.subject_or(store.default_subject), session.target_class)
    try:
        store.dispatch(DeleteSession(session_id=session_id))
    except GradebookError as exc:
        raise to_http(exc) from exc
    return {"status": "ok", "id": session_id}


@router.post("/reset")
async def reset_history(req: ResetHistoryRequest, viewer=Depends(get_viewer)):
    """Drop every session of a class/semester/subject; scores are kept."""
    require(viewer, Capability.OPEN_SESSIONS)
    require_teaching(viewer, req.subject, req.class_name)
    store = get_state_store()
    before = len(store.state.history)
    after = store.dispatch(ResetHistory(class_name=req.class_name, semester=req.semester, subject=req.subject))
    removed = before - len(after.history)
    logger.info("History reset: %s %s %s (%d removed)", req.class_name, req.semester.value, req.subject, removed)
    return {"status": "ok", "removed": removed}
