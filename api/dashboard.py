"""Student dashboard — a student sees only their own record."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException

from api.deps import get_viewer, require, semester_or_active
from models.grades import SemesterKey
from models.viewer import Capability
from models.views import SubjectDetail
from services import dashboard
from services.state_store import get_state_store

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


def _own_student(viewer):
    require(viewer, Capability.VIEW_OWN_GRADES)
    student = get_state_store().state.find_student(viewer.student_id)
    if student is None:
        raise HTTPException(status_code=404, detail="Student record no longer exists")
    return student


@router.get("")
async def overview(viewer=Depends(get_viewer)):
    store = get_state_store()
    state = store.state
    student = _own_student(viewer)
    return {
        "student": student.profile(),
        "subjects": dashboard.student_subjects(state, student, store.default_subject),
        "activeSemester": state.settings.active_semester.value,
        "academicYear": state.settings.academic_year,
    }


@router.get("/subjects/{subject}", response_model=SubjectDetail)
async def subject_detail(subject: str, semester: SemesterKey | None = None, viewer=Depends(get_viewer)):
    store = get_state_store()
    state = store.state
    student = _own_student(viewer)
    return dashboard.subject_detail(
        state, student, subject, semester_or_active(semester, state), store.default_subject
    )


@router.get("/summary")
async def summary(semester: SemesterKey | None = None, viewer=Depends(get_viewer)):
    store = get_state_store()
    state = store.state
    student = _own_student(viewer)
    chosen = semester_or_active(semester, state)
    rows = dashboard.subject_summary(state, student, chosen, store.default_subject)
    return {"semester": chosen.value, "subjects": [r.to_wire() for r in rows]}


@router.get("/tasks/{kind}")
async def tasks(
    kind: Literal["outstanding", "remedial"],
    semester: SemesterKey | None = None,
    viewer=Depends(get_viewer),
):
    store = get_state_store()
    state = store.state
    student = _own_student(viewer)
    chosen = semester_or_active(semester, state)
    items = dashboard.own_tasks(state, student, chosen, kind, store.default_subject)
    return {"semester": chosen.value, "kind": kind, "tasks": [t.to_wire() for t in items]}
