"""Class grade table, score entry, class reset and grade exports."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from api.deps import (
    download,
    get_viewer,
    require,
    require_class_access,
    require_teaching,
    semester_or_active,
    to_http,
)
from config.settings import get_settings
from errors import GradebookError
from models.grades import SemesterKey
from models.request import ResetGradesRequest, ScoreUpdateRequest
from models.viewer import Capability
from models.views import GradeTable
from services import gradebook, report_export
from services.state_store import ResetClassGrades, UpdateScore, get_state_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/grades", tags=["grades"])


def _table(viewer, subject: str, class_name: str, semester: SemesterKey | None, search=None) -> GradeTable:
    store = get_state_store()
    state = store.state
    require_class_access(viewer, subject, class_name)
    # only the teacher of the class edits; admins get a read-only table
    editable = viewer.can(Capability.EDIT_GRADES) and viewer.teaches(subject, class_name)
    return gradebook.build_grade_table(
        state,
        subject,
        class_name,
        semester_or_active(semester, state),
        store.default_subject,
        editable=editable,
        search=search,
    )


@router.get("/context")
async def grade_context(subject: str | None = None, viewer=Depends(get_viewer)):
    """Subjects the viewer can open and, for ``subject``, its classes."""
    store = get_state_store()
    state = store.state
    subjects = gradebook.available_subjects(viewer, state, store.default_subject)
    chosen = subject if subject in subjects else (subjects[0] if subjects else None)
    return {
        "subjects": subjects,
        "subject": chosen,
        "classes": gradebook.available_classes(viewer, state, chosen) if chosen else [],
        "activeSemester": state.settings.active_semester.value,
        "academicYear": state.settings.academic_year,
    }


@router.get("", response_model=GradeTable)
async def grade_table(
    subject: str,
    class_name: str = Query(..., alias="className"),
    semester: SemesterKey | None = None,
    search: str | None = None,
    viewer=Depends(get_viewer),
):
    return _table(viewer, subject, class_name, semester, search)


@router.put("/{student_id}")
async def update_score(student_id: int, req: ScoreUpdateRequest, viewer=Depends(get_viewer)):
    """Write one score.  The slot must have been opened by a session."""
    require(viewer, Capability.EDIT_GRADES)
    store = get_state_store()
    state = store.state

    student = state.find_student(student_id)
    if student is None:
        raise HTTPException(status_code=404, detail=f"Student '{student_id}' not found")
    require_teaching(viewer, req.subject, student.class_name)

    try:
        action = UpdateScore(
            student_id=student_id,
            subject=req.subject,
            semester=req.semester,
            target=req.target,
            field=req.field,
            value=req.value,
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    try:
        gradebook.ensure_slot_unlocked(
            state,
            student.class_name,
            req.semester,
            req.subject,
            action.target,
            action.field,
            store.default_subject,
        )
        new_state = store.dispatch(action)
    except GradebookError as exc:
        raise to_http(exc) from exc

    data = new_state.find_student(student_id).semester_data(
        req.subject, req.semester, store.default_subject
    )
    return {
        "studentId": student_id,
        "value": data.score(action.target, action.field),
        "semesterData": data.to_wire(),
    }


@router.post("/reset")
async def reset_class_grades(req: ResetGradesRequest, viewer=Depends(get_viewer)):
    """Clear every subject's scores of one class for one semester."""
    require(viewer, Capability.RESET_DATA)
    store = get_state_store()
    store.dispatch(ResetClassGrades(class_name=req.class_name, semester=req.semester))
    logger.warning("Grades reset: class=%s semester=%s", req.class_name, req.semester.value)
    return {"status": "ok", "className": req.class_name, "semester": req.semester.value}


@router.get("/export/csv")
async def export_csv(
    subject: str,
    class_name: str = Query(..., alias="className"),
    semester: SemesterKey | None = None,
    viewer=Depends(get_viewer),
):
    require(viewer, Capability.EXPORT_REPORTS)
    table = _table(viewer, subject, class_name, semester)
    filename = report_export.report_filename("Nilai", subject, class_name, table.semester.value, ext="csv")
    return download(report_export.grade_report_csv(table), filename, "text/csv; charset=utf-8")


@router.get("/export/pdf")
async def export_pdf(
    subject: str,
    class_name: str = Query(..., alias="className"),
    semester: SemesterKey | None = None,
    viewer=Depends(get_viewer),
):
    require(viewer, Capability.EXPORT_REPORTS)
    table = _table(viewer, subject, class_name, semester)
    html = report_export.grade_report_html(
        table,
        principal=gradebook.principal_signature(get_state_store().state),
        city=get_settings().report_city,
    )
    filename = report_export.report_filename("Nilai", subject, class_name, table.semester.value, ext="pdf")
    return download(report_export.render_pdf(html, title=filename), filename, "application/pdf")
