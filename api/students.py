"""Student roster management (admin)."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from api.deps import download, get_viewer, require, to_http
from errors import GradebookError
from models.request import ImportResult, StudentCreateRequest
from models.school import Student
from models.viewer import Capability
from services import roster_import
from services.state_store import (
    AddStudent,
    DeleteStudent,
    ImportStudents,
    UpdateStudent,
    get_state_store,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/students", tags=["students"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.get("")
async def list_students(
    class_name: str | None = Query(None, alias="className"),
    search: str | None = None,
    viewer=Depends(get_viewer),
):
    """Filter by class and by a search over name, NIS or class."""
    require(viewer, Capability.MANAGE_STUDENTS)
    state = get_state_store().state
    students = state.class_students(class_name) if class_name else state.students
    needle = (search or "").strip().lower()
    if needle:
        students = [
            s for s in students
            if needle in s.name.lower()
            or needle in s.registration_no.lower()
            or needle in s.class_name.lower()
        ]
    return {
        "students": [s.profile() for s in students],
        "classes": state.class_names(),
    }


@router.post("")
async def add_student(req: StudentCreateRequest, viewer=Depends(get_viewer)):
    require(viewer, Capability.MANAGE_STUDENTS)
    action = AddStudent(
        name=req.name.strip(),
        class_name=req.class_name.strip(),
        registration_no=req.registration_no.strip(),
        gender=req.gender,
    )
    new_state = get_state_store().dispatch(action)
    return new_state.find_student(action.id).profile()


@router.put("/{student_id}")
async def update_student(student_id: int, req: Student, viewer=Depends(get_viewer)):
    require(viewer, Capability.MANAGE_STUDENTS)
    if req.id != student_id:
        raise HTTPException(status_code=400, detail="Student id in body does not match the URL")
    try:
        new_state = get_state_store().dispatch(UpdateStudent(student=req))
    except GradebookError as exc:
        raise to_http(exc) from exc
    return new_state.find_student(student_id).profile()


@router.delete("/{student_id}")
async def delete_student(student_id: int, viewer=Depends(get_viewer)):
    require(viewer, Capability.MANAGE_STUDENTS)
    try:
        get_state_store().dispatch(DeleteStudent(student_id=student_id))
    except GradebookError as exc:
        raise to_http(exc) from exc
    return {"status": "ok", "id": student_id}


@router.post("/import", response_model=ImportResult)
async def import_students(request: Request, viewer=Depends(get_viewer)):
    """Body is the raw ``.xlsx`` file; valid rows are appended to the roster."""
    require(viewer, Capability.MANAGE_STUDENTS)
    content = await request.body()
    if not content:
        raise HTTPException(status_code=400, detail="Empty upload")
    try:
        parsed = roster_import.parse_roster(content)
    except GradebookError as exc:
        raise to_http(exc) from exc
    if not parsed.students:
        raise HTTPException(
            status_code=400,
            detail="No valid rows; NIS, Nama and Kelas must be filled in",
        )

    store = get_state_store()
    store.dispatch(ImportStudents(students=parsed.students))
    batch_size = max(1, store.import_batch_size)
    batches = -(-len(parsed.students) // batch_size)
    logger.info("Imported %d students (%d skipped)", len(parsed.students), parsed.skipped)
    return ImportResult(imported=len(parsed.students), skipped=parsed.skipped, batches=batches)


@router.get("/template")
async def import_template(viewer=Depends(get_viewer)):
    require(viewer, Capability.MANAGE_STUDENTS)
    return download(roster_import.build_template(), "Template_Import_Siswa.xlsx", XLSX_MEDIA_TYPE)
