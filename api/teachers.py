"""Teaching assignments (admin)."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from api.deps import get_viewer, require, to_http
from errors import GradebookError
from models.school import Teacher
from models.viewer import Capability
from services.state_store import DeleteTeacher, SaveTeacher, get_state_store

router = APIRouter(prefix="/api/teachers", tags=["teachers"])


@router.get("")
async def list_teachers(viewer=Depends(get_viewer)):
    require(viewer, Capability.MANAGE_TEACHERS)
    state = get_state_store().state
    return {"teachers": [t.to_wire() for t in state.teachers]}


@router.post("")
async def create_teacher(req: Teacher, viewer=Depends(get_viewer)):
    require(viewer, Capability.MANAGE_TEACHERS)
    state = get_state_store().state
    if any(t.id == req.id for t in state.teachers):
        raise HTTPException(status_code=409, detail=f"Teacher '{req.id}' already exists")
    get_state_store().dispatch(SaveTeacher(teacher=req))
    return req.to_wire()


@router.put("/{teacher_id}")
async def update_teacher(teacher_id: int, req: Teacher, viewer=Depends(get_viewer)):
    require(viewer, Capability.MANAGE_TEACHERS)
    if req.id != teacher_id:
        raise HTTPException(status_code=400, detail="Teacher id in body does not match the URL")
    get_state_store().dispatch(SaveTeacher(teacher=req))
    return req.to_wire()


@router.delete("/{teacher_id}")
async def delete_teacher(teacher_id: int, viewer=Depends(get_viewer)):
    require(viewer, Capability.MANAGE_TEACHERS)
    try:
        get_state_store().dispatch(DeleteTeacher(teacher_id=teacher_id))
    except GradebookError as exc:
        raise to_http(exc) from exc
    return {"status": "ok", "id": teacher_id}
