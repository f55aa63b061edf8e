"""API request / response models."""

from __future__ import annotations

from typing import Literal

from pydantic import Field, model_validator

from models.base import CamelModel
from models.grades import ChapterKey, FieldKey, GradeType, SemesterKey
from models.viewer import ViewerContext


class LoginRequest(CamelModel):
    """POST /api/auth/login — request body.

    Admins send ``password``; teachers send ``name`` and the shared teacher
    password; students pick themselves by ``studentId``.
    """

    role: Literal["admin", "teacher", "student"]
    password: str | None = None
    name: str | None = None
    student_id: int | None = None


class LoginResponse(CamelModel):
    """POST /api/auth/login — response body."""

    token: str
    expires_at: float
    viewer: ViewerContext


class ScoreUpdateRequest(CamelModel):
    """PUT /api/grades/{student_id} — one slot; ``field`` only for chapters."""

    subject: str
    semester: SemesterKey
    target: str
    field: FieldKey | None = None
    value: float | str | None = None


class SessionRequest(CamelModel):
    """POST/PUT /api/sessions — open or edit an assessment session."""

    id: str | None = None
    subject: str
    semester: SemesterKey
    target_class: str
    date: str
    type: GradeType
    chapter_key: ChapterKey | None = None
    formative_key: FieldKey | None = None
    description: str = ""

    @model_validator(mode="after")
    def _chapter_slot(self) -> SessionRequest:
        if self.type is GradeType.CHAPTER and (self.chapter_key is None or self.formative_key is None):
            raise ValueError("chapter sessions need chapterKey and formativeKey")
        return self


class ResetHistoryRequest(CamelModel):
    """POST /api/sessions/reset — request body."""

    class_name: str
    semester: SemesterKey
    subject: str


class ResetGradesRequest(CamelModel):
    """POST /api/grades/reset — request body."""

    class_name: str
    semester: SemesterKey


class StudentCreateRequest(CamelModel):
    """POST /api/students — request body."""

    name: str = Field(min_length=1)
    class_name: str = Field(min_length=1)
    registration_no: str = ""
    gender: Literal["L", "P"] = "L"


class ImportResult(CamelModel):
    """POST /api/students/import — response body."""

    imported: int
    skipped: int
    batches: int
