"""Read models returned by the grade, monitoring and dashboard endpoints."""

from __future__ import annotations

from typing import Literal

from pydantic import Field

from models.base import CamelModel
from models.grades import ChapterKey, FieldKey, SemesterKey


class Signature(CamelModel):
    name: str
    nip: str


# ---------------------------------------------------------------------------
# Class grade table
# ---------------------------------------------------------------------------

class ChapterColumn(CamelModel):
    """Header for one visible chapter of a grade table."""

    key: ChapterKey
    label: str
    active_fields: list[FieldKey] = Field(default_factory=list)
    display_fields: list[FieldKey] = Field(default_factory=list)
    unlocked_fields: list[FieldKey] = Field(default_factory=list)


class ChapterCell(CamelModel):
    scores: dict[FieldKey, float | None] = Field(default_factory=dict)
    average: float | None = None


class GradeRow(CamelModel):
    student_id: int
    no: int
    nis: str
    name: str
    gender: str
    chapters: dict[ChapterKey, ChapterCell] = Field(default_factory=dict)
    kts: float | None = None
    sas: float | None = None
    final_grade: float | None = None


class GradeTable(CamelModel):
    subject: str
    class_name: str
    semester: SemesterKey
    academic_year: str
    editable: bool = False
    chapters: list[ChapterColumn] = Field(default_factory=list)
    kts_unlocked: bool = False
    sas_unlocked: bool = False
    rows: list[GradeRow] = Field(default_factory=list)
    signature: Signature | None = None


# ---------------------------------------------------------------------------
# Monitoring
# ---------------------------------------------------------------------------

MonitoringKind = Literal["outstanding", "remedial"]


class MonitoringEntry(CamelModel):
    student_id: int
    nis: str
    name: str
    score: float


class MonitoringSession(CamelModel):
    session_id: str
    task_name: str
    date: str
    description: str = ""
    entries: list[MonitoringEntry] = Field(default_factory=list)


class MonitoringClass(CamelModel):
    class_name: str
    sessions: list[MonitoringSession] = Field(default_factory=list)


class MonitoringReport(CamelModel):
    kind: MonitoringKind
    subject: str
    semester: SemesterKey
    classes: list[MonitoringClass] = Field(default_factory=list)

    @property
    def student_count(self) -> int:
        return sum(len(s.entries) for c in self.classes for s in c.sessions)


class TeacherProgress(CamelModel):
    teacher_id: int
    name: str
    nip: str
    subject: str
    session_count: int
    classes_with_input: int
    total_classes: int
    progress: int
    status: Literal["done", "in_progress", "not_started"]
    last_input: str | None = None


# ---------------------------------------------------------------------------
# Student dashboard
# ---------------------------------------------------------------------------

class SubjectSummary(CamelModel):
    subject: str
    teacher: str
    final_grade: float | None = None
    completed: bool | None = None


class StudentTask(CamelModel):
    """One outstanding or remedial task on the student's own list."""

    subject: str
    teacher: str
    task_name: str
    description: str = ""
    date: str
    score: float


class ScoreDetail(CamelModel):
    """One recorded slot with the session that opened it, if any."""

    field: FieldKey | None = None
    score: float | None = None
    session_date: str | None = None
    description: str | None = None


class ChapterDetail(CamelModel):
    key: ChapterKey
    label: str
    active_fields: list[FieldKey] = Field(default_factory=list)
    scores: list[ScoreDetail] = Field(default_factory=list)
    average: float | None = None


class SubjectDetail(CamelModel):
    subject: str
    teacher: str
    semester: SemesterKey
    chapters: list[ChapterDetail] = Field(default_factory=list)
    kts: ScoreDetail = Field(default_factory=ScoreDetail)
    sas: ScoreDetail = Field(default_factory=ScoreDetail)
    final_grade: float | None = None
