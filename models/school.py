"""School entities — students, teachers, assessment sessions, settings.

These are the canonical records held in :class:`AppState`.  Field aliases
match the spreadsheet backend's column names (``nis``, ``kelas`` …) so the
same models parse ``getInitialData`` and build mutation payloads.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator, model_validator

from models.base import CamelModel
from models.grades import (
    ALL_CHAPTERS,
    ChapterKey,
    FieldKey,
    GradeType,
    SemesterData,
    SemesterKey,
    SubjectGrades,
    chapter_label,
    empty_subject_grades,
)


DEFAULT_SUBJECT = "Pendidikan Agama Islam"


def _as_text(value):
    """Sheet cells come back as numbers for numeric-looking IDs."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


# ---------------------------------------------------------------------------
# Chapter visibility
# ---------------------------------------------------------------------------

class ChapterVisibility(CamelModel):
    """Exactly one flag per chapter; hidden chapters drop out of the final grade."""

    bab1: bool = True
    bab2: bool = True
    bab3: bool = True
    bab4: bool = True
    bab5: bool = True

    def is_visible(self, chapter: ChapterKey) -> bool:
        return getattr(self, chapter.value)

    def visible_chapters(self) -> list[ChapterKey]:
        return [c for c in ALL_CHAPTERS if self.is_visible(c)]


# ---------------------------------------------------------------------------
# People
# ---------------------------------------------------------------------------

class Student(CamelModel):
    id: int
    no: int = 0
    registration_no: str = Field("", alias="nis")
    name: str
    class_name: str = Field("", alias="kelas")
    gender: Literal["L", "P"] = "L"
    grades: SubjectGrades = Field(default_factory=empty_subject_grades)
    grades_by_subject: dict[str, SubjectGrades] = Field(default_factory=dict)

    normalize_registration = field_validator("registration_no", mode="before")(_as_text)

    @field_validator("id", mode="before")
    @classmethod
    def _integral_id(cls, value):
        # imports from the old web client produced fractional ids
        if isinstance(value, float):
            return int(value)
        return value

    @field_validator("gender", mode="before")
    @classmethod
    def _normalize_gender(cls, value):
        return "P" if str(value or "").strip().upper() == "P" else "L"

    def subject_grades(self, subject: str, default_subject: str) -> SubjectGrades:
        """Both halves for ``subject``; an empty record when nothing is stored yet."""
        if subject == default_subject:
            return self.grades
        return self.grades_by_subject.get(subject) or empty_subject_grades()

    def semester_data(
        self, subject: str, semester: SemesterKey, default_subject: str
    ) -> SemesterData:
        return self.subject_grades(subject, default_subject).semester(semester)

    def with_semester_data(
        self,
        subject: str,
        semester: SemesterKey,
        data: SemesterData,
        default_subject: str,
    ) -> Student:
        """Return a copy with one subject/semester record replaced."""
        if subject == default_subject:
            return self.model_copy(
                update={"grades": self.grades.with_semester(semester, data)}
            )
        by_subject = dict(self.grades_by_subject)
        current = by_subject.get(subject) or empty_subject_grades()
        by_subject[subject] = current.with_semester(semester, data)
        return self.model_copy(update={"grades_by_subject": by_subject})

    def profile(self) -> dict:
        """Wire payload without grade objects (addStudent / updateStudent / importStudents)."""
        return self.model_dump(
            by_alias=True, mode="json", exclude={"grades", "grades_by_subject"}
        )


class Teacher(CamelModel):
    """One teaching assignment: a teacher, a subject and the classes it covers."""

    id: int
    no: int = 0
    name: str
    nip: str = ""
    subject: str
    classes: list[str] = Field(default_factory=list)

    normalize_nip = field_validator("nip", mode="before")(_as_text)


# ---------------------------------------------------------------------------
# Assessment sessions (history)
# ---------------------------------------------------------------------------

class AssessmentSession(CamelModel):
    """A log entry that unlocks one scoring slot for a class/subject/semester."""

    id: str
    semester: SemesterKey
    target_class: str
    target_subject: str | None = None
    date: str
    type: GradeType
    chapter_key: ChapterKey | None = None
    formative_key: FieldKey | None = None
    description: str = ""

    normalize_id = field_validator("id", mode="before")(_as_text)

    @field_validator("description", mode="before")
    @classmethod
    def _none_description(cls, value):
        return value or ""

    @model_validator(mode="after")
    def _chapter_slot_complete(self) -> AssessmentSession:
        if self.type is GradeType.CHAPTER:
            if self.chapter_key is None or self.formative_key is None:
                raise ValueError("chapter sessions need chapterKey and formativeKey")
        else:
            self.chapter_key = None
            self.formative_key = None
        return self

    def subject_or(self, default_subject: str) -> str:
        """Sessions recorded before subjects existed belong to the default subject."""
        return self.target_subject or default_subject

    def matches(
        self,
        class_name: str,
        semester: SemesterKey,
        subject: str,
        default_subject: str,
    ) -> bool:
        return (
            self.target_class == class_name
            and self.semester is semester
            and self.subject_or(default_subject) == subject
        )

    def unlocks(self, target: str, field: FieldKey | None) -> bool:
        """Whether this session opens ``target`` (chapter key, ``kts`` or ``sas``)."""
        if self.type is GradeType.CHAPTER:
            return self.chapter_key.value == target and self.formative_key is field
        return self.type.value == target

    @property
    def target(self) -> str:
        return self.chapter_key.value if self.chapter_key else self.type.value

    def task_name(self) -> str:
        """Human label, e.g. ``Bab 7 - F2`` or ``KTS``."""
        if self.type is GradeType.CHAPTER:
            slot = "Sumatif" if self.formative_key is FieldKey.SUM else self.formative_key.value.upper()
            return f"{chapter_label(self.chapter_key, self.semester)} - {slot}"
        return self.type.value.upper()


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

class AppSettings(CamelModel):
    academic_year: str = "2024/2025"
    active_semester: SemesterKey = SemesterKey.ODD
    visible_chapters: ChapterVisibility = Field(default_factory=ChapterVisibility)
    teacher_name: str = "Guru Mapel"
    teacher_nip: str = "-"
    principal_name: str = "Kepala Sekolah"
    principal_nip: str = "-"
    admin_password: str | None = "admin"
    teacher_default_password: str | None = "guru"

    normalize_nips = field_validator("teacher_nip", "principal_nip", mode="before")(_as_text)


# ---------------------------------------------------------------------------
# Application state
# ---------------------------------------------------------------------------

class AppState(CamelModel):
    """Everything the service knows; replaced wholesale by the reducer."""

    students: list[Student] = Field(default_factory=list)
    teachers: list[Teacher] = Field(default_factory=list)
    history: list[AssessmentSession] = Field(default_factory=list)
    settings: AppSettings = Field(default_factory=AppSettings)
    chapter_configs: dict[str, ChapterVisibility] = Field(default_factory=dict)

    def visibility_for(self, subject: str) -> ChapterVisibility:
        """Per-subject override, else the global default map."""
        return self.chapter_configs.get(subject) or self.settings.visible_chapters

    def find_student(self, student_id: int) -> Student | None:
        return next((s for s in self.students if s.id == student_id), None)

    def find_session(self, session_id: str) -> AssessmentSession | None:
        return next((h for h in self.history if h.id == session_id), None)

    def class_students(self, class_name: str) -> list[Student]:
        return [s for s in self.students if s.class_name == class_name]

    def class_names(self) -> list[str]:
        return sorted({s.class_name for s in self.students if s.class_name})
