"""Score records — one chapter, one semester, one subject.

Wire values (``bab1``, ``ganjil``, ``kts`` …) are the keys the spreadsheet
backend stores, so the enums keep them verbatim.
"""

from __future__ import annotations

from enum import Enum

from pydantic import Field, field_validator

from models.base import CamelModel


class ChapterKey(str, Enum):
    BAB1 = "bab1"
    BAB2 = "bab2"
    BAB3 = "bab3"
    BAB4 = "bab4"
    BAB5 = "bab5"

    @property
    def number(self) -> int:
        return int(self.value[3:])


class FieldKey(str, Enum):
    F1 = "f1"
    F2 = "f2"
    F3 = "f3"
    F4 = "f4"
    F5 = "f5"
    SUM = "sum"

    @property
    def label(self) -> str:
        return "S" if self is FieldKey.SUM else self.value.upper()


class SemesterKey(str, Enum):
    ODD = "ganjil"
    EVEN = "genap"

    @property
    def label(self) -> str:
        return "Ganjil" if self is SemesterKey.ODD else "Genap"


class GradeType(str, Enum):
    CHAPTER = "bab"
    MID_TERM = "kts"
    END_OF_TERM = "sas"


ALL_CHAPTERS: tuple[ChapterKey, ...] = tuple(ChapterKey)
ALL_FIELDS: tuple[FieldKey, ...] = tuple(FieldKey)

# Score targets outside the chapter structure
EXAM_TARGETS: tuple[str, ...] = ("kts", "sas")


def _blank_is_none(value):
    # empty spreadsheet cells arrive as ""
    if isinstance(value, str) and not value.strip():
        return None
    return value


def chapter_label(chapter: ChapterKey, semester: SemesterKey) -> str:
    """``Bab 1``..``Bab 5`` in the odd semester, ``Bab 6``..``Bab 10`` in the even one."""
    offset = 5 if semester is SemesterKey.EVEN else 0
    return f"Bab {chapter.number + offset}"


class ChapterGrades(CamelModel):
    """Six optional score slots for one chapter. ``None`` means not yet assessed."""

    f1: float | None = None
    f2: float | None = None
    f3: float | None = None
    f4: float | None = None
    f5: float | None = None
    sum: float | None = None

    blank_cells = field_validator("f1", "f2", "f3", "f4", "f5", "sum", mode="before")(_blank_is_none)

    def get(self, field: FieldKey) -> float | None:
        return getattr(self, field.value)


class SemesterData(CamelModel):
    """One student's semester record for one subject."""

    bab1: ChapterGrades = Field(default_factory=ChapterGrades)
    bab2: ChapterGrades = Field(default_factory=ChapterGrades)
    bab3: ChapterGrades = Field(default_factory=ChapterGrades)
    bab4: ChapterGrades = Field(default_factory=ChapterGrades)
    bab5: ChapterGrades = Field(default_factory=ChapterGrades)
    kts: float | None = None
    sas: float | None = None

    blank_exams = field_validator("kts", "sas", mode="before")(_blank_is_none)

    def chapter(self, chapter: ChapterKey) -> ChapterGrades:
        return getattr(self, chapter.value)

    def score(self, target: str, field: FieldKey | None = None) -> float | None:
        """Read a slot: ``target`` is a chapter key or ``kts``/``sas``."""
        if target in EXAM_TARGETS:
            return getattr(self, target)
        if field is None:
            return None
        return self.chapter(ChapterKey(target)).get(field)

    def with_score(
        self, target: str, field: FieldKey | None, value: float | None
    ) -> SemesterData:
        """Return a copy with one slot replaced."""
        if target in EXAM_TARGETS:
            return self.model_copy(update={target: value}, deep=True)
        if field is None:
            raise ValueError(f"field is required for chapter target {target!r}")
        chapter = ChapterKey(target)
        grades = self.chapter(chapter).model_copy(update={field.value: value})
        return self.model_copy(update={chapter.value: grades}, deep=True)


class SubjectGrades(CamelModel):
    """Both semester halves for one subject; never partially initialised."""

    ganjil: SemesterData = Field(default_factory=SemesterData)
    genap: SemesterData = Field(default_factory=SemesterData)

    def semester(self, semester: SemesterKey) -> SemesterData:
        return getattr(self, semester.value)

    def with_semester(self, semester: SemesterKey, data: SemesterData) -> SubjectGrades:
        return self.model_copy(update={semester.value: data}, deep=True)


def empty_semester_data() -> SemesterData:
    """Canonical constructor: every slot unset."""
    return SemesterData()


def empty_subject_grades() -> SubjectGrades:
    return SubjectGrades(ganjil=empty_semester_data(), genap=empty_semester_data())
