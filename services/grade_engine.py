"""Grade aggregation — deterministic, side-effect free.

Every number shown in a grade table, dashboard or report comes from these
functions.  They take plain records and never mutate them.

Policy in brief:

- A chapter averages only its *active* fields; an unset value inside an
  active field counts as zero.
- A chapter with no active field has no average and is left out of the
  final grade entirely.
- Mid-term (``kts``) and end-of-term (``sas``) always count, zero if unset.
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Iterable, Mapping

from errors import InvalidScoreError
from models.grades import (
    ALL_CHAPTERS,
    ALL_FIELDS,
    ChapterGrades,
    ChapterKey,
    FieldKey,
    GradeType,
    SemesterData,
    SemesterKey,
)
from models.school import AssessmentSession, ChapterVisibility, Student

MIN_SCORE = 0.0
MAX_SCORE = 100.0
PASSING_SCORE = 70.0


class ScoreStatus(str, Enum):
    NONE = "none"
    OUTSTANDING = "outstanding"  # exactly zero: assignment never completed
    REMEDIAL = "remedial"  # completed but below the passing score


# ---------------------------------------------------------------------------
# Numeric helpers
# ---------------------------------------------------------------------------

def round_score(value: float) -> float:
    """Round half away from zero to one decimal place.

    Goes through the shortest decimal repr so 0.25 rounds to 0.3 rather
    than being bitten by its binary expansion.
    """
    quantized = Decimal(repr(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return float(quantized)


def clamp_score(raw: float | int | str | None) -> float | None:
    """Normalise a user-entered score before it is stored.

    Empty input means "not yet assessed" and stays ``None``; it is never
    turned into zero.  Numbers are clamped into [0, 100].
    """
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise InvalidScoreError(raw)
    if isinstance(raw, str):
        text = raw.strip().replace(",", ".")
        if not text:
            return None
        try:
            value = float(text)
        except ValueError:
            raise InvalidScoreError(raw) from None
    else:
        value = float(raw)
    if math.isnan(value):
        raise InvalidScoreError(raw)
    return min(MAX_SCORE, max(MIN_SCORE, value))


def classify_score(score: float | None) -> ScoreStatus:
    """Zero is outstanding work, (0, 70) needs remediation, the rest is fine."""
    if score is None:
        return ScoreStatus.NONE
    if score == 0:
        return ScoreStatus.OUTSTANDING
    if 0 < score < PASSING_SCORE:
        return ScoreStatus.REMEDIAL
    return ScoreStatus.NONE


# ---------------------------------------------------------------------------
# Active-field resolution
# ---------------------------------------------------------------------------

def resolve_active_fields(
    cohort: Iterable[Student],
    semester: SemesterKey,
    chapter: ChapterKey,
    subject: str,
    default_subject: str,
) -> set[FieldKey]:
    """Fields for which at least one student in the cohort has a recorded value."""
    records = [
        s.semester_data(subject, semester, default_subject).chapter(chapter)
        for s in cohort
    ]
    return {
        field for field in ALL_FIELDS
        if any(r.get(field) is not None for r in records)
    }


def resolve_active_fields_from_history(
    history: Iterable[AssessmentSession],
    class_name: str,
    semester: SemesterKey,
    subject: str,
    chapter: ChapterKey,
    default_subject: str,
) -> set[FieldKey]:
    """Fields a session was ever opened for, regardless of recorded values."""
    return {
        h.formative_key
        for h in history
        if h.type is GradeType.CHAPTER
        and h.chapter_key is chapter
        and h.matches(class_name, semester, subject, default_subject)
    }


def active_fields_by_chapter(
    cohort: Iterable[Student],
    semester: SemesterKey,
    subject: str,
    default_subject: str,
) -> dict[ChapterKey, set[FieldKey]]:
    cohort = list(cohort)
    return {
        chapter: resolve_active_fields(cohort, semester, chapter, subject, default_subject)
        for chapter in ALL_CHAPTERS
    }


def active_fields_by_chapter_from_history(
    history: Iterable[AssessmentSession],
    class_name: str,
    semester: SemesterKey,
    subject: str,
    default_subject: str,
) -> dict[ChapterKey, set[FieldKey]]:
    history = list(history)
    return {
        chapter: resolve_active_fields_from_history(
            history, class_name, semester, subject, chapter, default_subject
        )
        for chapter in ALL_CHAPTERS
    }


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

def chapter_average(grades: ChapterGrades, active_fields: Iterable[FieldKey]) -> float | None:
    """Mean over the active fields; ``None`` when nothing is active.

    The divisor is the number of active fields, so a skipped assessment
    costs a zero instead of shrinking the denominator.
    """
    fields = set(active_fields)
    if not fields:
        return None
    total = sum(grades.get(f) or 0.0 for f in fields)
    return round_score(total / len(fields))


def final_grade(
    semester_data: SemesterData,
    active_fields: Mapping[ChapterKey, Iterable[FieldKey]],
    visibility: ChapterVisibility | None = None,
) -> float | None:
    """Average of visible, assessed chapters plus the two mandatory exams."""
    chapters = visibility.visible_chapters() if visibility is not None else list(ALL_CHAPTERS)

    total = 0.0
    count = 0
    for chapter in chapters:
        avg = chapter_average(semester_data.chapter(chapter), active_fields.get(chapter, ()))
        if avg is not None:
            total += avg
            count += 1

    total += semester_data.kts or 0.0
    count += 1
    total += semester_data.sas or 0.0
    count += 1

    if count == 0:
        return None
    return round_score(total / count)


def format_number(value: float | None) -> str:
    """Blank for unset, integers without a trailing ``.0``."""
    if value is None:
        return ""
    if float(value).is_integer():
        return str(int(value))
    return str(value)
