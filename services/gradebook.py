"""Class grade table and the slot rules around score entry.

A teacher opens an assessment session for a slot (chapter + field, or an
exam) before any score can be typed into it.  Everything here reads the
current :class:`AppState`; nothing writes to it.
"""

from __future__ import annotations

import logging

from errors import SlotAlreadyOpenError, SlotLockedError
from models.grades import (
    ALL_FIELDS,
    ChapterKey,
    FieldKey,
    GradeType,
    SemesterKey,
    chapter_label,
)
from models.school import AppState, AssessmentSession
from models.viewer import AdminViewer, StudentViewer, TeacherViewer
from models.views import (
    ChapterCell,
    ChapterColumn,
    GradeRow,
    GradeTable,
    Signature,
)
from services.grade_engine import (
    active_fields_by_chapter,
    chapter_average,
    final_grade,
)

logger = logging.getLogger(__name__)

UNSIGNED = "........................."


def _ordered(fields) -> list[FieldKey]:
    return [f for f in ALL_FIELDS if f in set(fields)]


# ---------------------------------------------------------------------------
# Context: which subjects and classes a viewer works with
# ---------------------------------------------------------------------------

def available_subjects(viewer, state: AppState, default_subject: str) -> list[str]:
    if isinstance(viewer, TeacherViewer):
        return viewer.subjects
    if isinstance(viewer, AdminViewer):
        return sorted({default_subject, *(t.subject for t in state.teachers)})
    return [default_subject]


def available_classes(viewer, state: AppState, subject: str) -> list[str]:
    if isinstance(viewer, TeacherViewer):
        return viewer.classes_for(subject)
    if isinstance(viewer, StudentViewer):
        return [viewer.class_name]
    return state.class_names()


def teacher_signature(
    state: AppState,
    subject: str,
    class_name: str | None,
    default_subject: str,
    teacher_name: str | None = None,
) -> Signature:
    """Who signs a report for ``subject``.

    The teacher assigned to the subject (and class, when given) wins; the
    default subject falls back to the teacher named in settings; anything
    else gets blank dotted lines.
    """
    for t in state.teachers:
        if t.subject != subject:
            continue
        if teacher_name is not None and t.name != teacher_name:
            continue
        if class_name is not None and class_name not in t.classes:
            continue
        return Signature(name=t.name, nip=t.nip or UNSIGNED)
    if subject == default_subject:
        return Signature(name=state.settings.teacher_name, nip=state.settings.teacher_nip)
    return Signature(name=UNSIGNED, nip=UNSIGNED)


def principal_signature(state: AppState) -> Signature:
    return Signature(
        name=state.settings.principal_name or UNSIGNED,
        nip=state.settings.principal_nip or UNSIGNED,
    )


# ---------------------------------------------------------------------------
# Sessions and slot locks
# ---------------------------------------------------------------------------

def class_history(
    state: AppState,
    class_name: str,
    semester: SemesterKey,
    subject: str,
    default_subject: str,
) -> list[AssessmentSession]:
    return [
        h for h in state.history
        if h.matches(class_name, semester, subject, default_subject)
    ]


def is_slot_unlocked(
    history: list[AssessmentSession], target: str, field: FieldKey | None
) -> bool:
    return any(h.unlocks(target, field) for h in history)


def ensure_slot_unlocked(
    state: AppState,
    class_name: str,
    semester: SemesterKey,
    subject: str,
    target: str,
    field: FieldKey | None,
    default_subject: str,
) -> None:
    history = class_history(state, class_name, semester, subject, default_subject)
    if not is_slot_unlocked(history, target, field):
        slot = f"{target}.{field.value}" if field is not None else target
        raise SlotLockedError(slot)


def available_fields(
    state: AppState,
    class_name: str,
    semester: SemesterKey,
    subject: str,
    chapter: ChapterKey,
    default_subject: str,
    editing_session_id: str | None = None,
) -> list[FieldKey]:
    """Fields of ``chapter`` that no session has claimed yet.

    The session being edited does not count against its own field.
    """
    used = {
        h.formative_key
        for h in class_history(state, class_name, semester, subject, default_subject)
        if h.type is GradeType.CHAPTER
        and h.chapter_key is chapter
        and h.id != editing_session_id
    }
    return [f for f in ALL_FIELDS if f not in used]


def ensure_slot_available(
    state: AppState, session: AssessmentSession, subject: str, default_subject: str
) -> None:
    """One chapter session per field; exam sessions are not limited."""
    if session.type is not GradeType.CHAPTER:
        return
    free = available_fields(
        state,
        session.target_class,
        session.semester,
        subject,
        session.chapter_key,
        default_subject,
        editing_session_id=session.id,
    )
    if session.formative_key not in free:
        raise SlotAlreadyOpenError(f"{session.chapter_key.value}.{session.formative_key.value}")


# ---------------------------------------------------------------------------
# Grade table
# ---------------------------------------------------------------------------

def build_grade_table(
    state: AppState,
    subject: str,
    class_name: str,
    semester: SemesterKey,
    default_subject: str,
    editable: bool = False,
    search: str | None = None,
) -> GradeTable:
    """Rows for every student in the class with averages and the final grade.

    Active fields come from the recorded values of the whole class; a
    chapter nobody has a value for yet displays all six columns but has no
    average.  Unlocked slots are only reported when ``editable``.
    """
    cohort = state.class_students(class_name)
    active = active_fields_by_chapter(cohort, semester, subject, default_subject)
    visibility = state.visibility_for(subject)
    history = class_history(state, class_name, semester, subject, default_subject)

    columns = []
    for chapter in visibility.visible_chapters():
        active_fields = _ordered(active[chapter])
        unlocked = (
            [f for f in ALL_FIELDS if is_slot_unlocked(history, chapter.value, f)]
            if editable else []
        )
        columns.append(ChapterColumn(
            key=chapter,
            label=chapter_label(chapter, semester),
            active_fields=active_fields,
            display_fields=active_fields or list(ALL_FIELDS),
            unlocked_fields=unlocked,
        ))

    needle = (search or "").strip().lower()
    rows = []
    for student in cohort:
        if needle and needle not in student.name.lower():
            continue
        data = student.semester_data(subject, semester, default_subject)
        cells = {}
        for column in columns:
            grades = data.chapter(column.key)
            cells[column.key] = ChapterCell(
                scores={f: grades.get(f) for f in ALL_FIELDS},
                average=chapter_average(grades, active[column.key]),
            )
        rows.append(GradeRow(
            student_id=student.id,
            no=student.no,
            nis=student.registration_no,
            name=student.name,
            gender=student.gender,
            chapters=cells,
            kts=data.kts,
            sas=data.sas,
            final_grade=final_grade(data, active, visibility),
        ))

    return GradeTable(
        subject=subject,
        class_name=class_name,
        semester=semester,
        academic_year=state.settings.academic_year,
        editable=editable,
        chapters=columns,
        kts_unlocked=editable and is_slot_unlocked(history, "kts", None),
        sas_unlocked=editable and is_slot_unlocked(history, "sas", None),
        rows=rows,
        signature=teacher_signature(state, subject, class_name, default_subject),
    )
