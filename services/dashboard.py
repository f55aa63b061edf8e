"""Student dashboard: a student's own grades across subjects."""

from __future__ import annotations

from models.grades import ALL_FIELDS, SemesterKey, chapter_label
from models.school import AppState, AssessmentSession, Student
from models.views import (
    ChapterDetail,
    MonitoringKind,
    ScoreDetail,
    StudentTask,
    SubjectDetail,
    SubjectSummary,
)
from services.grade_engine import (
    active_fields_by_chapter_from_history,
    chapter_average,
    final_grade,
)
from services.monitoring import student_tasks

# Minimum final grade counted as complete ("tuntas")
COMPLETION_SCORE = 75.0


def teachers_by_subject(state: AppState, student: Student, default_subject: str) -> dict[str, str]:
    """Subject → name of the teacher who teaches it in the student's class."""
    mapping = {default_subject: state.settings.teacher_name}
    for t in state.teachers:
        if student.class_name in t.classes:
            mapping[t.subject] = t.name
    return mapping


def student_subjects(state: AppState, student: Student, default_subject: str) -> list[str]:
    """Taught in the class, already graded, or the default subject."""
    subjects = set(teachers_by_subject(state, student, default_subject))
    subjects.update(student.grades_by_subject)
    subjects.add(default_subject)
    return sorted(subjects)


def _opening_session(
    history: list[AssessmentSession], target: str, field
) -> AssessmentSession | None:
    return next((h for h in history if h.unlocks(target, field)), None)


def _detail(score, session: AssessmentSession | None, field=None) -> ScoreDetail:
    return ScoreDetail(
        field=field,
        score=score,
        session_date=session.date if session else None,
        description=session.description if session else None,
    )


def subject_detail(
    state: AppState,
    student: Student,
    subject: str,
    semester: SemesterKey,
    default_subject: str,
) -> SubjectDetail:
    """Per-chapter scores for one subject.

    Active fields come from the class's session history rather than from
    recorded values, so a slot that was opened counts even before anyone
    scored it.
    """
    data = student.semester_data(subject, semester, default_subject)
    active = active_fields_by_chapter_from_history(
        state.history, student.class_name, semester, subject, default_subject
    )
    visibility = state.visibility_for(subject)
    history = [
        h for h in state.history
        if h.matches(student.class_name, semester, subject, default_subject)
    ]

    chapters = []
    for chapter in visibility.visible_chapters():
        grades = data.chapter(chapter)
        fields = [f for f in ALL_FIELDS if f in active[chapter]]
        chapters.append(ChapterDetail(
            key=chapter,
            label=chapter_label(chapter, semester),
            active_fields=fields,
            scores=[
                _detail(grades.get(f), _opening_session(history, chapter.value, f), f)
                for f in fields
            ],
            average=chapter_average(grades, active[chapter]),
        ))

    return SubjectDetail(
        subject=subject,
        teacher=teachers_by_subject(state, student, default_subject).get(subject, "-"),
        semester=semester,
        chapters=chapters,
        kts=_detail(data.kts, _opening_session(history, "kts", None)),
        sas=_detail(data.sas, _opening_session(history, "sas", None)),
        final_grade=final_grade(data, active, visibility),
    )


def subject_summary(
    state: AppState, student: Student, semester: SemesterKey, default_subject: str
) -> list[SubjectSummary]:
    teachers = teachers_by_subject(state, student, default_subject)
    rows = []
    for subject in student_subjects(state, student, default_subject):
        detail = subject_detail(state, student, subject, semester, default_subject)
        grade = detail.final_grade
        rows.append(SubjectSummary(
            subject=subject,
            teacher=teachers.get(subject, "-"),
            final_grade=grade,
            completed=None if grade is None else grade >= COMPLETION_SCORE,
        ))
    return rows


def own_tasks(
    state: AppState,
    student: Student,
    semester: SemesterKey,
    kind: MonitoringKind,
    default_subject: str,
) -> list[StudentTask]:
    return student_tasks(
        state,
        student,
        semester,
        kind,
        default_subject,
        teachers_by_subject=teachers_by_subject(state, student, default_subject),
    )
