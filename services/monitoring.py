"""Outstanding / remedial monitoring and teacher input progress."""

from __future__ import annotations

import math
from typing import Iterable

from models.grades import SemesterKey
from models.school import AppState, AssessmentSession, Student
from models.views import (
    MonitoringClass,
    MonitoringEntry,
    MonitoringKind,
    MonitoringReport,
    MonitoringSession,
    StudentTask,
    TeacherProgress,
)
from services.grade_engine import ScoreStatus, classify_score

_KIND_STATUS = {
    "outstanding": ScoreStatus.OUTSTANDING,
    "remedial": ScoreStatus.REMEDIAL,
}


def session_score(
    student: Student, session: AssessmentSession, default_subject: str
) -> float | None:
    """The student's score in the slot ``session`` opened."""
    data = student.semester_data(
        session.subject_or(default_subject), session.semester, default_subject
    )
    return data.score(session.target, session.formative_key)


def build_monitoring(
    state: AppState,
    kind: MonitoringKind,
    subject: str,
    semester: SemesterKey,
    default_subject: str,
    class_names: Iterable[str] | None = None,
) -> MonitoringReport:
    """Students whose score in a session's slot classifies as ``kind``.

    Grouped by class (alphabetical), then by session in history order.
    Sessions with no matching student and classes with no such session
    are left out.
    """
    wanted = _KIND_STATUS[kind]
    allowed = set(class_names) if class_names is not None else None
    grouped: dict[str, list[MonitoringSession]] = {}

    for session in state.history:
        if session.semester is not semester or session.subject_or(default_subject) != subject:
            continue
        if allowed is not None and session.target_class not in allowed:
            continue
        entries = []
        for student in state.class_students(session.target_class):
            score = session_score(student, session, default_subject)
            if classify_score(score) is wanted:
                entries.append(MonitoringEntry(
                    student_id=student.id,
                    nis=student.registration_no,
                    name=student.name,
                    score=score,
                ))
        if entries:
            grouped.setdefault(session.target_class, []).append(MonitoringSession(
                session_id=session.id,
                task_name=session.task_name(),
                date=session.date,
                description=session.description,
                entries=entries,
            ))

    return MonitoringReport(
        kind=kind,
        subject=subject,
        semester=semester,
        classes=[
            MonitoringClass(class_name=name, sessions=grouped[name])
            for name in sorted(grouped)
        ],
    )


def student_tasks(
    state: AppState,
    student: Student,
    semester: SemesterKey,
    kind: MonitoringKind,
    default_subject: str,
    teachers_by_subject: dict[str, str] | None = None,
) -> list[StudentTask]:
    """The student's own outstanding or remedial work across all subjects."""
    wanted = _KIND_STATUS[kind]
    teachers_by_subject = teachers_by_subject or {}
    tasks = []
    for session in state.history:
        if session.target_class != student.class_name or session.semester is not semester:
            continue
        score = session_score(student, session, default_subject)
        if classify_score(score) is not wanted:
            continue
        subject = session.subject_or(default_subject)
        tasks.append(StudentTask(
            subject=subject,
            teacher=teachers_by_subject.get(subject, "-"),
            task_name=session.task_name(),
            description=session.description,
            date=session.date,
            score=score,
        ))
    return tasks


def teacher_progress(
    state: AppState, semester: SemesterKey, default_subject: str
) -> list[TeacherProgress]:
    """One row per teaching assignment: how many of its classes have a session."""
    rows = []
    for teacher in state.teachers:
        sessions = [
            h for h in state.history
            if h.semester is semester
            and h.subject_or(default_subject) == teacher.subject
            and h.target_class in teacher.classes
        ]
        with_input = len({h.target_class for h in sessions})
        total = len(teacher.classes)
        # half up, so 1 of 8 classes reads 13%
        progress = math.floor(with_input / total * 100 + 0.5) if total else 0
        if progress == 100:
            status = "done"
        elif progress > 0:
            status = "in_progress"
        else:
            status = "not_started"
        rows.append(TeacherProgress(
            teacher_id=teacher.id,
            name=teacher.name,
            nip=teacher.nip or "-",
            subject=teacher.subject,
            session_count=len(sessions),
            classes_with_input=with_input,
            total_classes=total,
            progress=progress,
            status=status,
            # first recorded session, not the latest
            last_input=sessions[0].date if sessions else None,
        ))
    return rows
