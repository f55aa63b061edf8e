"""Adapter for the spreadsheet script API ↔ internal AppState.

Read side:
- GET ?action=getInitialData → :class:`AppState`

Write side: one builder per POST action, each returning a
:class:`RemoteMutation` whose body matches what the script expects.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, TypeVar

from pydantic import BaseModel, ValidationError

from models.grades import SemesterData, SemesterKey
from models.school import (
    AppSettings,
    AppState,
    AssessmentSession,
    ChapterVisibility,
    Student,
    Teacher,
)
from models.sync import RemoteMutation
from services.sheet_client import SheetClient

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


# ---------------------------------------------------------------------------
# Response → Internal Model conversions
# ---------------------------------------------------------------------------

def _parse_records(items: Any, model: type[M], label: str) -> list[M]:
    """Validate a list of rows, skipping (and logging) the malformed ones."""
    if not isinstance(items, list):
        if items is not None:
            logger.warning("%s: expected list, got %s", label, type(items).__name__)
        return []
    parsed: list[M] = []
    for raw in items:
        try:
            parsed.append(model.model_validate(raw))
        except ValidationError as exc:
            logger.warning("Skipping malformed %s row: %s", label, exc.errors()[:1])
    return parsed


def _parse_settings(raw: Any) -> AppSettings:
    if not isinstance(raw, dict) or not raw:
        return AppSettings()
    try:
        return AppSettings.model_validate(raw)
    except ValidationError as exc:
        logger.warning("Settings payload invalid, using defaults: %s", exc.errors()[:1])
        return AppSettings()


def _parse_chapter_configs(raw: Any) -> dict[str, ChapterVisibility]:
    if not isinstance(raw, dict):
        return {}
    configs: dict[str, ChapterVisibility] = {}
    for subject, flags in raw.items():
        try:
            configs[subject] = ChapterVisibility.model_validate(flags)
        except ValidationError:
            logger.warning("Ignoring chapter config for %r", subject)
    return configs


def parse_initial_data(raw: Any) -> AppState:
    """Convert the ``getInitialData`` payload into :class:`AppState`."""
    data = _unwrap_data(raw)
    if not isinstance(data, dict):
        logger.warning("parse_initial_data: expected dict, got %s", type(data).__name__)
        return AppState()

    state = AppState(
        students=_parse_records(data.get("students"), Student, "student"),
        teachers=_parse_records(data.get("teachers"), Teacher, "teacher"),
        history=_parse_records(data.get("history"), AssessmentSession, "history"),
        settings=_parse_settings(data.get("settings")),
        chapter_configs=_parse_chapter_configs(data.get("chapterConfigs")),
    )
    logger.info(
        "Loaded %d students, %d teachers, %d sessions",
        len(state.students), len(state.teachers), len(state.history),
    )
    return state


# ---------------------------------------------------------------------------
# High-level API calls
# ---------------------------------------------------------------------------

async def fetch_state(client: SheetClient) -> AppState:
    """Fetch and parse everything the script holds.

    GET ?action=getInitialData
    """
    data = await client.fetch_initial_data()
    return parse_initial_data(data)


# ---------------------------------------------------------------------------
# Internal Model → mutation payloads
# ---------------------------------------------------------------------------

def save_grade(
    student_id: int, subject: str, semester: SemesterKey, data: SemesterData
) -> RemoteMutation:
    # the sheet matches rows on the textual id
    return RemoteMutation(
        action="saveGrade",
        payload={
            "studentId": str(student_id),
            "subject": subject,
            "semester": semester.value,
            "gradeData": data.to_wire(),
        },
    )


def save_history(session: AssessmentSession) -> RemoteMutation:
    return RemoteMutation(action="saveHistory", payload={"session": session.to_wire()})


def delete_history(session_id: str) -> RemoteMutation:
    return RemoteMutation(action="deleteHistory", payload={"id": session_id})


def add_student(student: Student) -> RemoteMutation:
    return RemoteMutation(action="addStudent", payload={"student": student.profile()})


def update_student(student: Student) -> RemoteMutation:
    return RemoteMutation(action="updateStudent", payload={"student": student.profile()})


def delete_student(student_id: int) -> RemoteMutation:
    return RemoteMutation(action="deleteStudent", payload={"id": student_id})


def import_students(students: Iterable[Student], batch_size: int) -> list[RemoteMutation]:
    """Split an import into batches the script can digest in one call."""
    profiles = [s.profile() for s in students]
    size = max(1, batch_size)
    return [
        RemoteMutation(action="importStudents", payload={"students": profiles[i:i + size]})
        for i in range(0, len(profiles), size)
    ]


def save_chapter_config(subject: str, config: ChapterVisibility) -> RemoteMutation:
    return RemoteMutation(
        action="saveChapterConfig",
        payload={"subject": subject, "config": config.to_wire()},
    )


def save_settings(settings: AppSettings) -> RemoteMutation:
    return RemoteMutation(action="saveSettings", payload={"settings": settings.to_wire()})


def reset_class_grades(class_name: str, semester: SemesterKey) -> RemoteMutation:
    return RemoteMutation(
        action="resetClassGrades",
        payload={"className": class_name, "semester": semester.value},
    )


def save_teacher(teacher: Teacher) -> RemoteMutation:
    return RemoteMutation(action="saveTeacher", payload={"teacher": teacher.to_wire()})


def delete_teacher(teacher_id: int) -> RemoteMutation:
    return RemoteMutation(action="deleteTeacher", payload={"id": teacher_id})


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _unwrap_data(response: Any) -> Any:
    """Extract ``data`` from the script's ``{data: ...}`` wrapper."""
    if isinstance(response, dict) and "data" in response:
        return response["data"]
    return response
