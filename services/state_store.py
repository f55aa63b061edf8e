"""Application state store — every change goes through :func:`reduce`.

An action is a small pydantic model describing one intent (``UpdateScore``,
``SaveSession`` …).  :func:`reduce` turns ``(state, action)`` into a new
:class:`AppState` without touching the old one, and :func:`remote_mutations`
lists the spreadsheet writes that change implies.  :class:`StateStore`
holds the current state and hands those writes to the sync service, so the
local view is updated first and the backend catches up in the background.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Annotated, Literal, Union

import httpx
from pydantic import BaseModel, Field, field_validator, model_validator

from adapters import sheet_adapter
from config.settings import get_settings
from errors import EntityNotFoundError
from models.grades import (
    ALL_CHAPTERS,
    EXAM_TARGETS,
    FieldKey,
    SemesterKey,
    empty_semester_data,
    empty_subject_grades,
)
from models.school import (
    DEFAULT_SUBJECT,
    AppSettings,
    AppState,
    AssessmentSession,
    ChapterVisibility,
    Student,
    Teacher,
)
from models.sync import RemoteMutation
from services.grade_engine import clamp_score
from services.mock_data import sample_state
from services.sheet_client import CircuitOpenError, SheetClient, SheetClientError

if TYPE_CHECKING:
    from services.sync_service import SyncService

logger = logging.getLogger(__name__)

_SCORE_TARGETS = tuple(c.value for c in ALL_CHAPTERS) + EXAM_TARGETS


# ── Actions ──────────────────────────────────────────────────


class LoadData(BaseModel):
    kind: Literal["load_data"] = "load_data"
    state: AppState


class UpdateScore(BaseModel):
    """Write one slot; ``target`` is a chapter key or ``kts``/``sas``."""

    kind: Literal["update_score"] = "update_score"
    student_id: int
    subject: str
    semester: SemesterKey
    target: str
    field: FieldKey | None = None
    value: float | str | None = None

    @field_validator("target")
    @classmethod
    def _known_target(cls, value: str) -> str:
        if value not in _SCORE_TARGETS:
            raise ValueError(f"unknown score target {value!r}")
        return value

    @model_validator(mode="after")
    def _field_matches_target(self) -> UpdateScore:
        if self.target in EXAM_TARGETS:
            self.field = None
        elif self.field is None:
            raise ValueError("chapter scores need a field")
        return self


class SaveSession(BaseModel):
    """Upsert by id; the session is stamped with ``subject``."""

    kind: Literal["save_session"] = "save_session"
    session: AssessmentSession
    subject: str


class DeleteSession(BaseModel):
    kind: Literal["delete_session"] = "delete_session"
    session_id: str


class ResetHistory(BaseModel):
    kind: Literal["reset_history"] = "reset_history"
    class_name: str
    semester: SemesterKey
    subject: str


class AddStudent(BaseModel):
    """The id is taken from the clock when the action is built."""

    kind: Literal["add_student"] = "add_student"
    id: int = Field(default_factory=lambda: int(time.time() * 1000))
    name: str
    class_name: str
    registration_no: str = ""
    gender: Literal["L", "P"] = "L"


class UpdateStudent(BaseModel):
    """Profile fields only; stored grades are kept."""

    kind: Literal["update_student"] = "update_student"
    student: Student


class DeleteStudent(BaseModel):
    kind: Literal["delete_student"] = "delete_student"
    student_id: int


class ImportStudents(BaseModel):
    kind: Literal["import_students"] = "import_students"
    students: list[Student]


class SaveChapterConfig(BaseModel):
    kind: Literal["save_chapter_config"] = "save_chapter_config"
    subject: str
    config: ChapterVisibility


class SaveSettings(BaseModel):
    kind: Literal["save_settings"] = "save_settings"
    settings: AppSettings


class ResetClassGrades(BaseModel):
    """Clear every subject's record for one class and semester.

    Not just the default subject: grades kept in ``gradesBySubject`` are
    emptied too, so no subject keeps scores from before the reset.
    """

    kind: Literal["reset_class_grades"] = "reset_class_grades"
    class_name: str
    semester: SemesterKey


class SaveTeacher(BaseModel):
    kind: Literal["save_teacher"] = "save_teacher"
    teacher: Teacher


class DeleteTeacher(BaseModel):
    kind: Literal["delete_teacher"] = "delete_teacher"
    teacher_id: int


Action = Annotated[
    Union[
        LoadData,
        UpdateScore,
        SaveSession,
        DeleteSession,
        ResetHistory,
        AddStudent,
        UpdateStudent,
        DeleteStudent,
        ImportStudents,
        SaveChapterConfig,
        SaveSettings,
        ResetClassGrades,
        SaveTeacher,
        DeleteTeacher,
    ],
    Field(discriminator="kind"),
]


# ── Reducer ──────────────────────────────────────────────────


def _replace_student(state: AppState, student: Student) -> AppState:
    students = [student if s.id == student.id else s for s in state.students]
    return state.model_copy(update={"students": students})


def _require_student(state: AppState, student_id: int) -> Student:
    student = state.find_student(student_id)
    if student is None:
        raise EntityNotFoundError("Student", student_id)
    return student


def _history_matches(
    session: AssessmentSession, action: ResetHistory, default_subject: str
) -> bool:
    return session.matches(action.class_name, action.semester, action.subject, default_subject)


def reduce(
    state: AppState, action: Action, default_subject: str = DEFAULT_SUBJECT
) -> AppState:
    """Apply ``action`` and return the next state; ``state`` is left untouched.

    Raises :class:`EntityNotFoundError` for updates and deletes of unknown
    records and :class:`InvalidScoreError` for unparsable scores.
    """
    if isinstance(action, LoadData):
        return action.state.model_copy(deep=True)

    if isinstance(action, UpdateScore):
        student = _require_student(state, action.student_id)
        value = clamp_score(action.value)
        current = student.semester_data(action.subject, action.semester, default_subject)
        updated = current.with_score(action.target, action.field, value)
        student = student.with_semester_data(
            action.subject, action.semester, updated, default_subject
        )
        return _replace_student(state, student)

    if isinstance(action, SaveSession):
        session = action.session.model_copy(update={"target_subject": action.subject})
        if state.find_session(session.id) is not None:
            history = [session if h.id == session.id else h for h in state.history]
        else:
            history = [*state.history, session]
        return state.model_copy(update={"history": history})

    if isinstance(action, DeleteSession):
        if state.find_session(action.session_id) is None:
            raise EntityNotFoundError("Session", action.session_id)
        history = [h for h in state.history if h.id != action.session_id]
        return state.model_copy(update={"history": history})

    if isinstance(action, ResetHistory):
        history = [
            h for h in state.history
            if not _history_matches(h, action, default_subject)
        ]
        return state.model_copy(update={"history": history})

    if isinstance(action, AddStudent):
        student = Student(
            id=action.id,
            no=len(state.students) + 1,
            nis=action.registration_no or str(action.id)[-4:],
            name=action.name,
            kelas=action.class_name,
            gender=action.gender,
            grades=empty_subject_grades(),
        )
        return state.model_copy(update={"students": [*state.students, student]})

    if isinstance(action, UpdateStudent):
        existing = _require_student(state, action.student.id)
        student = action.student.model_copy(
            update={
                "grades": existing.grades,
                "grades_by_subject": existing.grades_by_subject,
            }
        )
        return _replace_student(state, student)

    if isinstance(action, DeleteStudent):
        _require_student(state, action.student_id)
        students = [s for s in state.students if s.id != action.student_id]
        return state.model_copy(update={"students": students})

    if isinstance(action, ImportStudents):
        return state.model_copy(update={"students": [*state.students, *action.students]})

    if isinstance(action, SaveChapterConfig):
        configs = {**state.chapter_configs, action.subject: action.config}
        return state.model_copy(update={"chapter_configs": configs})

    if isinstance(action, SaveSettings):
        return state.model_copy(update={"settings": action.settings})

    if isinstance(action, ResetClassGrades):
        students = []
        for s in state.students:
            if s.class_name == action.class_name:
                subjects = [default_subject, *s.grades_by_subject]
                for subject in subjects:
                    s = s.with_semester_data(
                        subject, action.semester, empty_semester_data(), default_subject
                    )
            students.append(s)
        return state.model_copy(update={"students": students})

    if isinstance(action, SaveTeacher):
        teacher = action.teacher
        if any(t.id == teacher.id for t in state.teachers):
            teachers = [teacher if t.id == teacher.id else t for t in state.teachers]
        else:
            teachers = [*state.teachers, teacher]
        return state.model_copy(update={"teachers": teachers})

    if isinstance(action, DeleteTeacher):
        if not any(t.id == action.teacher_id for t in state.teachers):
            raise EntityNotFoundError("Teacher", action.teacher_id)
        teachers = [t for t in state.teachers if t.id != action.teacher_id]
        return state.model_copy(update={"teachers": teachers})

    raise TypeError(f"Unsupported action: {type(action).__name__}")


def remote_mutations(
    action: Action,
    previous: AppState,
    current: AppState,
    default_subject: str = DEFAULT_SUBJECT,
    batch_size: int = 20,
) -> list[RemoteMutation]:
    """Spreadsheet writes implied by ``action`` taking ``previous`` to ``current``."""
    if isinstance(action, UpdateScore):
        student = current.find_student(action.student_id)
        data = student.semester_data(action.subject, action.semester, default_subject)
        return [sheet_adapter.save_grade(student.id, action.subject, action.semester, data)]

    if isinstance(action, SaveSession):
        return [sheet_adapter.save_history(current.find_session(action.session.id))]

    if isinstance(action, DeleteSession):
        return [sheet_adapter.delete_history(action.session_id)]

    if isinstance(action, ResetHistory):
        return [
            sheet_adapter.delete_history(h.id)
            for h in previous.history
            if _history_matches(h, action, default_subject)
        ]

    if isinstance(action, AddStudent):
        return [sheet_adapter.add_student(current.find_student(action.id))]

    if isinstance(action, UpdateStudent):
        return [sheet_adapter.update_student(current.find_student(action.student.id))]

    if isinstance(action, DeleteStudent):
        return [sheet_adapter.delete_student(action.student_id)]

    if isinstance(action, ImportStudents):
        return sheet_adapter.import_students(action.students, batch_size)

    if isinstance(action, SaveChapterConfig):
        return [sheet_adapter.save_chapter_config(action.subject, action.config)]

    if isinstance(action, SaveSettings):
        return [sheet_adapter.save_settings(action.settings)]

    if isinstance(action, ResetClassGrades):
        return [sheet_adapter.reset_class_grades(action.class_name, action.semester)]

    if isinstance(action, SaveTeacher):
        return [sheet_adapter.save_teacher(action.teacher)]

    if isinstance(action, DeleteTeacher):
        return [sheet_adapter.delete_teacher(action.teacher_id)]

    return []


# ── Store ────────────────────────────────────────────────────


class StateStore:
    """Holds the current :class:`AppState` and forwards implied writes."""

    def __init__(
        self,
        sync: SyncService | None = None,
        default_subject: str = DEFAULT_SUBJECT,
        import_batch_size: int = 20,
    ) -> None:
        self._state = AppState()
        self._sync = sync
        self.default_subject = default_subject
        self.import_batch_size = import_batch_size
        self.loaded_from: str = "empty"

    @property
    def state(self) -> AppState:
        return self._state

    def dispatch(self, action: Action) -> AppState:
        """Reduce ``action`` into the current state and queue its remote writes."""
        previous = self._state
        current = reduce(previous, action, self.default_subject)
        self._state = current

        mutations = remote_mutations(
            action,
            previous,
            current,
            default_subject=self.default_subject,
            batch_size=self.import_batch_size,
        )
        if mutations and self._sync is not None:
            self._sync.submit(mutations)
        logger.debug("Dispatched %s (%d remote writes)", action.kind, len(mutations))
        return current

    async def load(self, client: SheetClient, use_mock: bool = False) -> str:
        """Replace the state with the backend's data, or the sample school.

        Returns where the data came from: ``"remote"`` or ``"sample"``.
        A failed fetch is not retried.
        """
        if use_mock:
            state, source = sample_state(), "sample"
        else:
            try:
                state, source = await sheet_adapter.fetch_state(client), "remote"
            except (SheetClientError, CircuitOpenError, httpx.HTTPError) as exc:
                logger.warning("Initial load failed, using sample data: %s", exc)
                state, source = sample_state(), "sample"

        self.dispatch(LoadData(state=state))
        self.loaded_from = source
        return source


# ── Module-level Singleton ───────────────────────────────────

_store: StateStore | None = None


def get_state_store() -> StateStore:
    """Get the singleton state store wired to the sync service."""
    global _store
    if _store is None:
        from services.sync_service import get_sync_service

        settings = get_settings()
        _store = StateStore(
            sync=get_sync_service(),
            default_subject=settings.default_subject,
            import_batch_size=settings.import_batch_size,
        )
    return _store
