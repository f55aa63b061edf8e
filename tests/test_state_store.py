"""Tests for services/state_store.py — reducer, implied writes, store."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from pydantic import ValidationError

from errors import EntityNotFoundError, InvalidScoreError
from models.grades import FieldKey, GradeType, SemesterKey
from models.school import AppSettings, AppState, ChapterVisibility, Student, Teacher
from services.sheet_client import SheetClientError
from services.state_store import (
    AddStudent,
    DeleteSession,
    DeleteStudent,
    DeleteTeacher,
    ImportStudents,
    LoadData,
    ResetClassGrades,
    ResetHistory,
    SaveChapterConfig,
    SaveSession,
    SaveSettings,
    SaveTeacher,
    StateStore,
    UpdateScore,
    UpdateStudent,
    reduce,
    remote_mutations,
)
from tests.factories import PAI, session


def _score(student_id=1, target="bab1", field=FieldKey.F3, value=88, subject=PAI):
    return UpdateScore(
        student_id=student_id,
        subject=subject,
        semester=SemesterKey.ODD,
        target=target,
        field=field,
        value=value,
    )


# ── Reducer ──────────────────────────────────────────────────


class TestUpdateScore:
    def test_writes_slot_without_mutating_input(self, state):
        before = state.model_dump()
        after = reduce(state, _score())
        assert after.find_student(1).grades.ganjil.bab1.f3 == 88
        assert state.model_dump() == before

    def test_clamps_out_of_range(self, state):
        after = reduce(state, _score(value=140))
        assert after.find_student(1).grades.ganjil.bab1.f3 == 100

    def test_empty_clears_slot(self, state):
        after = reduce(state, _score(field=FieldKey.F1, value=""))
        assert after.find_student(1).grades.ganjil.bab1.f1 is None

    def test_other_subject_initialises_record(self, state):
        after = reduce(state, _score(subject="Matematika", target="sas", field=None, value=66))
        student = after.find_student(1)
        assert student.grades_by_subject["Matematika"].ganjil.sas == 66
        assert student.grades.ganjil.sas is None

    def test_unknown_student(self, state):
        with pytest.raises(EntityNotFoundError):
            reduce(state, _score(student_id=999))

    def test_garbage_value(self, state):
        with pytest.raises(InvalidScoreError):
            reduce(state, _score(value="abc"))

    def test_action_validates_target(self):
        with pytest.raises(ValidationError):
            _score(target="bab9")
        with pytest.raises(ValidationError):
            _score(target="bab1", field=None)
        assert _score(target="kts", field=FieldKey.F1).field is None


class TestSessions:
    def test_save_appends_and_stamps_subject(self, state):
        new = session("s9", subject=None, formative_key=FieldKey.F4)
        after = reduce(state, SaveSession(session=new, subject="Matematika"))
        assert after.find_session("s9").target_subject == "Matematika"
        assert len(after.history) == len(state.history) + 1

    def test_save_existing_id_replaces(self, state):
        edited = session("s1", formative_key=FieldKey.F5, description="revisi")
        after = reduce(state, SaveSession(session=edited, subject=PAI))
        assert len(after.history) == len(state.history)
        assert after.find_session("s1").formative_key is FieldKey.F5

    def test_delete_keeps_scores(self, state):
        after = reduce(state, DeleteSession(session_id="s1"))
        assert after.find_session("s1") is None
        assert after.find_student(1).grades.ganjil.bab1.f1 == 80

    def test_delete_unknown(self, state):
        with pytest.raises(EntityNotFoundError):
            reduce(state, DeleteSession(session_id="nope"))

    def test_reset_history_scoped(self, state):
        extra = [
            session("other-class", target_class="7B"),
            session("other-subject", subject="Matematika"),
            session("other-semester", semester=SemesterKey.EVEN),
        ]
        state = state.model_copy(update={"history": [*state.history, *extra]})
        action = ResetHistory(class_name="7A", semester=SemesterKey.ODD, subject=PAI)
        after = reduce(state, action)
        assert [h.id for h in after.history] == ["other-class", "other-subject", "other-semester"]

        writes = remote_mutations(action, state, after)
        assert [w.payload["id"] for w in writes] == ["s1", "s2", "s3"]
        assert {w.action for w in writes} == {"deleteHistory"}


class TestStudents:
    def test_add_student_defaults(self, state):
        after = reduce(state, AddStudent(id=1700000012345, name="Baru", class_name="7C"))
        student = after.find_student(1700000012345)
        assert student.no == len(state.students) + 1
        assert student.registration_no == "2345"
        assert student.grades.ganjil.kts is None

    def test_update_keeps_grades(self, state):
        profile = Student(id=1, nis="9999", name="Ahmad F.", kelas="7A")
        after = reduce(state, UpdateStudent(student=profile))
        student = after.find_student(1)
        assert student.name == "Ahmad F."
        assert student.grades.ganjil.bab1.f1 == 80

    def test_delete_and_missing(self, state):
        after = reduce(state, DeleteStudent(student_id=1))
        assert after.find_student(1) is None
        with pytest.raises(EntityNotFoundError):
            reduce(after, DeleteStudent(student_id=1))

    def test_import_appends(self, state):
        imported = [Student(id=500 + i, name=f"S{i}", kelas="9A") for i in range(3)]
        after = reduce(state, ImportStudents(students=imported))
        assert len(after.students) == len(state.students) + 3


def test_reset_class_grades_all_subjects(state):
    state = reduce(state, _score(subject="Matematika", target="kts", field=None, value=50))
    state = reduce(state, _score(student_id=6, target="kts", field=None, value=90))
    after = reduce(state, ResetClassGrades(class_name="7A", semester=SemesterKey.ODD))

    ahmad = after.find_student(1)
    assert ahmad.grades.ganjil.bab1.f1 is None
    assert ahmad.grades_by_subject["Matematika"].ganjil.kts is None
    # other class untouched
    assert after.find_student(6).grades.ganjil.kts == 90


def test_settings_config_and_teachers(state):
    after = reduce(state, SaveSettings(settings=AppSettings(academic_year="2030/2031")))
    assert after.settings.academic_year == "2030/2031"

    after = reduce(after, SaveChapterConfig(subject=PAI, config=ChapterVisibility(bab3=False)))
    assert after.visibility_for(PAI).bab3 is False

    teacher = Teacher(id=9, name="Bu Rina", subject="Fiqih", classes=["7A"])
    after = reduce(after, SaveTeacher(teacher=teacher))
    assert after.teachers[-1].name == "Bu Rina"
    after = reduce(after, SaveTeacher(teacher=teacher.model_copy(update={"classes": ["7B"]})))
    assert [t.classes for t in after.teachers if t.id == 9] == [["7B"]]

    after = reduce(after, DeleteTeacher(teacher_id=9))
    assert all(t.id != 9 for t in after.teachers)
    with pytest.raises(EntityNotFoundError):
        reduce(after, DeleteTeacher(teacher_id=9))


def test_load_data_replaces_everything(state):
    after = reduce(state, LoadData(state=AppState()))
    assert after.students == []


# ── Implied writes ───────────────────────────────────────────


def test_update_score_sends_whole_semester(state):
    action = _score()
    after = reduce(state, action)
    (write,) = remote_mutations(action, state, after)
    assert write.action == "saveGrade"
    assert write.payload["gradeData"]["bab1"]["f1"] == 80
    assert write.payload["gradeData"]["bab1"]["f3"] == 88


def test_save_session_write_carries_subject(state):
    action = SaveSession(session=session("s9", type=GradeType.END_OF_TERM), subject=PAI)
    after = reduce(state, action)
    (write,) = remote_mutations(action, state, after)
    assert write.payload["session"]["targetSubject"] == PAI


def test_import_write_is_batched(state):
    imported = [Student(id=500 + i, name=f"S{i}", kelas="9A") for i in range(25)]
    action = ImportStudents(students=imported)
    writes = remote_mutations(action, state, reduce(state, action), batch_size=10)
    assert len(writes) == 3


def test_load_data_sends_nothing(state):
    action = LoadData(state=state)
    assert remote_mutations(action, state, state) == []


# ── Store ────────────────────────────────────────────────────


def test_dispatch_submits_writes(state):
    sync = MagicMock()
    store = StateStore(sync=sync)
    store.dispatch(LoadData(state=state))
    sync.submit.assert_not_called()

    store.dispatch(_score())
    sync.submit.assert_called_once()
    (mutations,) = sync.submit.call_args.args
    assert mutations[0].action == "saveGrade"
    assert store.state.find_student(1).grades.ganjil.bab1.f3 == 88


def test_failed_dispatch_leaves_state(state):
    store = StateStore(sync=MagicMock())
    store.dispatch(LoadData(state=state))
    with pytest.raises(EntityNotFoundError):
        store.dispatch(DeleteStudent(student_id=999))
    assert len(store.state.students) == len(state.students)


@pytest.mark.asyncio
async def test_load_remote():
    store = StateStore()
    client = MagicMock()
    client.fetch_initial_data = AsyncMock(return_value={"students": [{"id": 1, "name": "A", "kelas": "7A"}]})
    assert await store.load(client) == "remote"
    assert store.loaded_from == "remote"
    assert len(store.state.students) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [SheetClientError(500, "boom"), httpx.ConnectError("refused")],
)
async def test_load_falls_back_to_sample(error):
    store = StateStore()
    client = MagicMock()
    client.fetch_initial_data = AsyncMock(side_effect=error)
    assert await store.load(client) == "sample"
    assert len(store.state.students) == 10
    client.fetch_initial_data.assert_awaited_once()


@pytest.mark.asyncio
async def test_load_mock_skips_remote():
    store = StateStore()
    client = MagicMock()
    client.fetch_initial_data = AsyncMock()
    assert await store.load(client, use_mock=True) == "sample"
    client.fetch_initial_data.assert_not_called()
