"""Tests for services/grade_engine.py — score policy and aggregation."""

import pytest

from errors import InvalidScoreError
from models.grades import (
    ChapterGrades,
    ChapterKey,
    FieldKey,
    GradeType,
    SemesterData,
    SemesterKey,
)
from models.school import ChapterVisibility
from services.grade_engine import (
    ScoreStatus,
    active_fields_by_chapter,
    chapter_average,
    clamp_score,
    classify_score,
    final_grade,
    format_number,
    resolve_active_fields,
    resolve_active_fields_from_history,
    round_score,
)
from tests.factories import PAI, graded_state, session


# ── Numeric helpers ──────────────────────────────────────────


@pytest.mark.parametrize(
    "value, expected",
    [(0.25, 0.3), (0.35, 0.4), (53.333, 53.3), (10.85, 10.9), (85.0, 85.0), (70.05, 70.1)],
)
def test_round_score_half_up(value, expected):
    assert round_score(value) == expected


def test_clamp_keeps_empty_as_none():
    assert clamp_score(None) is None
    assert clamp_score("") is None
    assert clamp_score("   ") is None


def test_clamp_bounds():
    assert clamp_score(150) == 100.0
    assert clamp_score(-5) == 0.0
    assert clamp_score("87,5") == 87.5
    assert clamp_score(0) == 0.0


@pytest.mark.parametrize("raw", ["abc", "nan", True])
def test_clamp_rejects_non_numbers(raw):
    with pytest.raises(InvalidScoreError):
        clamp_score(raw)


@pytest.mark.parametrize(
    "score, status",
    [
        (None, ScoreStatus.NONE),
        (0, ScoreStatus.OUTSTANDING),
        (0.5, ScoreStatus.REMEDIAL),
        (69, ScoreStatus.REMEDIAL),
        (69.9, ScoreStatus.REMEDIAL),
        (70, ScoreStatus.NONE),
        (100, ScoreStatus.NONE),
    ],
)
def test_classify_score_boundaries(score, status):
    assert classify_score(score) is status


def test_format_number():
    assert format_number(None) == ""
    assert format_number(80.0) == "80"
    assert format_number(32.5) == "32.5"


# ── Active fields ────────────────────────────────────────────


def test_active_fields_from_recorded_values():
    state = graded_state()
    cohort = state.class_students("7A")
    active = resolve_active_fields(cohort, SemesterKey.ODD, ChapterKey.BAB1, PAI, PAI)
    assert active == {FieldKey.F1, FieldKey.F2}


def test_zero_counts_as_recorded():
    state = graded_state()
    # Aisyah's f1 is 0; alone she still activates f1
    aisyah = [state.find_student(2)]
    active = resolve_active_fields(aisyah, SemesterKey.ODD, ChapterKey.BAB1, PAI, PAI)
    assert FieldKey.F1 in active


def test_active_fields_empty_for_untouched_chapter():
    state = graded_state()
    by_chapter = active_fields_by_chapter(state.class_students("7A"), SemesterKey.ODD, PAI, PAI)
    assert by_chapter[ChapterKey.BAB2] == set()


def test_active_fields_from_history_ignores_other_classes_and_exams():
    history = [
        session("a", formative_key=FieldKey.F3),
        session("b", target_class="7B", formative_key=FieldKey.F4),
        session("c", type=GradeType.MID_TERM),
        session("d", subject="Matematika", formative_key=FieldKey.F5),
    ]
    active = resolve_active_fields_from_history(
        history, "7A", SemesterKey.ODD, PAI, ChapterKey.BAB1, PAI
    )
    assert active == {FieldKey.F3}


def test_history_without_subject_belongs_to_default():
    history = [session("legacy", subject=None, formative_key=FieldKey.SUM)]
    active = resolve_active_fields_from_history(
        history, "7A", SemesterKey.ODD, PAI, ChapterKey.BAB1, PAI
    )
    assert active == {FieldKey.SUM}


# ── Aggregation ──────────────────────────────────────────────


def test_chapter_average_unset_active_field_counts_as_zero():
    grades = ChapterGrades(f1=70)
    assert chapter_average(grades, {FieldKey.F1, FieldKey.F2}) == 35.0


def test_chapter_average_none_without_active_fields():
    assert chapter_average(ChapterGrades(f1=90), set()) is None


def test_final_grade_skips_inactive_chapters():
    data = SemesterData(bab1=ChapterGrades(f1=80, f2=90), kts=75)
    active = {ChapterKey.BAB1: {FieldKey.F1, FieldKey.F2}}
    # (85 + 75 + 0) / 3
    assert final_grade(data, active) == 53.3


def test_final_grade_exams_always_count():
    assert final_grade(SemesterData(), {}) == 0.0
    assert final_grade(SemesterData(kts=90, sas=80), {}) == 85.0


def test_final_grade_respects_visibility():
    data = SemesterData(
        bab1=ChapterGrades(f1=100),
        bab2=ChapterGrades(f1=40),
        kts=100,
        sas=100,
    )
    active = {ChapterKey.BAB1: {FieldKey.F1}, ChapterKey.BAB2: {FieldKey.F1}}
    hidden = ChapterVisibility(bab2=False)
    assert final_grade(data, active) == 85.0
    assert final_grade(data, active, hidden) == 100.0


def test_final_grade_does_not_mutate_input():
    data = SemesterData(bab1=ChapterGrades(f1=80))
    before = data.model_dump()
    final_grade(data, {ChapterKey.BAB1: {FieldKey.F1, FieldKey.F2}})
    assert data.model_dump() == before


def test_no_students_means_no_active_fields():
    for chapter in ChapterKey:
        assert resolve_active_fields([], SemesterKey.ODD, chapter, PAI, PAI) == set()


@pytest.mark.parametrize(
    "grades, expected",
    [
        (ChapterGrades(f1=80, f2=60), 70.0),
        (ChapterGrades(f1=80, f2=None), 40.0),
    ],
)
def test_chapter_average_over_two_active_fields(grades, expected):
    assert chapter_average(grades, {FieldKey.F1, FieldKey.F2}) == expected


@pytest.mark.parametrize(
    "visibility",
    [
        None,
        ChapterVisibility(bab1=False, bab2=False, bab3=False, bab4=False, bab5=False),
        ChapterVisibility(bab1=True, bab2=False, bab3=True, bab4=False, bab5=True),
    ],
)
def test_final_grade_of_empty_semester_is_zero(visibility):
    active = {chapter: set() for chapter in ChapterKey}
    assert final_grade(SemesterData(), active, visibility) == 0.0


@pytest.mark.parametrize(
    "scores",
    [
        {"f1": 0, "f2": 0, "f3": 0, "f4": 0, "f5": 0, "sum": 0},
        {"f1": 100, "f2": 100, "f3": 100, "f4": 100, "f5": 100, "sum": 100},
        {"f1": 33.3, "f2": 66.7, "f3": None, "f4": 99.95, "f5": 0.05, "sum": 12.345},
        {"f1": None, "f2": None, "f3": None, "f4": None, "f5": None, "sum": None},
        {"f1": 100, "f2": None, "f3": 0.04, "f4": None, "f5": 100, "sum": 0},
    ],
)
def test_chapter_average_stays_in_score_range(scores):
    grades = ChapterGrades(**scores)
    fields = list(FieldKey)
    for size in range(1, len(fields) + 1):
        average = chapter_average(grades, fields[:size])
        assert 0.0 <= average <= 100.0
    data = SemesterData(bab1=grades, kts=100, sas=0)
    assert 0.0 <= final_grade(data, {ChapterKey.BAB1: set(fields)}) <= 100.0


def test_chapter_average_rounds_decimal_half_up():
    grades = ChapterGrades(f1=70.1, f2=70.0)
    assert chapter_average(grades, {FieldKey.F1, FieldKey.F2}) == 70.1
