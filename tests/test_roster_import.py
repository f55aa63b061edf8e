"""Tests for services/roster_import.py — Excel roster parsing."""

import io

import openpyxl
import pytest

from errors import ImportFormatError
from services.roster_import import TEMPLATE_HEADERS, build_template, parse_roster


def _workbook(*rows) -> bytes:
    wb = openpyxl.Workbook()
    ws = wb.active
    for row in rows:
        ws.append(list(row))
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def test_parse_valid_rows():
    content = _workbook(
        ["NIS", "Nama", "Kelas", "Gender"],
        [3001, "Rizky", "8b", "L"],
        ["3002", "Salsa", "8B", "P"],
    )
    result = parse_roster(content, id_base=1000)

    assert result.skipped == 0
    assert [s.id for s in result.students] == [1000, 1001]
    rizky, salsa = result.students
    assert rizky.registration_no == "3001"
    assert rizky.class_name == "8B"
    assert salsa.gender == "P"
    assert salsa.grades.ganjil.kts is None


def test_header_aliases_and_order():
    content = _workbook(
        ["Nama Siswa", "Jenis Kelamin", "No Induk", "Kelas"],
        ["Dewi", "P", "4001", "9A"],
    )
    (dewi,) = parse_roster(content, id_base=1).students
    assert dewi.name == "Dewi"
    assert dewi.registration_no == "4001"
    assert dewi.gender == "P"


def test_incomplete_rows_skipped_blank_rows_ignored():
    content = _workbook(
        ["NIS", "Nama", "Kelas"],
        ["5001", "Lengkap", "7A"],
        ["", "Tanpa NIS", "7A"],
        ["5003", None, "7A"],
        [None, None, None],
    )
    result = parse_roster(content, id_base=1)
    assert [s.name for s in result.students] == ["Lengkap"]
    assert result.skipped == 2


def test_missing_gender_defaults_to_l():
    content = _workbook(["NIS", "Nama", "Kelas"], ["6001", "Andi", "7A"])
    assert parse_roster(content, id_base=1).students[0].gender == "L"


def test_missing_required_column():
    content = _workbook(["NIS", "Nama"], ["7001", "Tono"])
    with pytest.raises(ImportFormatError, match="class"):
        parse_roster(content)


def test_not_a_workbook():
    with pytest.raises(ImportFormatError):
        parse_roster(b"definitely not xlsx")


def test_template_round_trips_headers():
    wb = openpyxl.load_workbook(io.BytesIO(build_template()))
    ws = wb.active
    assert [c.value for c in ws[1]] == TEMPLATE_HEADERS
    result = parse_roster(build_template(), id_base=1)
    assert result.students[0].name == "Contoh Nama Siswa"
