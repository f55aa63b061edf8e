"""Student roster import from Excel, and the blank template to fill in."""

from __future__ import annotations

import io
import logging
import time
import zipfile
from dataclasses import dataclass, field

import openpyxl
from openpyxl.styles import Font
from openpyxl.utils.exceptions import InvalidFileException

from errors import ImportFormatError
from models.grades import empty_subject_grades
from models.school import Student

logger = logging.getLogger(__name__)

TEMPLATE_HEADERS = ["NIS", "Nama", "Kelas", "Gender"]

# normalised header text → column role
HEADER_ALIASES = {
    "nis": "nis",
    "noinduk": "nis",
    "nomorinduk": "nis",
    "nama": "name",
    "name": "name",
    "namasiswa": "name",
    "kelas": "class",
    "class": "class",
    "gender": "gender",
    "jk": "gender",
    "jeniskelamin": "gender",
    "l/p": "gender",
}


@dataclass
class RosterImport:
    students: list[Student] = field(default_factory=list)
    skipped: int = 0


def _normalise_header(value) -> str:
    return "".join(str(value or "").lower().split())


def _cell_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def parse_roster(content: bytes, id_base: int | None = None) -> RosterImport:
    """Read students from the first sheet of an ``.xlsx`` workbook.

    The first row is the header.  Rows missing NIS, name or class are
    skipped and counted.  Ids are ``id_base + row index`` so one import
    never collides with itself.
    """
    try:
        wb = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as exc:
        raise ImportFormatError(f"Not a readable Excel workbook: {exc}") from exc

    try:
        if not wb.sheetnames:
            raise ImportFormatError("Workbook has no sheets")
        rows = list(wb[wb.sheetnames[0]].iter_rows(values_only=True))
    finally:
        wb.close()

    if not rows:
        raise ImportFormatError("First sheet is empty")

    columns: dict[str, int] = {}
    for index, header in enumerate(rows[0]):
        role = HEADER_ALIASES.get(_normalise_header(header))
        if role and role not in columns:
            columns[role] = index
    missing = {"nis", "name", "class"} - set(columns)
    if missing:
        raise ImportFormatError(
            f"Missing column(s): {', '.join(sorted(missing))}; expected {', '.join(TEMPLATE_HEADERS)}"
        )

    def cell(row, role: str) -> str:
        index = columns.get(role)
        if index is None or index >= len(row):
            return ""
        return _cell_text(row[index])

    base = id_base if id_base is not None else int(time.time() * 1000)
    result = RosterImport()
    for index, row in enumerate(rows[1:]):
        if row is None or all(v is None for v in row):
            continue
        nis, name, class_name = cell(row, "nis"), cell(row, "name"), cell(row, "class")
        if not (nis and name and class_name):
            result.skipped += 1
            continue
        result.students.append(Student(
            id=base + index,
            no=index + 1,
            nis=nis,
            name=name,
            kelas=class_name.upper(),
            gender=cell(row, "gender"),
            grades=empty_subject_grades(),
        ))

    logger.info("Roster parsed: %d students, %d skipped", len(result.students), result.skipped)
    return result


def build_template() -> bytes:
    """A one-sheet workbook with the expected headers and an example row."""
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Siswa"
    ws.append(TEMPLATE_HEADERS)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    ws.append(["1001", "Contoh Nama Siswa", "7A", "L"])
    for column, width in zip("ABCD", (12, 32, 10, 10)):
        ws.column_dimensions[column].width = width

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()
