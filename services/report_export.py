"""Grade and monitoring reports: CSV and HTML → PDF.

PDFs are rendered from HTML with WeasyPrint, imported on first use so the
rest of the service starts without its native libraries loaded.
"""

from __future__ import annotations

import datetime as dt
import logging
import re
from html import escape

from models.grades import ALL_FIELDS, FieldKey
from models.views import GradeTable, MonitoringReport, Signature
from services.grade_engine import format_number

logger = logging.getLogger(__name__)

_MONTHS_ID = [
    "Januari", "Februari", "Maret", "April", "Mei", "Juni",
    "Juli", "Agustus", "September", "Oktober", "November", "Desember",
]

_MONITORING_TITLES = {
    "outstanding": "Tanggungan",
    "remedial": "Remidi",
}


def format_date_id(day: dt.date) -> str:
    """``19 Oktober 2026``."""
    return f"{day.day} {_MONTHS_ID[day.month - 1]} {day.year}"


def report_filename(prefix: str, *parts: str, ext: str) -> str:
    safe = [re.sub(r"[^\w.-]+", "_", p).strip("_") for p in (prefix, *parts)]
    return "_".join(p for p in safe if p) + f".{ext}"


# ── CSV ──────────────────────────────────────────────────────────


def _field_header(field: FieldKey) -> str:
    return "Sum" if field is FieldKey.SUM else field.value.upper()


def _quote(text: str) -> str:
    return '"' + text.replace('"', '""') + '"'


def grade_report_csv(table: GradeTable) -> str:
    """Flattened header: every visible chapter gets F1..F5, Sum and Rerata."""
    header = ["No", "NIS", "Nama"]
    for column in table.chapters:
        header.extend(f"{column.label} {_field_header(f)}" for f in ALL_FIELDS)
        header.append(f"{column.label} Rerata")
    header.extend(["KTS", "SAS", "Nilai Akhir"])

    lines = [",".join(header)]
    for index, row in enumerate(table.rows, start=1):
        values = [str(index), row.nis, _quote(row.name)]
        for column in table.chapters:
            cell = row.chapters[column.key]
            values.extend(format_number(cell.scores.get(f)) for f in ALL_FIELDS)
            values.append(format_number(cell.average))
        values.extend([
            format_number(row.kts),
            format_number(row.sas),
            format_number(row.final_grade),
        ])
        lines.append(",".join(values))
    return "\n".join(lines)


# ── HTML ─────────────────────────────────────────────────────────

REPORT_CSS = """
    @page { size: A4 landscape; margin: 1.2cm; }
    body { font-family: 'Helvetica', 'Arial', sans-serif; font-size: 8pt; }
    h1 { text-align: center; font-size: 14pt; margin: 0 0 8px 0; }
    .meta td { border: none; padding: 1px 6px 1px 0; text-align: left; font-size: 9pt; }
    table.grades { border-collapse: collapse; width: 100%; margin: 8px 0; }
    table.grades th, table.grades td { border: 1px solid #999; padding: 3px; text-align: center; }
    table.grades th { background: #e8f0fe; }
    table.grades th.exam { background: #f3e8fd; }
    table.grades td.name { text-align: left; }
    h3 { margin: 14px 0 4px 0; font-size: 10pt; }
    .signatures { width: 100%; margin-top: 24px; page-break-inside: avoid; }
    .signatures td { border: none; width: 50%; vertical-align: top; font-size: 9pt; }
    .signatures td.right { text-align: right; }
    .signatures .name { font-weight: bold; padding-top: 60px; }
"""

MONITORING_CSS = REPORT_CSS.replace("A4 landscape", "A4 portrait")


def _signature_block(
    principal: Signature, teacher: Signature, city: str, today: dt.date
) -> str:
    return (
        '<table class="signatures"><tr>'
        "<td><br>Mengetahui,<br>Kepala Sekolah"
        f'<div class="name">{escape(principal.name)}</div>NIP. {escape(principal.nip)}</td>'
        f'<td class="right">{escape(city)}, {format_date_id(today)}<br><br>Guru Mata Pelajaran'
        f'<div class="name">{escape(teacher.name)}</div>NIP. {escape(teacher.nip)}</td>'
        "</tr></table>"
    )


def grade_report_html(
    table: GradeTable,
    principal: Signature,
    city: str,
    today: dt.date | None = None,
) -> str:
    """Body HTML for the class grade report.

    Two header rows: chapters span their display fields plus the average,
    and ``Evaluasi Akhir`` spans KTS, SAS and the final grade.
    """
    today = today or dt.date.today()
    teacher = table.signature or Signature(name="-", nip="-")

    top = ['<th rowspan="2">No</th>', '<th rowspan="2">NIS</th>', '<th rowspan="2">Nama Siswa</th>']
    sub = []
    for column in table.chapters:
        top.append(f'<th colspan="{len(column.display_fields) + 1}">{escape(column.label)}</th>')
        sub.extend(f"<th>{f.label}</th>" for f in column.display_fields)
        sub.append("<th>R</th>")
    top.append('<th class="exam" colspan="3">Evaluasi Akhir</th>')
    sub.extend('<th class="exam">%s</th>' % label for label in ("KTS", "SAS", "NA"))

    body = []
    for index, row in enumerate(table.rows, start=1):
        cells = [f"<td>{index}</td>", f"<td>{escape(row.nis)}</td>", f'<td class="name">{escape(row.name)}</td>']
        for column in table.chapters:
            cell = row.chapters[column.key]
            cells.extend(f"<td>{format_number(cell.scores.get(f))}</td>" for f in column.display_fields)
            cells.append(f"<td><b>{format_number(cell.average)}</b></td>")
        cells.extend([
            f"<td>{format_number(row.kts)}</td>",
            f"<td>{format_number(row.sas)}</td>",
            f"<td><b>{format_number(row.final_grade)}</b></td>",
        ])
        body.append("<tr>" + "".join(cells) + "</tr>")
    if not body:
        body.append('<tr><td colspan="100">Belum ada data siswa di kelas ini.</td></tr>')

    return (
        "<h1>LAPORAN NILAI SISWA</h1>"
        '<table class="meta">'
        f"<tr><td>Mata Pelajaran</td><td>: {escape(table.subject)}</td></tr>"
        f"<tr><td>Kelas</td><td>: {escape(table.class_name)}</td></tr>"
        f"<tr><td>Semester</td><td>: {table.semester.label}</td></tr>"
        f"<tr><td>Tahun Ajaran</td><td>: {escape(table.academic_year)}</td></tr>"
        "</table>"
        '<table class="grades"><thead>'
        f"<tr>{''.join(top)}</tr><tr>{''.join(sub)}</tr>"
        f"</thead><tbody>{''.join(body)}</tbody></table>"
        + _signature_block(principal, teacher, city, today)
    )


def monitoring_html(
    report: MonitoringReport,
    teacher: Signature,
    principal: Signature,
    city: str,
    today: dt.date | None = None,
) -> str:
    """Body HTML for an outstanding/remedial list: one table per session."""
    today = today or dt.date.today()
    parts = [
        f"<h1>Laporan Monitoring {_MONITORING_TITLES[report.kind]}</h1>",
        '<table class="meta">',
        f"<tr><td>Mata Pelajaran</td><td>: {escape(report.subject or '-')}</td></tr>",
        f"<tr><td>Semester</td><td>: {report.semester.label}</td></tr>",
        "</table>",
    ]
    for group in report.classes:
        parts.append(f"<h3>Kelas: {escape(group.class_name)}</h3>")
        for session in group.sessions:
            rows = "".join(
                f"<tr><td>{i}</td><td>{escape(e.nis)}</td>"
                f'<td class="name">{escape(e.name)}</td><td>{format_number(e.score)}</td></tr>'
                for i, e in enumerate(session.entries, start=1)
            )
            parts.append(
                '<table class="grades"><thead><tr><th>No</th><th>NIS</th>'
                f"<th>Nama Siswa ({escape(session.task_name)})</th><th>Nilai</th></tr></thead>"
                f"<tbody>{rows}</tbody></table>"
            )
    if not report.classes:
        parts.append("<p>Tidak ada data.</p>")
    parts.append(_signature_block(principal, teacher, city, today))
    return "".join(parts)


# ── PDF ──────────────────────────────────────────────────────────


def render_pdf(html_content: str, title: str, css: str = REPORT_CSS) -> bytes:
    """Render body HTML into PDF bytes."""
    from weasyprint import CSS, HTML

    full_html = (
        f'<!DOCTYPE html><html><head><meta charset="utf-8">'
        f"<title>{escape(title)}</title></head>"
        f"<body>{html_content}</body></html>"
    )
    pdf_bytes = HTML(string=full_html).write_pdf(stylesheets=[CSS(string=css)])
    logger.info("Rendered PDF %r (%d bytes)", title, len(pdf_bytes))
    return pdf_bytes
