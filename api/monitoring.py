"""Outstanding / remedial lists and teacher input progress."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query

from api.deps import download, get_viewer, require, semester_or_active
from config.settings import get_settings
from models.grades import SemesterKey
from models.viewer import Capability, TeacherViewer
from models.views import MonitoringReport
from services import gradebook, report_export
from services.monitoring import build_monitoring, teacher_progress
from services.state_store import get_state_store

router = APIRouter(prefix="/api/monitoring", tags=["monitoring"])

Kind = Literal["outstanding", "remedial"]


@router.get("/teachers")
async def teachers_progress(semester: SemesterKey | None = None, viewer=Depends(get_viewer)):
    require(viewer, Capability.VIEW_TEACHER_PROGRESS)
    store = get_state_store()
    state = store.state
    chosen = semester_or_active(semester, state)
    rows = teacher_progress(state, chosen, store.default_subject)
    return {"semester": chosen.value, "teachers": [r.to_wire() for r in rows]}


def _report(viewer, kind: str, subject: str, semester, class_name) -> MonitoringReport:
    require(viewer, Capability.VIEW_MONITORING)
    store = get_state_store()
    state = store.state
    # teachers only see the classes they teach for the subject
    if isinstance(viewer, TeacherViewer):
        allowed = viewer.classes_for(subject)
        classes = [c for c in allowed if class_name in (None, c)]
    else:
        classes = [class_name] if class_name else None
    return build_monitoring(
        state,
        kind,
        subject,
        semester_or_active(semester, state),
        store.default_subject,
        class_names=classes,
    )


@router.get("/{kind}", response_model=MonitoringReport)
async def monitoring(
    kind: Kind,
    subject: str,
    semester: SemesterKey | None = None,
    class_name: str | None = Query(None, alias="className"),
    viewer=Depends(get_viewer),
):
    return _report(viewer, kind, subject, semester, class_name)


@router.get("/{kind}/pdf")
async def monitoring_pdf(
    kind: Kind,
    subject: str,
    semester: SemesterKey | None = None,
    class_name: str | None = Query(None, alias="className"),
    viewer=Depends(get_viewer),
):
    require(viewer, Capability.EXPORT_REPORTS)
    report = _report(viewer, kind, subject, semester, class_name)
    store = get_state_store()
    state = store.state
    teacher = gradebook.teacher_signature(
        state,
        subject,
        None,
        store.default_subject,
        teacher_name=viewer.teacher_name if isinstance(viewer, TeacherViewer) else None,
    )
    html = report_export.monitoring_html(
        report,
        teacher=teacher,
        principal=gradebook.principal_signature(state),
        city=get_settings().report_city,
    )
    filename = report_export.report_filename("Monitoring", kind, subject, report.semester.value, ext="pdf")
    pdf = report_export.render_pdf(html, title=filename, css=report_export.MONITORING_CSS)
    return download(pdf, filename, "application/pdf")
