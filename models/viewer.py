"""Viewer context — who is looking, and what they may do.

Resolved once at login and passed to every request handler.  Handlers ask
for a capability instead of branching on the role name.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import Field

from errors import PermissionDeniedError
from models.base import CamelModel


class Capability(str, Enum):
    EDIT_GRADES = "edit_grades"
    OPEN_SESSIONS = "open_sessions"
    CONFIGURE_CHAPTERS = "configure_chapters"
    MANAGE_STUDENTS = "manage_students"
    MANAGE_TEACHERS = "manage_teachers"
    MANAGE_SETTINGS = "manage_settings"
    RESET_DATA = "reset_data"
    VIEW_ALL_CLASSES = "view_all_classes"
    VIEW_TEACHER_PROGRESS = "view_teacher_progress"
    VIEW_MONITORING = "view_monitoring"
    EXPORT_REPORTS = "export_reports"
    VIEW_OWN_GRADES = "view_own_grades"


ADMIN_CAPABILITIES = frozenset({
    Capability.MANAGE_STUDENTS,
    Capability.MANAGE_TEACHERS,
    Capability.MANAGE_SETTINGS,
    Capability.RESET_DATA,
    Capability.VIEW_ALL_CLASSES,
    Capability.VIEW_TEACHER_PROGRESS,
    Capability.VIEW_MONITORING,
    Capability.EXPORT_REPORTS,
})

TEACHER_CAPABILITIES = frozenset({
    Capability.EDIT_GRADES,
    Capability.OPEN_SESSIONS,
    Capability.CONFIGURE_CHAPTERS,
    Capability.VIEW_MONITORING,
    Capability.EXPORT_REPORTS,
})

STUDENT_CAPABILITIES = frozenset({Capability.VIEW_OWN_GRADES})


class _Viewer(CamelModel):
    role: str

    @property
    def capabilities(self) -> frozenset[Capability]:
        return frozenset()

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def require(self, capability: Capability) -> None:
        if not self.can(capability):
            raise PermissionDeniedError(capability.value, self.role)


class AdminViewer(_Viewer):
    role: Literal["admin"] = "admin"

    @property
    def capabilities(self) -> frozenset[Capability]:
        return ADMIN_CAPABILITIES


class TeacherViewer(_Viewer):
    """A teacher; ``assignments`` maps each subject they teach to its classes."""

    role: Literal["teacher"] = "teacher"
    teacher_name: str
    nip: str = ""
    assignments: dict[str, list[str]] = Field(default_factory=dict)

    @property
    def capabilities(self) -> frozenset[Capability]:
        return TEACHER_CAPABILITIES

    @property
    def subjects(self) -> list[str]:
        return sorted(self.assignments)

    def classes_for(self, subject: str) -> list[str]:
        return sorted(self.assignments.get(subject, []))

    def teaches(self, subject: str, class_name: str) -> bool:
        return class_name in self.assignments.get(subject, [])


class StudentViewer(_Viewer):
    role: Literal["student"] = "student"
    student_id: int
    class_name: str = ""

    @property
    def capabilities(self) -> frozenset[Capability]:
        return STUDENT_CAPABILITIES


ViewerContext = Annotated[
    Union[AdminViewer, TeacherViewer, StudentViewer],
    Field(discriminator="role"),
]
