"""Domain-specific exceptions for the gradebook service.

These let the API layer distinguish failure modes and answer with the right
HTTP status, while the grade engine itself stays exception-free for
out-of-range scores.
"""

from __future__ import annotations


class GradebookError(Exception):
    """Base class for gradebook errors."""

    status_code = 400

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class PermissionDeniedError(GradebookError):
    """The viewer's capability set does not cover the requested operation."""

    status_code = 403

    def __init__(self, capability: str, role: str) -> None:
        self.capability = capability
        self.role = role
        super().__init__(f"Role '{role}' lacks capability '{capability}'")


class EntityNotFoundError(GradebookError):
    """A referenced student, teacher or session does not exist."""

    status_code = 404

    def __init__(self, entity_type: str, entity_id: str | int) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} '{entity_id}' not found")


class InvalidScoreError(GradebookError):
    """A raw score input is neither empty nor a number."""

    status_code = 422

    def __init__(self, raw: object) -> None:
        self.raw = raw
        super().__init__(f"Score {raw!r} is not a number")


class SlotLockedError(GradebookError):
    """No assessment session has opened this slot for the class/subject/semester."""

    status_code = 409

    def __init__(self, slot: str) -> None:
        self.slot = slot
        super().__init__(f"Slot '{slot}' is locked; open an assessment session first")


class SlotAlreadyOpenError(GradebookError):
    """A session for this chapter slot already exists for the class/semester."""

    status_code = 409

    def __init__(self, slot: str) -> None:
        self.slot = slot
        super().__init__(f"Slot '{slot}' already has an assessment session")


class ImportFormatError(GradebookError):
    """The uploaded roster workbook cannot be read at all."""

    status_code = 400


class AuthenticationError(GradebookError):
    """Wrong password, unknown login name, or an expired token."""

    status_code = 401
