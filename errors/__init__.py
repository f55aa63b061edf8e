"""Custom exception hierarchy for the gradebook service."""

from errors.exceptions import (
    AuthenticationError,
    EntityNotFoundError,
    GradebookError,
    ImportFormatError,
    InvalidScoreError,
    PermissionDeniedError,
    SlotAlreadyOpenError,
    SlotLockedError,
)

__all__ = [
    "AuthenticationError",
    "EntityNotFoundError",
    "GradebookError",
    "ImportFormatError",
    "InvalidScoreError",
    "PermissionDeniedError",
    "SlotAlreadyOpenError",
    "SlotLockedError",
]
