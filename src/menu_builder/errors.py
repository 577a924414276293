"""Exception taxonomy shared by the entity model, persistence, and export.

Validation errors are recoverable by the operator: raising one never mutates
committed state, and the message is suitable for display next to the form
that produced it.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ValidationError(Exception):
    """Base class for a record that failed one of the validation rules."""


class InvalidIdError(ValidationError):
    """Raised when an identifier is malformed or outside its type's range."""


class DuplicateIdError(ValidationError):
    """Raised when another committed record already uses the identifier."""


class EmptyNameError(ValidationError):
    """Raised when a record's name is empty after trimming whitespace."""


class InvalidRangeError(ValidationError):
    """Raised when an item group range is not ordered or is otherwise unusable."""


class RangeOverlapError(InvalidRangeError):
    """Raised when an item group range overlaps another group's range."""

    def __init__(self, message: str, *, conflicting_group: Optional[str] = None) -> None:
        super().__init__(message)
        self.conflicting_group = conflicting_group


class InvalidValueError(ValidationError):
    """Raised when a non-identifier field holds an unacceptable value."""


class InvalidReferenceError(ValidationError):
    """Raised when a record points at an entity that does not exist."""


class BusinessRuleViolation(Exception):
    """Raised when a requested operation violates a domain constraint."""


class MissingReferenceError(BusinessRuleViolation):
    """Raised when a requested record does not exist."""


class DraftInProgressError(BusinessRuleViolation):
    """Raised when a draft is started for a type that already has one."""


class PersistenceError(Exception):
    """Raised when the snapshot cannot be read from or written to disk."""


class ExportErrorKind(str, Enum):
    """Enumerate the broad causes of a failed CSV export."""

    INVALID_FORMAT = "InvalidFormat"
    INVALID_VALUE = "InvalidValue"
    IO = "IoError"


class ExportError(Exception):
    """Raised when items cannot be exported to CSV."""

    def __init__(self, kind: ExportErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind


__all__ = [
    "ValidationError",
    "InvalidIdError",
    "DuplicateIdError",
    "EmptyNameError",
    "InvalidRangeError",
    "RangeOverlapError",
    "InvalidValueError",
    "InvalidReferenceError",
    "BusinessRuleViolation",
    "MissingReferenceError",
    "DraftInProgressError",
    "PersistenceError",
    "ExportErrorKind",
    "ExportError",
]
