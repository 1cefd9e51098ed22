"""
app/errors.py

Session-level exceptions raised by the import pipeline.

Row-level problems never surface as exceptions outside the row validator;
they become failed-row entries instead.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ErrorDetail:
    """
    One structured error item returned alongside a failure message.
    """

    code: str
    message: str
    column: str | None = None
    row_number: int | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "column": self.column,
            "row_number": self.row_number,
            "context": self.context,
        }


class ImportPipelineError(Exception):
    """Base exception for import pipeline failures."""

    def __init__(self, message: str, *, errors: list[ErrorDetail] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.errors = tuple(errors or ())

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"message": self.message}
        if self.errors:
            payload["errors"] = [error.to_dict() for error in self.errors]
        return payload


class ParseError(ImportPipelineError):
    """Raised when file content is unreadable or its columns do not match the template."""


class UnknownTemplate(ImportPipelineError):
    """Raised when the requested import template does not exist or is inactive."""


class BadRequest(ImportPipelineError):
    """Raised when required upload fields or metadata are missing or invalid."""


class NotFound(ImportPipelineError):
    """Raised when an import session id does not exist."""

    def __init__(self, import_id: uuid.UUID | str) -> None:
        super().__init__(f"Import not found: {import_id}")
        self.import_id = import_id


class InvalidStateTransition(ImportPipelineError):
    """Raised when an operation is not allowed from the session's current status."""

    def __init__(
        self,
        *,
        import_id: uuid.UUID,
        operation: str,
        current_status: str,
        allowed_statuses: frozenset[str] | set[str],
    ) -> None:
        allowed = ", ".join(sorted(allowed_statuses))
        super().__init__(
            f"Cannot {operation} import {import_id} while it is {current_status!r}; "
            f"allowed from: {allowed}."
        )
        self.import_id = import_id
        self.operation = operation
        self.current_status = current_status
        self.allowed_statuses = frozenset(allowed_statuses)


class PromotionError(ImportPipelineError):
    """Raised when the atomic copy of staged rows into production fails."""

    def __init__(self, message: str, *, row_number: int | None = None) -> None:
        errors = []
        if row_number is not None:
            errors.append(ErrorDetail(code="promotion_row_failed", message=message, row_number=row_number))
        super().__init__(message, errors=errors)
        self.row_number = row_number


class UnresolvedReference(LookupError):
    """
    Raised by the reference resolver when a label matches no active entity.

    Row-level: the row validator turns it into a failed-row verdict.
    """

    def __init__(self, *, kind: str, label: str, scope: str | None = None) -> None:
        where = f" in {scope}" if scope else ""
        super().__init__(f"Unknown {kind} {label!r}{where}.")
        self.kind = kind
        self.label = label
        self.scope = scope


@dataclass(frozen=True)
class DuplicateImport:
    """
    Informational notice: the uploaded content matches an already promoted import.
    """

    original_import_id: uuid.UUID
    content_hash: str

    @property
    def message(self) -> str:
        return f"File content already imported successfully by import {self.original_import_id}."
