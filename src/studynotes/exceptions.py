"""Exception hierarchy for studynotes.

Every error carries a machine-readable :class:`ErrorCode` and a ``details``
dict so the session layer can turn it into a status line without parsing
messages.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(Enum):
    # Model (1xxx)
    VALIDATION_FAILED = 1001
    NOT_FOUND = 1002
    RESERVED_ID = 1003
    ID_EXHAUSTED = 1004

    # Local storage (2xxx)
    STORAGE_READ_FAILED = 2001
    STORAGE_WRITE_FAILED = 2002

    # Remote sync (3xxx)
    TRANSPORT_FAILED = 3001
    VERSION_CONFLICT = 3002
    MALFORMED_PAYLOAD = 3003

    # Configuration (4xxx)
    CONFIG_INVALID = 4001


class NotebookError(Exception):
    """Base class for all studynotes errors."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        return self.message


class ValidationError(NotebookError):
    """Rejected model operation (blank title, reserved id, ...)."""


class NotFoundError(NotebookError):
    """A section or note id that does not exist in the collection."""

    def __init__(self, kind: str, item_id: str) -> None:
        super().__init__(
            f"{kind.capitalize()} '{item_id}' not found",
            code=ErrorCode.NOT_FOUND,
            details={"kind": kind, "id": item_id},
        )
        self.kind = kind
        self.item_id = item_id


class StorageError(NotebookError):
    """The local store could not be read or written."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        code: ErrorCode = ErrorCode.STORAGE_WRITE_FAILED,
        original_error: Exception | None = None,
    ) -> None:
        details: dict[str, Any] = {}
        if operation:
            details["operation"] = operation
        if original_error:
            details["original_error"] = str(original_error)[:200]
        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.original_error = original_error


class SyncError(NotebookError):
    """Base class for errors raised while talking to the remote store."""


class TransportError(SyncError):
    """Non-success response (other than 404) or a network failure."""

    def __init__(self, message: str, status: int | None = None) -> None:
        details: dict[str, Any] = {}
        if status is not None:
            details["status"] = status
        super().__init__(message, code=ErrorCode.TRANSPORT_FAILED, details=details)
        self.status = status


class VersionConflictError(SyncError):
    """The remote version no longer matches the expected one."""

    def __init__(
        self,
        message: str,
        expected: str | None = None,
        actual: str | None = None,
    ) -> None:
        details: dict[str, Any] = {}
        if expected:
            details["expected"] = expected
        if actual:
            details["actual"] = actual
        super().__init__(message, code=ErrorCode.VERSION_CONFLICT, details=details)
        self.expected = expected
        self.actual = actual


class MalformedPayloadError(SyncError):
    """Remote or imported content is not a valid collection."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code=ErrorCode.MALFORMED_PAYLOAD)


class ConfigError(NotebookError):
    """Settings file could not be parsed."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(
            message,
            code=ErrorCode.CONFIG_INVALID,
            details={"path": path} if path else None,
        )
