"""Error types raised by the folder-access services.

Every error carries a machine-readable ``error_code`` plus a human-readable
``message``; :class:`~foldermark.ui.domain.folder_session.FolderSession`
turns them into a single status line at its boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar


class ErrorCode:
    """Constants for the error categories surfaced to the user."""

    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"
    REVOKED = "revoked"
    IO_ERROR = "io_error"
    PARSE_ERROR = "parse_error"
    INVALID_STATE = "invalid_state"


@dataclass
class FoldermarkError(Exception):
    """Base exception for folder-access failures.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable error description.
        details: Additional structured error information.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    severity: ClassVar[str] = "error"

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dictionary."""
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = dict(self.details)
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


@dataclass
class PermissionDeniedError(FoldermarkError):
    """The host refused to mint or resolve an access grant."""

    error_code: str = field(default=ErrorCode.PERMISSION_DENIED)
    message: str = field(default="The operating system denied the request")
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class NotFoundError(FoldermarkError):
    """A grant or file no longer points at anything reachable."""

    error_code: str = field(default=ErrorCode.NOT_FOUND)
    message: str = field(default="The requested item could not be found")
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class RevokedError(NotFoundError):
    """A grant exists in the store but its consent has been withdrawn."""

    error_code: str = field(default=ErrorCode.REVOKED)
    message: str = field(default="The access grant has been revoked")
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class BookmarkIOError(FoldermarkError):
    """Reading, writing, deleting or enumerating failed."""

    error_code: str = field(default=ErrorCode.IO_ERROR)
    message: str = field(default="A file system operation failed")
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class BookmarkParseError(FoldermarkError):
    """The persisted bookmark file is not a JSON array of strings.

    Never raised past the store; it is attached to the loaded
    :class:`~foldermark.services.bookmark_store.BookmarkSet` instead.
    """

    error_code: str = field(default=ErrorCode.PARSE_ERROR)
    message: str = field(default="The bookmark file is corrupt")
    details: dict[str, Any] = field(default_factory=dict)

    severity: ClassVar[str] = "warning"


@dataclass
class InvalidStateError(FoldermarkError):
    """A command was invoked while its precondition was unmet."""

    error_code: str = field(default=ErrorCode.INVALID_STATE)
    message: str = field(default="The command is not available right now")
    details: dict[str, Any] = field(default_factory=dict)


__all__ = [
    "ErrorCode",
    "FoldermarkError",
    "PermissionDeniedError",
    "NotFoundError",
    "RevokedError",
    "BookmarkIOError",
    "BookmarkParseError",
    "InvalidStateError",
]
