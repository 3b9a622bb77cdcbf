"""Service layer helpers (bookmark store, permissions, settings)."""

from .bookmark_store import BookmarkSet, BookmarkStore
from .errors import (
    BookmarkIOError,
    BookmarkParseError,
    ErrorCode,
    FoldermarkError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    RevokedError,
)
from .file_list import FileListCache
from .permissions import (
    FileHandle,
    FolderHandle,
    LocalFileHandle,
    LocalFolderHandle,
    LocalPermissionBroker,
    PermissionBroker,
)

__all__ = [
    "BookmarkIOError",
    "BookmarkParseError",
    "BookmarkSet",
    "BookmarkStore",
    "ErrorCode",
    "FileHandle",
    "FileListCache",
    "FolderHandle",
    "FoldermarkError",
    "InvalidStateError",
    "LocalFileHandle",
    "LocalFolderHandle",
    "LocalPermissionBroker",
    "NotFoundError",
    "PermissionBroker",
    "PermissionDeniedError",
    "RevokedError",
]
