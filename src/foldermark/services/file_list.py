"""Filtered listing of the files inside the active folder."""

from __future__ import annotations

import logging
from typing import Sequence

from ..utils import file_io
from .permissions import FileHandle, FolderHandle

__all__ = ["FileListCache", "DEFAULT_FILE_SUFFIX"]

LOGGER = logging.getLogger(__name__)
DEFAULT_FILE_SUFFIX = ".txt"


class FileListCache:
    """Holds the files of one folder whose names end with ``suffix``.

    :meth:`refresh` re-enumerates the folder and replaces the whole list.
    Entries keep the host's enumeration order, which is not guaranteed to be
    stable between calls.
    """

    def __init__(self, suffix: str = DEFAULT_FILE_SUFFIX) -> None:
        self._suffix = suffix
        self._files: tuple[FileHandle, ...] = ()

    @property
    def suffix(self) -> str:
        return self._suffix

    @property
    def files(self) -> tuple[FileHandle, ...]:
        return self._files

    async def refresh(self, folder: FolderHandle) -> tuple[FileHandle, ...]:
        children: Sequence[object] = await folder.list_children()
        self._files = tuple(
            child
            for child in children
            if isinstance(child, FileHandle) and file_io.matches_suffix(child.name, self._suffix)
        )
        LOGGER.debug(
            "Listed %d of %d entries in %s matching %s",
            len(self._files),
            len(children),
            folder.path,
            self._suffix,
        )
        return self._files

    def clear(self) -> None:
        self._files = ()
