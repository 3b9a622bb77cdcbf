"""Qt folder/file pickers used by :class:`LocalPermissionBroker`.

The broker takes plain callables; this module provides ones that open the
native Qt dialogs. PySide6 is imported lazily so the rest of the package
works without a desktop stack.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from PySide6.QtWidgets import QWidget

LOGGER = logging.getLogger(__name__)

TEXT_FILE_FILTER = "Text Files (*.txt)"


class QtPickerProvider:
    """Folder and save-destination pickers backed by ``QFileDialog``.

    Example:
        pickers = QtPickerProvider(start_dir_resolver=Path.home)
        broker = LocalPermissionBroker(
            data_dir,
            folder_picker=pickers.pick_folder,
            save_picker=pickers.pick_save_destination,
        )
    """

    __slots__ = ("_parent_provider", "_start_dir_resolver")

    def __init__(
        self,
        *,
        parent_provider: Callable[[], "QWidget | None"] | None = None,
        start_dir_resolver: Callable[[], Path | None] | None = None,
    ) -> None:
        """Initialize the picker provider.

        Args:
            parent_provider: Function returning the parent widget for dialogs.
            start_dir_resolver: Function returning the starting directory.
        """
        self._parent_provider = parent_provider
        self._start_dir_resolver = start_dir_resolver

    def pick_folder(self) -> Path | None:
        """Show the folder picker; ``None`` when the user cancels."""
        file_dialog = _require_qfiledialog()
        selected = file_dialog.getExistingDirectory(
            self._parent(),
            "Select Folder",
            self._start_dir(),
        )
        if not selected:
            LOGGER.debug("Folder picker cancelled")
            return None
        return Path(selected)

    def pick_save_destination(self, suggested_name: str) -> Path | None:
        """Show the save picker seeded with ``suggested_name``."""
        file_dialog = _require_qfiledialog()
        start = Path(self._start_dir()) / suggested_name
        selected, _ = file_dialog.getSaveFileName(
            self._parent(),
            "Save File As...",
            str(start),
            TEXT_FILE_FILTER,
        )
        if not selected:
            LOGGER.debug("Save picker cancelled")
            return None
        return Path(selected)

    def _parent(self) -> "QWidget | None":
        return self._parent_provider() if self._parent_provider else None

    def _start_dir(self) -> str:
        start = self._start_dir_resolver() if self._start_dir_resolver else None
        return str(start or Path.home())


def _require_qfiledialog():  # type: ignore[no-untyped-def]
    try:
        from PySide6.QtWidgets import QFileDialog
    except ImportError as exc:  # pragma: no cover - depends on desktop stack
        raise RuntimeError("Folder pickers require the PySide6 dependency.") from exc
    return QFileDialog


__all__ = ["QtPickerProvider", "TEXT_FILE_FILTER"]
