"""Folder session domain manager.

Owns the active folder, its bookmark token, the filtered file list, the
selected file with its edited content, and the mirror of the stored
bookmarks. Every public command catches its own failures and reports them
through the message slot; nothing raises past this class.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

from ...services.bookmark_store import BookmarkSet, BookmarkStore
from ...services.errors import FoldermarkError
from ...services.file_list import FileListCache
from ...services.permissions import FileHandle, FolderHandle, PermissionBroker
from ..events import (
    ActiveFolderChanged,
    BookmarksChanged,
    EventBus,
    FileContentLoaded,
    FileListRefreshed,
    SessionChanged,
    StatusMessage,
)
from ..models.session_state import DerivedState, MessageKind, SessionMessage
from .message_slot import MessageSlot

LOGGER = logging.getLogger(__name__)

DEFAULT_SAVE_NAME = "new_file.txt"

MSG_DENIED = "Error: Could not save bookmark. The OS denied the request."
MSG_RESOLVE_FAILED = (
    "Could not access the bookmarked folder. The bookmark may be invalid or "
    "permissions have been revoked. Please select the folder again."
)


class FolderSession:
    """State machine for the folder/file/edit context of one running app.

    The session is either empty or has an active folder (optionally opened
    from a bookmark token). Field changes recompute :class:`DerivedState`
    first and then publish :class:`SessionChanged`.

    Events Emitted:
        - SessionChanged: After any field change, with the new derived state
        - StatusMessage: Whenever the message slot is written or cleared
        - ActiveFolderChanged: When a folder is activated or dropped
        - BookmarksChanged: When the bookmark mirror is replaced
        - FileListRefreshed: After the folder was re-enumerated
        - FileContentLoaded: When a selected file's content is committed
    """

    def __init__(
        self,
        broker: PermissionBroker,
        bookmark_store: BookmarkStore,
        event_bus: EventBus,
        *,
        file_list: FileListCache | None = None,
        default_save_name: str = DEFAULT_SAVE_NAME,
    ) -> None:
        """Initialize an empty session.

        Args:
            broker: Host capability for pickers and access grants.
            bookmark_store: Persistent set of bookmark tokens.
            event_bus: Bus receiving the session's events.
            file_list: Listing cache; a ``.txt`` filter is used when omitted.
            default_save_name: Name suggested by "save as" without a selection.
        """
        self._broker = broker
        self._store = bookmark_store
        self._bus = event_bus
        self._file_list = file_list or FileListCache()
        self._default_save_name = default_save_name
        self._messages = MessageSlot()

        self._active_folder: FolderHandle | None = None
        self._active_folder_path: str | None = None
        self._active_token: str | None = None
        self._files: tuple[FileHandle, ...] = ()
        self._selected_file: FileHandle | None = None
        self._edited_content: str | None = None
        self._available_tokens: tuple[str, ...] = ()
        self._selected_token: str | None = None

        self._derived = DerivedState()
        self._selection_generation = 0
        self._pending_loads: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self._active_folder is not None

    @property
    def active_folder(self) -> FolderHandle | None:
        return self._active_folder

    @property
    def active_folder_path(self) -> str | None:
        return self._active_folder_path

    @property
    def active_token(self) -> str | None:
        return self._active_token

    @property
    def files(self) -> tuple[FileHandle, ...]:
        return self._files

    @property
    def selected_file(self) -> FileHandle | None:
        return self._selected_file

    @property
    def edited_content(self) -> str | None:
        return self._edited_content

    @property
    def available_tokens(self) -> tuple[str, ...]:
        return self._available_tokens

    @property
    def selected_token(self) -> str | None:
        return self._selected_token

    @property
    def last_message(self) -> str | None:
        return self._messages.text

    @property
    def message(self) -> SessionMessage | None:
        return self._messages.message

    @property
    def derived(self) -> DerivedState:
        return self._derived

    # ------------------------------------------------------------------
    # Folder selection
    # ------------------------------------------------------------------

    async def select_folder(self) -> None:
        """Let the user pick a folder and make it active without a bookmark."""
        self._begin("select_folder")
        try:
            folder = await self._broker.pick_folder()
        except Exception as exc:
            self._fail("selecting a folder", exc)
            return
        if folder is None:
            LOGGER.debug("FolderSession.select_folder: cancelled")
            return

        try:
            files = await self._file_list.refresh(folder)
        except Exception as exc:
            self._fail("listing folder files", exc)
            return

        self._activate(folder, token=None, files=files)
        self._update(available_tokens=(), selected_token=None)
        self._bus.publish(BookmarksChanged(tokens=()))
        self._post(f"Folder '{folder.path}' selected.")

    # ------------------------------------------------------------------
    # Bookmarks
    # ------------------------------------------------------------------

    async def save_bookmark(self) -> None:
        """Mint a durable token for the active folder and store it."""
        self._begin("save_bookmark")
        folder = self._active_folder
        if folder is None:
            self._post_error("Error: No folder selected to save a bookmark.")
            return

        try:
            token = await self._broker.mint_token(folder)
        except Exception as exc:
            self._fail("saving the bookmark", exc)
            return
        if token is None:
            LOGGER.info("FolderSession.save_bookmark: host denied a grant for %s", folder.path)
            self._post_error(MSG_DENIED)
            return

        try:
            bookmarks = await self._store.add(token)
        except Exception as exc:
            await self._release_quietly(token)
            self._fail("saving the bookmark", exc)
            return

        if self._active_folder is folder:
            self._update(active_token=token)
        else:
            LOGGER.debug("FolderSession.save_bookmark: folder changed while saving")
        self._mirror_bookmarks(bookmarks)
        self._post("Bookmark saved successfully!")

    async def load_bookmark_list(self) -> None:
        """Reload the stored tokens into :attr:`available_tokens`."""
        self._begin("load_bookmark_list")
        try:
            bookmarks = await self._refresh_bookmarks()
        except Exception as exc:
            self._mirror_bookmarks(BookmarkSet())
            self._fail("loading the bookmarks", exc)
            return

        if bookmarks.error is not None:
            self._post_error(
                f"Error: {bookmarks.error.message}. Stored bookmarks could not be recovered."
            )
        elif not bookmarks:
            self._post("No bookmarks found.")
        else:
            self._post("Bookmarks loaded. Please select a bookmark from the list.")

    def select_token(self, token: str | None) -> None:
        """Choose the bookmark that load/release commands act on."""
        if token is not None and token not in self._available_tokens:
            self._post_error("Error: The selected bookmark is not in the bookmark list.")
            return
        self._update(selected_token=token)

    async def load_selected_bookmark(self) -> None:
        """Resolve the selected token and make its folder active.

        A failed resolution keeps whatever folder was active before; only a
        stale :attr:`active_token` equal to the failed token is cleared.
        """
        self._begin("load_selected_bookmark")
        token = self._selected_token
        if token is None:
            self._post_error("Error: No bookmark is selected.")
            return

        try:
            folder = await self._broker.resolve_token(token)
        except Exception as exc:
            LOGGER.warning("FolderSession.load_selected_bookmark: resolve failed: %s", exc)
            folder = None
        if folder is None:
            if self._active_token == token:
                self._update(active_token=None)
            self._post_error(MSG_RESOLVE_FAILED)
            return
        if token not in self._available_tokens:
            self._post_error("Error: The bookmark was released while it was being opened.")
            return

        try:
            files = await self._file_list.refresh(folder)
        except Exception as exc:
            LOGGER.warning("FolderSession.load_selected_bookmark: listing failed: %s", exc)
            self._file_list.clear()
            self._activate(folder, token=token, files=())
            self._post_error(
                "Bookmark loaded successfully, but could not access folder contents. "
                "This may be due to permission restrictions. Please select the folder again."
            )
            return

        self._activate(folder, token=token, files=files)
        self._post("Bookmark loaded successfully, file list updated!")

    async def release_bookmark(self) -> None:
        """Remove the selected token from the store and release its consent.

        Releasing the active folder's token also empties the session.
        """
        self._begin("release_bookmark")
        token = self._selected_token
        if token is None:
            self._post_error("Error: No bookmark is selected to release.")
            return

        try:
            await self._store.remove(token)
        except Exception as exc:
            self._fail("releasing the bookmark", exc)
            return
        await self._release_quietly(token)

        if token == self._active_token:
            self._clear_folder()
        self._update(selected_token=None)

        try:
            await self._refresh_bookmarks()
        except Exception as exc:
            self._fail("reloading the bookmarks", exc)
            return
        self._post("Bookmark released and removed from file successfully.")

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def select_file(self, file: FileHandle | None) -> asyncio.Task[None] | None:
        """Select ``file`` and start loading its content.

        Must be called from a running event loop. Returns the load task so
        callers can await it; a load that finishes after the selection moved
        on is discarded.
        """
        self._begin("select_file")
        if file is not None and file not in self._files:
            self._post_error("Error: The selected file is not part of the current folder.")
            return None

        self._selection_generation += 1
        self._update(selected_file=file, edited_content=None)
        if file is None:
            return None

        generation = self._selection_generation
        task = asyncio.get_running_loop().create_task(self._load_content(file, generation))
        self._pending_loads.add(task)
        task.add_done_callback(self._pending_loads.discard)
        return task

    def set_edited_content(self, content: str | None) -> None:
        """Replace the edited content with user-entered text."""
        # A pending load must not clobber what the user typed.
        self._selection_generation += 1
        self._update(edited_content=content)

    async def overwrite(self) -> None:
        """Write the edited content back into the selected file."""
        self._begin("overwrite")
        file = self._selected_file
        content = self._edited_content
        if file is None:
            self._post_error("Error: No file selected to overwrite.")
            return
        if not content:
            self._post_error("Error: There is no content to write.")
            return

        try:
            await file.write_text(content)
        except Exception as exc:
            self._fail("overwriting the file", exc)
            return
        self._post(f"File '{file.name}' overwritten successfully!")

    async def save_as(self) -> None:
        """Write the edited content to a destination chosen by the user."""
        self._begin("save_as")
        content = self._edited_content
        if content is None:
            self._post_error("Error: There is no content to save.")
            return

        suggested = self._selected_file.name if self._selected_file is not None else self._default_save_name
        try:
            destination = await self._broker.pick_save_destination(suggested)
        except Exception as exc:
            self._fail("saving as a new file", exc)
            return
        if destination is None:
            LOGGER.debug("FolderSession.save_as: cancelled")
            return

        try:
            await destination.write_text(content)
        except Exception as exc:
            self._fail("saving the file", exc)
            return

        if self._active_folder is not None:
            try:
                await self._refresh_files()
            except Exception as exc:
                self._fail("listing folder files", exc)
                return
        self._post(f"File '{destination.name}' saved successfully!")

    async def delete_selected_file(self) -> None:
        """Delete the selected file and refresh the list."""
        self._begin("delete_selected_file")
        file = self._selected_file
        if file is None or self._active_folder is None:
            self._post_error("Error: No file selected to delete.")
            return

        try:
            await file.delete()
        except Exception as exc:
            self._fail("deleting the file", exc)
            return

        self._cancel_pending_loads()
        self._update(selected_file=None, edited_content=None)
        try:
            await self._refresh_files()
        except Exception as exc:
            self._fail("listing folder files", exc)
            return
        self._post("File deleted successfully!")

    async def wait_for_pending_loads(self) -> None:
        """Wait until every scheduled content load has finished."""
        while self._pending_loads:
            await asyncio.gather(*list(self._pending_loads), return_exceptions=True)

    # ------------------------------------------------------------------
    # Internal transitions
    # ------------------------------------------------------------------

    async def _load_content(self, file: FileHandle, generation: int) -> None:
        try:
            text = await file.read_text()
        except Exception as exc:
            if self._is_current_selection(file, generation):
                self._fail("loading file content", exc)
            return

        if not self._is_current_selection(file, generation):
            LOGGER.debug("FolderSession: dropped stale content for %s", file.name)
            return
        self._update(edited_content=text)
        self._bus.publish(FileContentLoaded(name=file.name))
        self._post(f"File '{file.name}' loaded.")

    def _cancel_pending_loads(self) -> None:
        self._selection_generation += 1
        for task in list(self._pending_loads):
            if not task.done():
                task.cancel()
                LOGGER.debug("FolderSession: cancelled a pending content load")

    def _is_current_selection(self, file: FileHandle, generation: int) -> bool:
        return generation == self._selection_generation and self._selected_file == file

    def _activate(self, folder: FolderHandle, *, token: str | None, files: Sequence[FileHandle]) -> None:
        files = tuple(files)
        selected = self._selected_file if self._selected_file in files else None
        changes: dict[str, Any] = {
            "active_folder": folder,
            "active_folder_path": folder.path,
            "active_token": token,
            "files": files,
        }
        if selected is None:
            self._cancel_pending_loads()
            changes["selected_file"] = None
            changes["edited_content"] = None
        self._update(**changes)
        LOGGER.debug("FolderSession: active folder %s (token=%s)", folder.path, token is not None)
        self._bus.publish(ActiveFolderChanged(path=folder.path, token=token))
        self._bus.publish(FileListRefreshed(names=tuple(f.name for f in files)))

    def _clear_folder(self) -> None:
        self._cancel_pending_loads()
        self._file_list.clear()
        self._update(
            active_folder=None,
            active_folder_path=None,
            active_token=None,
            files=(),
            selected_file=None,
            edited_content=None,
        )
        LOGGER.debug("FolderSession: returned to empty")
        self._bus.publish(ActiveFolderChanged(path=None, token=None))

    async def _refresh_files(self) -> None:
        folder = self._active_folder
        if folder is None:
            return
        files = await self._file_list.refresh(folder)
        if self._active_folder is not folder:
            return
        changes: dict[str, Any] = {"files": files}
        if self._selected_file is not None and self._selected_file not in files:
            self._cancel_pending_loads()
            changes["selected_file"] = None
            changes["edited_content"] = None
        self._update(**changes)
        self._bus.publish(FileListRefreshed(names=tuple(f.name for f in files)))

    async def _refresh_bookmarks(self) -> BookmarkSet:
        bookmarks = await asyncio.to_thread(self._store.load)
        self._mirror_bookmarks(bookmarks)
        return bookmarks

    def _mirror_bookmarks(self, bookmarks: BookmarkSet) -> None:
        tokens = tuple(bookmarks.tokens)
        changes: dict[str, Any] = {"available_tokens": tokens}
        if self._selected_token is not None and self._selected_token not in tokens:
            changes["selected_token"] = None
        if self._active_token is not None and self._active_token not in tokens:
            LOGGER.info("FolderSession: active bookmark is no longer stored")
            changes["active_token"] = None
        self._update(**changes)
        self._bus.publish(BookmarksChanged(tokens=tokens))

    async def _release_quietly(self, token: str) -> None:
        try:
            await self._broker.release_token(token)
        except Exception as exc:
            LOGGER.warning("FolderSession: releasing a grant failed: %s", exc)

    # ------------------------------------------------------------------
    # Field plumbing
    # ------------------------------------------------------------------

    def _update(self, **changes: Any) -> None:
        changed: list[str] = []
        for name, value in changes.items():
            attr = f"_{name}"
            current = getattr(self, attr)
            if current is value or current == value:
                continue
            setattr(self, attr, value)
            changed.append(name)
        if self._selected_file is None and self._edited_content is not None and "selected_file" in changed:
            self._edited_content = None
            changed.append("edited_content")
        if changed:
            self._notify(tuple(changed))

    def _notify(self, fields: tuple[str, ...]) -> None:
        self._derived = DerivedState(
            can_overwrite=self._selected_file is not None,
            can_save_bookmark=self._active_folder is not None,
            can_release_bookmark=self._selected_token is not None,
            can_load_selected_bookmark=self._selected_token is not None,
            can_delete_file=self._selected_file is not None,
            has_error=self._messages.has_error,
        )
        self._bus.publish(SessionChanged(fields=fields, derived=self._derived))

    def _begin(self, command: str) -> None:
        LOGGER.debug("FolderSession.%s", command)
        if self._messages.clear():
            self._notify(("last_message",))
            self._bus.publish(StatusMessage(message="", is_error=False))

    def _post(self, text: str) -> None:
        self._announce(self._messages.post(text, MessageKind.STATUS))

    def _post_error(self, text: str) -> None:
        self._announce(self._messages.post_error(text))

    def _announce(self, message: SessionMessage) -> None:
        self._notify(("last_message",))
        self._bus.publish(StatusMessage(message=message.text, is_error=message.is_error))

    def _fail(self, action: str, exc: BaseException) -> None:
        LOGGER.warning("FolderSession: failed %s: %s", action, exc)
        if isinstance(exc, FoldermarkError):
            self._post_error(f"Error: {exc.message}")
        else:
            self._post_error(f"Error: An exception occurred while {action} - {exc}")


__all__ = ["FolderSession", "DEFAULT_SAVE_NAME"]
