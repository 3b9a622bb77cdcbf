"""Shared test helpers and stub classes.

In-memory folders, files and a scripted permission broker used across the
session and CLI tests. Import from here instead of redefining them.
"""

from __future__ import annotations

import asyncio
from typing import Sequence


class FakeFile:
    """In-memory file handle.

    ``gate`` holds :meth:`read_text` until the event is set, which lets tests
    finish content loads in a chosen order.
    """

    def __init__(
        self,
        name: str,
        content: str = "",
        *,
        folder: "FakeFolder | None" = None,
        gate: asyncio.Event | None = None,
        fail_read: bool = False,
        fail_write: bool = False,
        fail_delete: bool = False,
    ) -> None:
        self._name = name
        self.content = content
        self.folder = folder
        self.gate = gate
        self.fail_read = fail_read
        self.fail_write = fail_write
        self.fail_delete = fail_delete
        self.writes: list[str] = []
        self.deleted = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def path(self) -> str:
        prefix = self.folder.path if self.folder is not None else ""
        return f"{prefix}/{self._name}"

    async def read_text(self) -> str:
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_read:
            raise OSError("read failed")
        return self.content

    async def write_text(self, content: str) -> None:
        if self.fail_write:
            raise OSError("disk full")
        self.content = content
        self.writes.append(content)
        if self.folder is not None and self not in self.folder.children:
            self.folder.children.append(self)

    async def delete(self) -> None:
        if self.fail_delete:
            raise PermissionError("read-only file")
        self.deleted = True
        if self.folder is not None and self in self.folder.children:
            self.folder.children.remove(self)

    def __repr__(self) -> str:
        return f"FakeFile({self._name!r})"


class FakeFolder:
    """In-memory folder handle with ordered children."""

    def __init__(self, path: str, names: Sequence[str] = (), *, fail_list: bool = False) -> None:
        self._path = path
        self.children: list[object] = []
        self.fail_list = fail_list
        for name in names:
            self.add_file(name, f"content of {name}")

    @property
    def name(self) -> str:
        return self._path.rsplit("/", 1)[-1]

    @property
    def path(self) -> str:
        return self._path

    def add_file(self, name: str, content: str = "", **kwargs: object) -> FakeFile:
        file = FakeFile(name, content, folder=self, **kwargs)  # type: ignore[arg-type]
        self.children.append(file)
        return file

    def add_subfolder(self, name: str) -> "FakeFolder":
        sub = FakeFolder(f"{self._path}/{name}")
        self.children.append(sub)
        return sub

    def file(self, name: str) -> FakeFile:
        for child in self.children:
            if isinstance(child, FakeFile) and child.name == name:
                return child
        raise KeyError(name)

    async def list_children(self) -> list[object]:
        if self.fail_list:
            raise PermissionError("listing denied")
        return list(self.children)

    def __repr__(self) -> str:
        return f"FakeFolder({self._path!r})"


class FakeBroker:
    """Scripted permission broker.

    ``picked_folders`` and ``save_destinations`` are consumed in order;
    ``None`` entries model a cancelled picker. ``mint_results`` are the
    tokens handed out; ``None`` models a denial.
    """

    def __init__(self) -> None:
        self.picked_folders: list[FakeFolder | None] = []
        self.save_destinations: list[FakeFile | None] = []
        self.mint_results: list[str | None] = []
        self.grants: dict[str, FakeFolder] = {}
        self.released: list[str] = []
        self.suggested_names: list[str] = []
        self.pick_error: Exception | None = None
        self.resolve_error: Exception | None = None

    async def pick_folder(self) -> FakeFolder | None:
        if self.pick_error is not None:
            raise self.pick_error
        return self.picked_folders.pop(0) if self.picked_folders else None

    async def pick_save_destination(self, suggested_name: str) -> FakeFile | None:
        self.suggested_names.append(suggested_name)
        return self.save_destinations.pop(0) if self.save_destinations else None

    async def mint_token(self, folder: FakeFolder) -> str | None:
        token = self.mint_results.pop(0) if self.mint_results else f"tok-{len(self.grants) + 1}"
        if token is not None:
            self.grants[token] = folder
        return token

    async def resolve_token(self, token: str) -> FakeFolder | None:
        if self.resolve_error is not None:
            raise self.resolve_error
        return self.grants.get(token)

    async def release_token(self, token: str) -> None:
        self.released.append(token)
        self.grants.pop(token, None)


class RecordingStatusLine:
    """Status line stub remembering every message it was shown."""

    def __init__(self) -> None:
        self.messages: list[tuple[str, bool]] = []

    def set_message(self, message: str, *, is_error: bool = False) -> None:
        self.messages.append((message, is_error))
