"""Host permission capabilities: pickers, folder handles and access grants.

The session only talks to the :class:`PermissionBroker` protocol. Hosts
with a sandbox permission model plug in their own broker; plain desktop
hosts use :class:`LocalPermissionBroker`, which issues Fernet-encrypted
grant tokens backed by a local grant registry.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import os
import threading
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Protocol, Sequence, Union, runtime_checkable

from cryptography.fernet import Fernet, InvalidToken

from ..utils import file_io

__all__ = [
    "FileHandle",
    "FolderHandle",
    "PermissionBroker",
    "LocalFileHandle",
    "LocalFolderHandle",
    "LocalPermissionBroker",
    "FolderPicker",
    "SavePicker",
]

LOGGER = logging.getLogger(__name__)
_KEY_FILENAME = "grants.key"
_REGISTRY_FILENAME = "grants.json"


@runtime_checkable
class FileHandle(Protocol):
    """Read/write capability for a single file."""

    @property
    def name(self) -> str: ...

    @property
    def path(self) -> str: ...

    async def read_text(self) -> str: ...

    async def write_text(self, content: str) -> None: ...

    async def delete(self) -> None: ...


@runtime_checkable
class FolderHandle(Protocol):
    """Live capability to enumerate one folder."""

    @property
    def name(self) -> str: ...

    @property
    def path(self) -> str: ...

    async def list_children(self) -> Sequence[Union[FileHandle, "FolderHandle"]]: ...


class PermissionBroker(Protocol):
    """Host capability surface consumed by the folder session.

    ``mint_token`` returns ``None`` when the host denies a durable grant and
    ``resolve_token`` returns ``None`` for invalid or revoked tokens.
    """

    async def pick_folder(self) -> FolderHandle | None: ...

    async def pick_save_destination(self, suggested_name: str) -> FileHandle | None: ...

    async def mint_token(self, folder: FolderHandle) -> str | None: ...

    async def resolve_token(self, token: str) -> FolderHandle | None: ...

    async def release_token(self, token: str) -> None: ...


FolderPicker = Callable[[], Union[Path, str, None, Awaitable[Union[Path, str, None]]]]
SavePicker = Callable[[str], Union[Path, str, None, Awaitable[Union[Path, str, None]]]]


# ----------------------------------------------------------------------
# Path-backed handles
# ----------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class LocalFileHandle:
    """File capability backed by a filesystem path."""

    file_path: Path

    @property
    def name(self) -> str:
        return self.file_path.name

    @property
    def path(self) -> str:
        return str(self.file_path)

    async def read_text(self) -> str:
        return await asyncio.to_thread(file_io.read_text, self.file_path, normalize_newlines=False)

    async def write_text(self, content: str) -> None:
        await asyncio.to_thread(file_io.write_text, self.file_path, content)

    async def delete(self) -> None:
        await asyncio.to_thread(self.file_path.unlink)


@dataclass(slots=True, frozen=True)
class LocalFolderHandle:
    """Folder capability backed by a filesystem path."""

    folder_path: Path

    @property
    def name(self) -> str:
        return self.folder_path.name

    @property
    def path(self) -> str:
        return str(self.folder_path)

    async def list_children(self) -> list[LocalFileHandle | LocalFolderHandle]:
        return await asyncio.to_thread(self._scan)

    def _scan(self) -> list[LocalFileHandle | LocalFolderHandle]:
        children: list[LocalFileHandle | LocalFolderHandle] = []
        with os.scandir(self.folder_path) as entries:
            for entry in entries:
                if entry.is_file():
                    children.append(LocalFileHandle(Path(entry.path)))
                elif entry.is_dir():
                    children.append(LocalFolderHandle(Path(entry.path)))
        return children


# ----------------------------------------------------------------------
# Local broker
# ----------------------------------------------------------------------


class LocalPermissionBroker:
    """Broker for hosts without a sandbox permission model.

    Tokens are Fernet ciphertexts of ``{"path", "grant"}``. A grant stays
    valid while its id is listed in the grant registry and the folder still
    exists; :meth:`release_token` drops the id.
    """

    def __init__(
        self,
        data_dir: Path | str,
        *,
        folder_picker: FolderPicker | None = None,
        save_picker: SavePicker | None = None,
        key_path: Path | None = None,
    ) -> None:
        root = Path(data_dir).expanduser()
        self._key_path = key_path or (root / _KEY_FILENAME)
        self._registry_path = root / _REGISTRY_FILENAME
        self._folder_picker = folder_picker
        self._save_picker = save_picker
        self._fernet: Fernet | None = None
        self._registry_lock = threading.Lock()

    @property
    def registry_path(self) -> Path:
        return self._registry_path

    def set_folder_picker(self, picker: FolderPicker | None) -> None:
        self._folder_picker = picker

    def set_save_picker(self, picker: SavePicker | None) -> None:
        self._save_picker = picker

    # ------------------------------------------------------------------
    # Pickers
    # ------------------------------------------------------------------
    async def pick_folder(self) -> LocalFolderHandle | None:
        if self._folder_picker is None:
            raise RuntimeError("No folder picker is configured")
        selected = await _call_picker(self._folder_picker)
        if selected is None:
            return None
        folder = Path(selected).expanduser().resolve()
        if not folder.is_dir():
            raise NotADirectoryError(f"'{folder}' is not a folder")
        return LocalFolderHandle(folder)

    async def pick_save_destination(self, suggested_name: str) -> LocalFileHandle | None:
        if self._save_picker is None:
            raise RuntimeError("No save picker is configured")
        selected = await _call_picker(self._save_picker, suggested_name)
        if selected is None:
            return None
        return LocalFileHandle(Path(selected).expanduser().resolve())

    # ------------------------------------------------------------------
    # Grants
    # ------------------------------------------------------------------
    async def mint_token(self, folder: FolderHandle) -> str | None:
        target = Path(folder.path)
        if not target.is_dir():
            LOGGER.info("Refusing grant for missing folder %s", target)
            return None
        grant_id = uuid.uuid4().hex
        payload = json.dumps({"path": str(target), "grant": grant_id}).encode("utf-8")
        token = self._get_fernet().encrypt(payload).decode("ascii")
        await asyncio.to_thread(self._update_registry, grant_id, str(target))
        LOGGER.debug("Minted grant %s for %s", grant_id, target)
        return token

    async def resolve_token(self, token: str) -> LocalFolderHandle | None:
        payload = self._decode(token)
        if payload is None:
            return None
        grants = await asyncio.to_thread(self._read_registry)
        grant_id = payload["grant"]
        if grant_id not in grants:
            LOGGER.info("Grant %s has been released", grant_id)
            return None
        folder = Path(payload["path"])
        if not folder.is_dir():
            LOGGER.info("Granted folder %s no longer exists", folder)
            return None
        return LocalFolderHandle(folder)

    async def release_token(self, token: str) -> None:
        payload = self._decode(token)
        if payload is None:
            return
        await asyncio.to_thread(self._update_registry, payload["grant"], None)
        LOGGER.debug("Released grant %s", payload["grant"])

    def _decode(self, token: str) -> dict[str, str] | None:
        try:
            raw = self._get_fernet().decrypt(token.encode("ascii"))
        except (InvalidToken, UnicodeEncodeError):
            LOGGER.info("Rejected an access token that was not issued by this host")
            return None
        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return None
        if not isinstance(payload, dict):
            return None
        path = payload.get("path")
        grant = payload.get("grant")
        if not isinstance(path, str) or not isinstance(grant, str):
            return None
        return {"path": path, "grant": grant}

    def _read_registry(self) -> dict[str, str]:
        if not self._registry_path.exists():
            return {}
        try:
            data = json.loads(file_io.read_text(self._registry_path))
        except FileNotFoundError:
            return {}
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            LOGGER.warning("Grant registry %s is corrupt: %s", self._registry_path, exc)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(key): str(value) for key, value in data.items()}

    def _update_registry(self, grant_id: str, path: str | None) -> None:
        with self._registry_lock:
            grants = self._read_registry()
            if path is None:
                if grants.pop(grant_id, None) is None:
                    return
            else:
                grants[grant_id] = path
            file_io.write_text(self._registry_path, json.dumps(grants, indent=2, sort_keys=True))

    def _get_fernet(self) -> Fernet:
        if self._fernet is None:
            self._fernet = Fernet(self._load_or_create_key())
        return self._fernet

    def _load_or_create_key(self) -> bytes:
        path = self._key_path
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists():
            return path.read_bytes().strip()
        key = Fernet.generate_key()
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_bytes(key)
        if os.name != "nt":  # pragma: no cover - depends on OS
            os.chmod(tmp_path, 0o600)
        tmp_path.replace(path)
        return key


async def _call_picker(picker: Callable[..., Any], *args: Any) -> Path | str | None:
    result = picker(*args)
    if inspect.isawaitable(result):
        result = await result
    return result
