"""Persistence for the set of folder access grants ("bookmarks").

The store keeps a flat JSON array of opaque token strings in
``<data_dir>/bookmarkDemo.json``. Every mutation re-reads the whole file,
applies the change and writes the whole file back, so mutations are
serialized through one :class:`asyncio.Lock` per store.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Iterable, Iterator

from ..utils import file_io
from .errors import BookmarkIOError, BookmarkParseError, FoldermarkError

__all__ = ["BookmarkSet", "BookmarkStore", "DEFAULT_BOOKMARK_FILENAME"]

LOGGER = logging.getLogger(__name__)
DEFAULT_BOOKMARK_FILENAME = "bookmarkDemo.json"


@dataclass(slots=True, frozen=True)
class BookmarkSet:
    """Deduplicated tokens in first-seen order.

    Attributes:
        tokens: The stored tokens, without duplicates.
        error: Set when the backing file could not be read or parsed; the
            tokens are then empty.
    """

    tokens: tuple[str, ...] = ()
    error: FoldermarkError | None = None

    @classmethod
    def from_iterable(cls, values: Iterable[str]) -> BookmarkSet:
        return cls(tokens=tuple(dict.fromkeys(values)))

    @property
    def parse_error(self) -> BookmarkParseError | None:
        return self.error if isinstance(self.error, BookmarkParseError) else None

    def with_token(self, token: str) -> BookmarkSet:
        if token in self.tokens:
            return self
        return replace(self, tokens=(*self.tokens, token))

    def without_token(self, token: str) -> BookmarkSet:
        if token not in self.tokens:
            return self
        return replace(self, tokens=tuple(t for t in self.tokens if t != token))

    def __contains__(self, token: object) -> bool:
        return token in self.tokens

    def __iter__(self) -> Iterator[str]:
        return iter(self.tokens)

    def __len__(self) -> int:
        return len(self.tokens)


class BookmarkStore:
    """Persistence adapter for :class:`BookmarkSet`."""

    def __init__(self, data_dir: Path | str, *, filename: str = DEFAULT_BOOKMARK_FILENAME) -> None:
        self._path = Path(data_dir).expanduser() / filename
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        """Return the file backing this store."""

        return self._path

    def load(self) -> BookmarkSet:
        """Read the stored tokens.

        A missing file is an empty set. Unreadable or malformed content is
        also an empty set, with :attr:`BookmarkSet.error` describing why.
        Never raises.
        """

        if not self._path.exists():
            return BookmarkSet()
        try:
            text = file_io.read_text(self._path, encoding="utf-8")
        except FileNotFoundError:
            return BookmarkSet()
        except UnicodeDecodeError as exc:
            return self._parse_failure(f"not valid text: {exc}")
        except OSError as exc:
            LOGGER.warning("Bookmark file %s could not be read: %s", self._path, exc)
            return BookmarkSet(
                error=BookmarkIOError(
                    message=f"Could not read the bookmark file: {exc}",
                    details={"path": str(self._path)},
                )
            )

        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            return self._parse_failure(f"not valid JSON: {exc}")
        if not isinstance(payload, list):
            return self._parse_failure("expected a JSON array")
        if not all(isinstance(item, str) for item in payload):
            return self._parse_failure("expected an array of strings")
        return BookmarkSet.from_iterable(payload)

    async def add(self, token: str) -> BookmarkSet:
        """Insert ``token`` (no-op when present), persist, and return the new set."""

        _require_token(token)
        async with self._lock:
            return await asyncio.to_thread(self._mutate, token, True)

    async def remove(self, token: str) -> BookmarkSet:
        """Discard ``token`` (no-op when absent), persist, and return the new set."""

        _require_token(token)
        async with self._lock:
            return await asyncio.to_thread(self._mutate, token, False)

    def _mutate(self, token: str, insert: bool) -> BookmarkSet:
        current = self.load()
        if isinstance(current.error, BookmarkIOError):
            raise current.error
        if current.parse_error is not None:
            LOGGER.warning("Replacing corrupt bookmark file %s", self._path)
        updated = current.with_token(token) if insert else current.without_token(token)
        self._persist(updated)
        LOGGER.debug(
            "Bookmark %s: %d token(s) stored in %s",
            "added" if insert else "removed",
            len(updated),
            self._path,
        )
        return updated

    def _persist(self, bookmarks: BookmarkSet) -> None:
        body = json.dumps(list(bookmarks.tokens))
        try:
            file_io.write_text(self._path, body, atomic=True)
        except OSError as exc:
            raise BookmarkIOError(
                message=f"Could not write the bookmark file: {exc}",
                details={"path": str(self._path)},
            ) from exc

    def _parse_failure(self, reason: str) -> BookmarkSet:
        LOGGER.warning("Bookmark file %s is corrupt (%s); treating it as empty", self._path, reason)
        return BookmarkSet(
            error=BookmarkParseError(
                message=f"The bookmark file is corrupt ({reason})",
                details={"path": str(self._path)},
            )
        )


def _require_token(token: str) -> None:
    if not isinstance(token, str) or not token:
        raise ValueError("Bookmark tokens must be non-empty strings")
