"""Tests for the bookmark persistence layer."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from foldermark.services import bookmark_store as bookmark_store_module
from foldermark.services.bookmark_store import BookmarkSet, BookmarkStore
from foldermark.services.errors import BookmarkIOError, BookmarkParseError


@pytest.fixture
def store(tmp_path: Path) -> BookmarkStore:
    return BookmarkStore(tmp_path / "appdata")


def _stored(store: BookmarkStore) -> list[str]:
    return json.loads(store.path.read_text(encoding="utf-8"))


class TestLoad:
    """Tests for BookmarkStore.load."""

    def test_missing_file_is_empty_without_error(self, store: BookmarkStore) -> None:
        """A store that was never written loads as an empty set."""
        result = store.load()

        assert len(result) == 0
        assert result.error is None
        assert not store.path.exists()

    def test_invalid_json_is_empty_with_parse_error(self, store: BookmarkStore) -> None:
        """Malformed JSON is recovered as empty and flagged."""
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{not json", encoding="utf-8")

        result = store.load()

        assert result.tokens == ()
        assert isinstance(result.parse_error, BookmarkParseError)

    @pytest.mark.parametrize("payload", ['{"a": 1}', '["a", 2]', '"token"'])
    def test_wrong_shape_is_parse_error(self, store: BookmarkStore, payload: str) -> None:
        """Anything but an array of strings counts as corrupt."""
        store.path.parent.mkdir(parents=True)
        store.path.write_text(payload, encoding="utf-8")

        result = store.load()

        assert result.tokens == ()
        assert result.parse_error is not None

    def test_non_utf8_file_is_parse_error(self, store: BookmarkStore) -> None:
        """The bookmark file must be UTF-8; other encodings are not guessed."""
        store.path.parent.mkdir(parents=True)
        store.path.write_bytes('["café"]'.encode("latin-1"))

        result = store.load()

        assert result.tokens == ()
        assert isinstance(result.parse_error, BookmarkParseError)

    def test_utf8_bom_is_accepted(self, store: BookmarkStore) -> None:
        store.path.parent.mkdir(parents=True)
        store.path.write_bytes(b'\xef\xbb\xbf["a"]')

        result = store.load()

        assert result.tokens == ("a",)
        assert result.error is None

    def test_duplicates_on_disk_collapse(self, store: BookmarkStore) -> None:
        """Hand-edited duplicates are folded into one entry."""
        store.path.parent.mkdir(parents=True)
        store.path.write_text('["a", "b", "a"]', encoding="utf-8")

        assert store.load().tokens == ("a", "b")

    def test_filename_is_configurable(self, tmp_path: Path) -> None:
        """The backing file name defaults to bookmarkDemo.json but can change."""
        assert BookmarkStore(tmp_path).path == tmp_path / "bookmarkDemo.json"
        assert BookmarkStore(tmp_path, filename="marks.json").path == tmp_path / "marks.json"


class TestAdd:
    """Tests for BookmarkStore.add."""

    @pytest.mark.asyncio
    async def test_add_creates_directory_and_file(self, store: BookmarkStore) -> None:
        """The first add creates the app-data directory."""
        result = await store.add("tok1")

        assert result.tokens == ("tok1",)
        assert _stored(store) == ["tok1"]

    @pytest.mark.asyncio
    async def test_add_is_idempotent(self, store: BookmarkStore) -> None:
        """Adding the same token twice keeps one entry and identical bytes."""
        await store.add("t")
        first_bytes = store.path.read_bytes()

        result = await store.add("t")

        assert len(result) == 1
        assert store.path.read_bytes() == first_bytes

    @pytest.mark.asyncio
    async def test_add_then_load_round_trip(self, store: BookmarkStore) -> None:
        await store.add("t")

        assert "t" in store.load()

    @pytest.mark.asyncio
    async def test_add_replaces_corrupt_file(self, store: BookmarkStore) -> None:
        """A corrupt file is treated as empty and overwritten."""
        store.path.parent.mkdir(parents=True)
        store.path.write_text("garbage", encoding="utf-8")

        result = await store.add("fresh")

        assert result.tokens == ("fresh",)
        assert _stored(store) == ["fresh"]

    @pytest.mark.asyncio
    async def test_failed_write_leaves_file_untouched(
        self, store: BookmarkStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """An IO failure raises BookmarkIOError and keeps the previous content."""
        await store.add("keep")
        before = store.path.read_bytes()

        def _boom(*_args, **_kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(bookmark_store_module.file_io, "write_text", _boom)

        with pytest.raises(BookmarkIOError):
            await store.add("lost")

        assert store.path.read_bytes() == before

    @pytest.mark.asyncio
    async def test_empty_token_rejected(self, store: BookmarkStore) -> None:
        with pytest.raises(ValueError):
            await store.add("")


class TestRemove:
    """Tests for BookmarkStore.remove."""

    @pytest.mark.asyncio
    async def test_remove_one_of_two(self, store: BookmarkStore) -> None:
        """Removing "a" from {"a", "b"} leaves {"b"}."""
        await store.add("a")
        await store.add("b")

        result = await store.remove("a")

        assert result.tokens == ("b",)
        assert _stored(store) == ["b"]

    @pytest.mark.asyncio
    async def test_remove_absent_token_keeps_membership(self, store: BookmarkStore) -> None:
        await store.add("a")
        await store.add("b")

        result = await store.remove("zzz")

        assert set(result) == {"a", "b"}
        assert set(_stored(store)) == {"a", "b"}

    @pytest.mark.asyncio
    async def test_remove_last_writes_empty_array(self, store: BookmarkStore) -> None:
        """An emptied store persists as [] rather than disappearing."""
        await store.add("only")

        await store.remove("only")

        assert store.path.exists()
        assert _stored(store) == []

    @pytest.mark.asyncio
    async def test_remove_then_load_round_trip(self, store: BookmarkStore) -> None:
        await store.add("t")
        await store.remove("t")

        assert "t" not in store.load()


class TestSerialization:
    """Concurrent mutations must not lose each other's updates."""

    @pytest.mark.asyncio
    async def test_concurrent_adds_are_all_kept(self, store: BookmarkStore) -> None:
        tokens = [f"tok-{index}" for index in range(12)]

        await asyncio.gather(*(store.add(token) for token in tokens))

        assert set(store.load()) == set(tokens)

    @pytest.mark.asyncio
    async def test_concurrent_add_and_remove(self, store: BookmarkStore) -> None:
        await store.add("old")

        await asyncio.gather(store.add("new"), store.remove("old"))

        assert store.load().tokens == ("new",)


class TestBookmarkSet:
    """Tests for the BookmarkSet value type."""

    def test_from_iterable_keeps_first_seen_order(self) -> None:
        assert BookmarkSet.from_iterable(["b", "a", "b"]).tokens == ("b", "a")

    def test_with_and_without_are_no_ops_when_unchanged(self) -> None:
        bookmarks = BookmarkSet(tokens=("a",))

        assert bookmarks.with_token("a") is bookmarks
        assert bookmarks.without_token("b") is bookmarks
        assert bookmarks.with_token("b").tokens == ("a", "b")
        assert bookmarks.without_token("a").tokens == ()
