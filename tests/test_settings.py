"""Tests for the settings persistence layer."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

from foldermark.services.settings import Settings, SettingsStore, default_data_dir, resolve_data_dir


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("FOLDERMARK_DATA_DIR", "FOLDERMARK_FILE_SUFFIX", "FOLDERMARK_DEBUG_LOGGING"):
        monkeypatch.delenv(name, raising=False)


def test_load_returns_defaults_when_file_missing(tmp_path: Path) -> None:
    settings = SettingsStore(tmp_path / "settings.json").load()

    assert settings == Settings()
    assert settings.bookmark_filename == "bookmarkDemo.json"
    assert settings.file_suffix == ".txt"


def test_save_and_load_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "settings.json"
    original = Settings(data_dir=str(tmp_path / "data"), file_suffix=".md", debug_logging=True)

    SettingsStore(path).save(original)
    reloaded = SettingsStore(path).load()

    assert reloaded == original
    assert json.loads(path.read_text(encoding="utf-8"))["version"] == 1


def test_unknown_keys_are_ignored(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"file_suffix": ".log", "theme": "dark"}), encoding="utf-8")

    settings = SettingsStore(path).load()

    assert settings.file_suffix == ".log"


@pytest.mark.parametrize("body", ["{broken", "[1, 2, 3]"])
def test_invalid_file_falls_back_to_defaults(tmp_path: Path, body: str) -> None:
    path = tmp_path / "settings.json"
    path.write_text(body, encoding="utf-8")

    assert SettingsStore(path).load() == Settings()


def test_cli_overrides_apply_on_top_of_file(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    SettingsStore(path).save(Settings(file_suffix=".md"))

    settings = SettingsStore(path).load(overrides={"default_save_name": "draft.txt", "bogus": 1})

    assert settings.file_suffix == ".md"
    assert settings.default_save_name == "draft.txt"


def test_environment_overrides_win(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("FOLDERMARK_DATA_DIR", str(tmp_path / "env-data"))
    monkeypatch.setenv("FOLDERMARK_FILE_SUFFIX", ".text")
    monkeypatch.setenv("FOLDERMARK_DEBUG_LOGGING", "yes")

    settings = SettingsStore(tmp_path / "settings.json").load(overrides={"file_suffix": ".md"})

    assert settings.data_dir == str(tmp_path / "env-data")
    assert settings.file_suffix == ".text"
    assert settings.debug_logging is True


def test_resolve_data_dir_prefers_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("FOLDERMARK_DATA_DIR", str(tmp_path / "env"))

    assert resolve_data_dir(Settings(data_dir=str(tmp_path / "cfg"))) == tmp_path / "cfg"
    assert resolve_data_dir(Settings()) == tmp_path / "env"


@pytest.mark.skipif(sys.platform.startswith("win"), reason="XDG layout only")
def test_default_data_dir_follows_xdg(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))

    assert default_data_dir() == tmp_path / "foldermark"
    assert resolve_data_dir() == tmp_path / "foldermark"
