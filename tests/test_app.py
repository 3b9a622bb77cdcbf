"""Tests covering the application bootstrap helpers and the CLI."""

from __future__ import annotations

import io
import json
from pathlib import Path

import pytest

from foldermark import app
from foldermark.services.settings import Settings


@pytest.fixture(autouse=True)
def _isolate(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(app, "configure_logging", lambda *args, **kwargs: None)
    for name in (
        "FOLDERMARK_DATA_DIR",
        "FOLDERMARK_FILE_SUFFIX",
        "FOLDERMARK_DEBUG_LOGGING",
        "FOLDERMARK_SETTINGS_PATH",
        "FOLDERMARK_DEBUG",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def folder(tmp_path: Path) -> Path:
    target = tmp_path / "docs"
    target.mkdir()
    (target / "a.txt").write_text("alpha", encoding="utf-8")
    (target / "b.md").write_text("markdown", encoding="utf-8")
    return target


class Cli:
    """Runs ``main`` against an isolated data dir and settings file."""

    def __init__(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        self._base = [
            "--settings-path",
            str(tmp_path / "settings.json"),
            "--data-dir",
            str(tmp_path / "appdata"),
        ]
        self._capsys = capsys
        self.data_dir = tmp_path / "appdata"

    def __call__(self, *argv: str) -> tuple[int, str, str]:
        code = app.main([*self._base, *argv])
        captured = self._capsys.readouterr()
        return code, captured.out, captured.err


@pytest.fixture
def cli(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> Cli:
    return Cli(tmp_path, capsys)


def _save(cli: Cli, folder: Path) -> str:
    code, out, _ = cli("save", str(folder))
    assert code == 0
    return out.strip()


def test_save_prints_token_and_persists_it(cli: Cli, folder: Path) -> None:
    code, out, err = cli("save", str(folder))

    token = out.strip()
    assert code == 0
    assert token
    assert "Bookmark saved successfully!" in err
    stored = json.loads((cli.data_dir / "bookmarkDemo.json").read_text(encoding="utf-8"))
    assert stored == [token]


def test_save_rejects_missing_folder(cli: Cli, tmp_path: Path) -> None:
    code, out, err = cli("save", str(tmp_path / "nowhere"))

    assert code == 1
    assert out == ""
    assert "Error:" in err


def test_list_reports_stored_tokens(cli: Cli, folder: Path) -> None:
    token = _save(cli, folder)

    code, out, err = cli("list")

    assert code == 0
    assert out.splitlines() == [token]
    assert "Bookmarks loaded." in err


def test_list_on_empty_store(cli: Cli) -> None:
    code, out, err = cli("list")

    assert code == 0
    assert out == ""
    assert "No bookmarks found." in err


def test_open_lists_text_files(cli: Cli, folder: Path) -> None:
    token = _save(cli, folder)

    code, out, err = cli("open", token)

    assert code == 0
    assert out.splitlines() == ["a.txt"]
    assert "Bookmark loaded successfully, file list updated!" in err


def test_open_unknown_token_fails(cli: Cli) -> None:
    code, _, err = cli("open", "unknown")

    assert code == 1
    assert "not in the bookmark list" in err


def test_cat_write_and_delete(cli: Cli, folder: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    token = _save(cli, folder)

    code, out, _ = cli("cat", token, "a.txt")
    assert code == 0
    assert out == "alpha"

    monkeypatch.setattr("sys.stdin", io.StringIO("rewritten"))
    code, _, err = cli("write", token, "a.txt")
    assert code == 0
    assert "File 'a.txt' overwritten successfully!" in err
    assert (folder / "a.txt").read_text(encoding="utf-8") == "rewritten"

    code, _, err = cli("delete", token, "a.txt")
    assert code == 0
    assert "File deleted successfully!" in err
    assert not (folder / "a.txt").exists()


def test_cat_missing_file(cli: Cli, folder: Path) -> None:
    token = _save(cli, folder)

    code, _, err = cli("cat", token, "b.md")

    assert code == 1
    assert "No file named 'b.md'" in err


def test_save_as_copies_content(cli: Cli, folder: Path) -> None:
    token = _save(cli, folder)
    destination = folder / "copy.txt"

    code, _, err = cli("save-as", token, "a.txt", str(destination))

    assert code == 0
    assert destination.read_text(encoding="utf-8") == "alpha"
    assert "File 'copy.txt' saved successfully!" in err


def test_release_revokes_bookmark(cli: Cli, folder: Path) -> None:
    token = _save(cli, folder)

    code, _, err = cli("release", token)
    assert code == 0
    assert "Bookmark released and removed from file successfully." in err

    code, out, _ = cli("list")
    assert out == ""
    code, _, _ = cli("open", token)
    assert code == 1


def test_no_command_prints_help(cli: Cli) -> None:
    code, _, err = cli()

    assert code == 2
    assert "usage:" in err


def test_dump_settings(cli: Cli) -> None:
    code, out, _ = cli("--set", "file_suffix=.md", "--dump-settings")

    payload = json.loads(out)
    assert code == 0
    assert payload["data_dir"] == str(cli.data_dir)
    assert payload["settings"]["file_suffix"] == ".md"


def test_bad_override_is_rejected(cli: Cli) -> None:
    code, _, err = cli("--set", "nonsense", "list")

    assert code == 2
    assert "Invalid --set override" in err


def test_coerce_cli_overrides_casts_types() -> None:
    overrides = app._coerce_cli_overrides(
        ["debug_logging=yes", "file_suffix=.md", "data_dir=none"]
    )

    assert overrides == {"debug_logging": True, "file_suffix": ".md", "data_dir": None}


def test_coerce_cli_overrides_rejects_unknown_field() -> None:
    with pytest.raises(ValueError):
        app._coerce_cli_overrides(["theme=dark"])


def test_build_runtime_uses_settings(tmp_path: Path) -> None:
    settings = Settings(data_dir=str(tmp_path), bookmark_filename="marks.json", file_suffix=".md")

    runtime = app.build_runtime(settings)

    assert runtime.store.path == tmp_path / "marks.json"
    assert runtime.broker.registry_path == tmp_path / "grants.json"
    assert not runtime.session.is_active
