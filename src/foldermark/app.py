"""Application bootstrap and command-line entry point."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Sequence, TextIO, get_type_hints

from .services.bookmark_store import BookmarkStore
from .services.file_list import FileListCache
from .services.permissions import FileHandle, FolderPicker, LocalPermissionBroker, SavePicker
from .services.settings import Settings, SettingsStore, resolve_data_dir
from .ui.domain.folder_session import FolderSession
from .ui.events import EventBus
from .ui.presentation.status_updaters import StatusLineUpdater
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class AppRuntime:
    """Wired collaborators for one running session."""

    settings: Settings
    event_bus: EventBus
    store: BookmarkStore
    broker: LocalPermissionBroker
    session: FolderSession


class StreamStatusLine:
    """Status line that writes each non-empty message to a text stream."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream

    def set_message(self, message: str, *, is_error: bool = False) -> None:
        if not message:
            return
        print(message, file=self._stream)


def configure_logging(debug: bool = False, *, log_dir: Path | None = None, force: bool = False) -> None:
    """Configure logging for the application."""

    level = logging.DEBUG if debug else logging.INFO
    log_path = logging_utils.setup_logging(level, log_dir=log_dir, console=debug, force=force)
    _LOGGER.debug("Logging to %s (level=%s)", log_path, logging.getLevelName(level))


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides)
    except Exception as exc:  # pragma: no cover
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return Settings()


def build_runtime(
    settings: Settings,
    *,
    folder_picker: FolderPicker | None = None,
    save_picker: SavePicker | None = None,
) -> AppRuntime:
    """Construct the store, broker and session for ``settings``."""

    data_dir = resolve_data_dir(settings)
    event_bus: EventBus = EventBus()
    store = BookmarkStore(data_dir, filename=settings.bookmark_filename)
    broker = LocalPermissionBroker(data_dir, folder_picker=folder_picker, save_picker=save_picker)
    session = FolderSession(
        broker,
        store,
        event_bus,
        file_list=FileListCache(settings.file_suffix),
        default_save_name=settings.default_save_name,
    )
    _LOGGER.debug("Runtime ready (data_dir=%s)", data_dir)
    return AppRuntime(settings=settings, event_bus=event_bus, store=store, broker=broker, session=session)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the ``foldermark`` console script."""

    parser = _build_parser()
    args = parser.parse_args(argv)

    settings_path = args.settings_path or os.environ.get("FOLDERMARK_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        return 2
    if args.data_dir:
        overrides["data_dir"] = args.data_dir

    settings = load_settings(resolved_path, store=settings_store, overrides=overrides or None)

    if args.dump_settings:
        _dump_settings(settings, settings_store)
        return 0
    if args.command is None:
        parser.print_help(sys.stderr)
        return 2

    debug = args.debug or settings.debug_logging or _env_flag("FOLDERMARK_DEBUG")
    configure_logging(debug, log_dir=resolve_data_dir(settings) / "logs")

    use_qt_picker = args.command == "save" and not args.folder
    if use_qt_picker:
        return _run_with_qt(settings, args)
    runtime = build_runtime(
        settings,
        folder_picker=_fixed_picker(getattr(args, "folder", None)),
        save_picker=_fixed_save_picker(getattr(args, "destination", None)),
    )
    return asyncio.run(run_command(runtime, args))


@dataclass(slots=True)
class CommandIO:
    """Streams a subcommand reads from and writes to."""

    stdout: TextIO
    stderr: TextIO
    stdin: TextIO


async def run_command(
    runtime: AppRuntime,
    args: argparse.Namespace,
    *,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
    stdin: TextIO | None = None,
) -> int:
    """Run one CLI subcommand against ``runtime``; return the exit status."""

    io = CommandIO(
        stdout=stdout or sys.stdout,
        stderr=stderr or sys.stderr,
        stdin=stdin or sys.stdin,
    )
    updater = StatusLineUpdater(StreamStatusLine(io.stderr), runtime.event_bus)
    session = runtime.session
    try:
        handler = _COMMANDS[args.command]
        ok = await handler(session, args, io)
        await session.wait_for_pending_loads()
    finally:
        updater.dispose()
    return 1 if not ok or session.derived.has_error else 0


# ----------------------------------------------------------------------
# Subcommands
# ----------------------------------------------------------------------


async def _cmd_list(session: FolderSession, args: argparse.Namespace, io: CommandIO) -> bool:
    await session.load_bookmark_list()
    for token in session.available_tokens:
        print(token, file=io.stdout)
    return True


async def _cmd_save(session: FolderSession, args: argparse.Namespace, io: CommandIO) -> bool:
    await session.select_folder()
    if not session.is_active:
        return False
    await session.save_bookmark()
    if session.active_token is None:
        return False
    print(session.active_token, file=io.stdout)
    return True


async def _cmd_open(session: FolderSession, args: argparse.Namespace, io: CommandIO) -> bool:
    if not await _open_bookmark(session, args.token):
        return False
    for file in session.files:
        print(file.name, file=io.stdout)
    return True


async def _cmd_release(session: FolderSession, args: argparse.Namespace, io: CommandIO) -> bool:
    await session.load_bookmark_list()
    session.select_token(args.token)
    if session.selected_token is None:
        return False
    await session.release_bookmark()
    return True


async def _cmd_cat(session: FolderSession, args: argparse.Namespace, io: CommandIO) -> bool:
    if not await _open_file(session, args.token, args.name, io):
        return False
    io.stdout.write(session.edited_content or "")
    return True


async def _cmd_write(session: FolderSession, args: argparse.Namespace, io: CommandIO) -> bool:
    if not await _open_file(session, args.token, args.name, io):
        return False
    session.set_edited_content(io.stdin.read())
    await session.overwrite()
    return True


async def _cmd_save_as(session: FolderSession, args: argparse.Namespace, io: CommandIO) -> bool:
    if not await _open_file(session, args.token, args.name, io):
        return False
    await session.save_as()
    return True


async def _cmd_delete(session: FolderSession, args: argparse.Namespace, io: CommandIO) -> bool:
    if not await _open_file(session, args.token, args.name, io):
        return False
    await session.delete_selected_file()
    return True


_COMMANDS: Dict[str, Callable[[FolderSession, argparse.Namespace, CommandIO], Awaitable[bool]]] = {
    "list": _cmd_list,
    "save": _cmd_save,
    "open": _cmd_open,
    "release": _cmd_release,
    "cat": _cmd_cat,
    "write": _cmd_write,
    "save-as": _cmd_save_as,
    "delete": _cmd_delete,
}


async def _open_bookmark(session: FolderSession, token: str) -> bool:
    await session.load_bookmark_list()
    session.select_token(token)
    if session.selected_token is None:
        return False
    await session.load_selected_bookmark()
    return session.active_token == token and not session.derived.has_error


async def _open_file(session: FolderSession, token: str, name: str, io: CommandIO) -> bool:
    if not await _open_bookmark(session, token):
        return False
    target = _find_file(session.files, name)
    if target is None:
        print(f"Error: No file named '{name}' in {session.active_folder_path}", file=io.stderr)
        return False
    task = session.select_file(target)
    if task is not None:
        await task
    return session.edited_content is not None


def _find_file(files: Sequence[FileHandle], name: str) -> FileHandle | None:
    for file in files:
        if file.name == name:
            return file
    return None


# ----------------------------------------------------------------------
# Qt runtime
# ----------------------------------------------------------------------


def _run_with_qt(settings: Settings, args: argparse.Namespace) -> int:
    """Run a command that needs the native folder picker on a qasync loop."""

    try:
        from PySide6.QtWidgets import QApplication
    except ImportError as exc:  # pragma: no cover - depends on desktop stack
        raise RuntimeError("PySide6 must be installed to show the folder picker.") from exc
    try:
        from qasync import QEventLoop
    except ImportError as exc:  # pragma: no cover - depends on env setup
        raise RuntimeError("qasync is required to run the async Qt event loop.") from exc

    from .ui.presentation.dialogs import QtPickerProvider

    app = QApplication.instance() or QApplication(sys.argv[:1])
    app.setApplicationName("Foldermark")
    loop = QEventLoop(app)
    asyncio.set_event_loop(loop)

    pickers = QtPickerProvider()
    runtime = build_runtime(
        settings,
        folder_picker=pickers.pick_folder,
        save_picker=pickers.pick_save_destination,
    )
    try:
        return loop.run_until_complete(run_command(runtime, args))
    finally:
        loop.close()


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------


def _fixed_picker(folder: str | None) -> FolderPicker | None:
    if not folder:
        return None
    return lambda: Path(folder)


def _fixed_save_picker(destination: str | None) -> SavePicker | None:
    if not destination:
        return None
    return lambda _suggested: Path(destination)


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _dump_settings(settings: Settings, store: SettingsStore, *, stream: TextIO | None = None) -> None:
    target = stream or sys.stdout
    payload = {
        "settings_path": str(store.path),
        "data_dir": str(resolve_data_dir(settings)),
        "settings": asdict(settings),
    }
    json.dump(payload, target, indent=2, sort_keys=True)
    target.write("\n")


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    fields = Settings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        overrides[key] = _coerce_value(type_hints.get(key), raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    if annotation is bool:
        return _parse_bool(raw_value)
    if raw_value.lower() in {"none", "null"} and annotation is not str:
        return None
    return raw_value


def _parse_bool(value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot interpret '{value}' as a boolean.")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="foldermark",
        description="Bookmark folders, reopen them later and edit their text files.",
    )
    parser.add_argument("--settings-path", metavar="PATH", help="Override ~/.foldermark/settings.json.")
    parser.add_argument("--data-dir", metavar="PATH", help="Directory holding bookmarks and grants.")
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings for this run (repeatable).",
    )
    parser.add_argument("--dump-settings", action="store_true", help="Print effective settings and exit.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging on the console.")

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    commands.add_parser("list", help="List stored bookmarks.")
    save = commands.add_parser("save", help="Bookmark a folder (opens a picker without FOLDER).")
    save.add_argument("folder", nargs="?", help="Folder to bookmark.")
    open_cmd = commands.add_parser("open", help="Open a bookmark and list its text files.")
    open_cmd.add_argument("token")
    release = commands.add_parser("release", help="Release a bookmark.")
    release.add_argument("token")
    for name, help_text in (
        ("cat", "Print a file from a bookmarked folder."),
        ("write", "Overwrite a file from a bookmarked folder with stdin."),
        ("delete", "Delete a file from a bookmarked folder."),
    ):
        sub = commands.add_parser(name, help=help_text)
        sub.add_argument("token")
        sub.add_argument("name")
    save_as = commands.add_parser("save-as", help="Copy a file's content to a new destination.")
    save_as.add_argument("token")
    save_as.add_argument("name")
    save_as.add_argument("destination")
    return parser


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())
