"""Settings dataclass and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

__all__ = [
    "Settings",
    "SettingsStore",
    "default_data_dir",
    "resolve_data_dir",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".foldermark"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
_APP_DIR_NAME = "Foldermark"
_DATA_DIR_ENV = "FOLDERMARK_DATA_DIR"
_ENV_OVERRIDES: Mapping[str, str] = {
    _DATA_DIR_ENV: "data_dir",
    "FOLDERMARK_FILE_SUFFIX": "file_suffix",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "FOLDERMARK_DEBUG_LOGGING": "debug_logging",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}


@dataclass(slots=True)
class Settings:
    """User-configurable settings persisted between sessions."""

    data_dir: str | None = None
    bookmark_filename: str = "bookmarkDemo.json"
    file_suffix: str = ".txt"
    default_save_name: str = "new_file.txt"
    debug_logging: bool = False


def default_data_dir() -> Path:
    """Return the host-standard application data directory.

    ``%LOCALAPPDATA%\\Foldermark`` on Windows, ``$XDG_DATA_HOME/foldermark``
    (or ``~/.local/share/foldermark``) elsewhere.
    """

    if sys.platform.startswith("win"):
        base = os.environ.get("LOCALAPPDATA")
        if base:
            return Path(base) / _APP_DIR_NAME
        return Path.home() / "AppData" / "Local" / _APP_DIR_NAME
    xdg_home = os.environ.get("XDG_DATA_HOME")
    base_dir = Path(xdg_home) if xdg_home else Path.home() / ".local" / "share"
    return base_dir / _APP_DIR_NAME.lower()


def resolve_data_dir(settings: Settings | None = None) -> Path:
    """Resolve the data directory: settings, then environment, then host default."""

    configured = getattr(settings, "data_dir", None) if settings is not None else None
    if configured:
        return Path(configured).expanduser()
    env_override = os.environ.get(_DATA_DIR_ENV)
    if env_override:
        return Path(env_override).expanduser()
    return default_data_dir()


class SettingsStore:
    """Persistence adapter for :class:`Settings`."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        """Return the resolved path backing this store."""

        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, applying CLI/environment overrides when present."""

        payload = self._read_payload()
        settings = Settings()
        if payload:
            data = _filter_fields(payload)
            try:
                settings = Settings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings()
        LOGGER.debug("Settings loaded from %s", self._path)

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="CLI")

        return self._apply_env_overrides(settings)

    def save(self, settings: Settings) -> Path:
        """Persist settings to disk with atomic file writes."""

        data: Dict[str, Any] = asdict(settings)
        data["version"] = _SETTINGS_VERSION
        body = json.dumps(data, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
            data = json.loads(text)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(data, Mapping):
            LOGGER.warning("Settings file %s does not contain an object", self._path)
            return {}
        return dict(data)

    def _apply_overrides(
        self,
        settings: Settings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> Settings:
        allowed = {field.name for field in fields(Settings)}
        filtered: Dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in allowed or value is None:
                continue
            filtered[key] = value
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {field.name for field in fields(Settings)}
    result: Dict[str, Any] = {}
    for key, value in payload.items():
        if key not in allowed:
            continue
        result[key] = value
    return result
