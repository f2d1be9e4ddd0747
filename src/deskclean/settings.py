"""JSON-backed settings store."""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Callable

from deskclean.paths import DATE_SCHEMES, RUN_INTERVALS
from deskclean.utils import xdg_config_home, xdg_desktop_dir

log = logging.getLogger(__name__)

_SETTINGS_DIR = "deskclean"
_SETTINGS_FILE = "settings.json"

_MISSING = object()

Listener = Callable[[str, Any], None]  # (key, new_value)


class ConfigError(ValueError):
    """Raised for unknown keys or values outside the allowed choices."""


def default_settings() -> dict[str, Any]:
    """Values used for any key not present in the settings file."""
    return {
        "app_folder": "DeskClean",
        "home_dir": str(Path.home()),
        "source_path": str(xdg_desktop_dir()),
        "target_folder_label": "Archive",
        "target_folder_separator": "-",
        "target_folder_date_scheme": "YYYY-MM-DD",
        "run_interval": "every hour",
    }


# Keys a user may change, with their allowed choices (None = free text).
OPTIONS: dict[str, tuple[str, ...] | None] = {
    "app_folder": None,
    "home_dir": None,
    "source_path": None,
    "target_folder_label": None,
    "target_folder_separator": None,
    "target_folder_date_scheme": tuple(DATE_SCHEMES),
    "run_interval": tuple(RUN_INTERVALS),
}


class Settings:
    """Persistent settings backed by a JSON file.

    Uses dot-notation keys for nested access:
        settings.get("run_interval")
        settings.set("run_interval", "every 15 minutes")  # writes + saves

    Missing keys fall back to :func:`default_settings`. Listeners registered
    with :meth:`subscribe` run after a changed value has been persisted.
    """

    _instance: Settings | None = None

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or (xdg_config_home() / _SETTINGS_DIR / _SETTINGS_FILE)
        self._data: dict[str, Any] = {}
        self._defaults = default_settings()
        self._listeners: dict[str, list[Listener]] = {}
        self._lock = threading.RLock()
        self._stamp: tuple[int, int, int] | None = None
        self._load()

    @classmethod
    def instance(cls) -> Settings:
        """Return the singleton settings instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: Any = _MISSING) -> Any:
        """Get a value by dot-notation key."""
        parts = key.split(".")
        with self._lock:
            node: Any = self._data
            for part in parts:
                if not isinstance(node, dict) or part not in node:
                    if default is _MISSING:
                        return self._defaults.get(key)
                    return default
                node = node[part]
            return node

    def set(self, key: str, value: Any) -> None:
        """Set a value by dot-notation key, persist to disk and notify listeners."""
        parts = key.split(".")
        with self._lock:
            previous = self.get(key)
            node = self._data
            for part in parts[:-1]:
                if part not in node or not isinstance(node[part], dict):
                    node[part] = {}
                node = node[part]
            node[parts[-1]] = value
            self._save()
        if previous != value:
            self._notify(key, value)

    def set_option(self, key: str, value: str) -> None:
        """Validate and set a user-facing option.

        Raises:
            ConfigError: Unknown key or a value outside the allowed choices.
        """
        if key not in OPTIONS:
            raise ConfigError(f"Unknown setting '{key}'. Known settings: {', '.join(OPTIONS)}")
        choices = OPTIONS[key]
        if choices is not None and value not in choices:
            raise ConfigError(f"Invalid value '{value}' for {key}. Choose one of: {', '.join(choices)}")
        if choices is None and key != "target_folder_separator" and not value.strip():
            raise ConfigError(f"{key} must not be empty")
        self.set(key, value)

    def as_dict(self) -> dict[str, Any]:
        """All user-facing options with defaults applied."""
        return {key: self.get(key) for key in OPTIONS}

    def reset(self) -> None:
        """Drop all stored values, reverting to defaults."""
        with self._lock:
            previous = self.as_dict()
            self._data = {}
            self._save()
        for key, value in self.as_dict().items():
            if previous[key] != value:
                self._notify(key, value)

    def reload(self) -> bool:
        """Re-read the settings file if it changed on disk since it was last read or written.

        Lets a long-running process pick up edits made by another one (the
        CLI, a settings dialog). Listeners are notified for every option
        whose value changed. Returns True if the file was re-read.
        """
        with self._lock:
            if self._file_stamp() == self._stamp:
                return False
            previous = self.as_dict()
            self._load()
            current = self.as_dict()
        log.debug("Reloaded settings from %s", self._path)
        for key, value in current.items():
            if previous[key] != value:
                self._notify(key, value)
        return True

    def subscribe(self, key: str, listener: Listener) -> None:
        """Call *listener(key, value)* whenever *key* changes."""
        self._listeners.setdefault(key, []).append(listener)

    def unsubscribe(self, key: str, listener: Listener) -> None:
        listeners = self._listeners.get(key, [])
        if listener in listeners:
            listeners.remove(listener)

    def _notify(self, key: str, value: Any) -> None:
        for listener in list(self._listeners.get(key, [])):
            try:
                listener(key, value)
            except Exception:
                log.exception("Settings listener for '%s' failed", key)

    def _load(self) -> None:
        """Load settings from disk, gracefully handling errors."""
        self._stamp = self._file_stamp()
        if self._stamp is None:
            self._data = {}
            return
        try:
            self._data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            log.warning("Could not load settings from %s: %s", self._path, e)
            self._data = {}

    def _save(self) -> None:
        """Persist settings to disk."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            # Replace atomically so a process polling the file never reads half of it.
            tmp = self._path.with_name(self._path.name + ".tmp")
            tmp.write_text(
                json.dumps(self._data, indent=2, ensure_ascii=False) + "\n",
                encoding="utf-8",
            )
            os.replace(tmp, self._path)
            self._stamp = self._file_stamp()
        except OSError as e:
            log.warning("Could not save settings to %s: %s", self._path, e)

    def _file_stamp(self) -> tuple[int, int, int] | None:
        try:
            stat = self._path.stat()
        except OSError:
            return None
        return stat.st_ino, stat.st_mtime_ns, stat.st_size
