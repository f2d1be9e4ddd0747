"""Shared utility functions."""

from __future__ import annotations

import fcntl
import hashlib
import logging
import os
import re
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

log = logging.getLogger(__name__)

_USER_DIRS_LINE = re.compile(r'^\s*XDG_DESKTOP_DIR\s*=\s*"(?P<value>[^"]*)"')


def xdg_config_home() -> Path:
    """Return XDG_CONFIG_HOME, defaulting to ~/.config."""
    return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))


def xdg_data_home() -> Path:
    """Return XDG_DATA_HOME, defaulting to ~/.local/share."""
    return Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))


def xdg_runtime_dir() -> Path:
    """Return XDG_RUNTIME_DIR, falling back to the data home when unset."""
    runtime = os.environ.get("XDG_RUNTIME_DIR")
    return Path(runtime) if runtime else xdg_data_home()


def sweep_lock_path(source_root: Path | str) -> Path:
    """Lock file guarding sweeps of *source_root* across processes."""
    digest = hashlib.sha1(os.path.abspath(source_root).encode("utf-8")).hexdigest()[:16]
    return xdg_runtime_dir() / "deskclean" / f"sweep-{digest}.lock"


@contextmanager
def file_lock(path: Path) -> Iterator[None]:
    """Hold an exclusive ``flock`` on *path*, blocking until it is free."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w") as handle:
        fcntl.flock(handle, fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(handle, fcntl.LOCK_UN)


def xdg_desktop_dir() -> Path:
    """Return the user's desktop directory.

    Reads ``XDG_DESKTOP_DIR`` from the environment, then from
    ``user-dirs.dirs`` (as written by xdg-user-dirs-update), falling
    back to ``~/Desktop``.
    """
    home = Path.home()
    value = os.environ.get("XDG_DESKTOP_DIR")
    if not value:
        value = _read_user_dirs(xdg_config_home() / "user-dirs.dirs")
    if not value:
        return home / "Desktop"
    value = value.replace("$HOME", str(home))
    return Path(os.path.expanduser(value))


def _read_user_dirs(path: Path) -> str | None:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError:
        return None
    for line in text.splitlines():
        match = _USER_DIRS_LINE.match(line)
        if match:
            return match.group("value")
    return None


def format_relative_time(iso_timestamp: str) -> str:
    """Format an ISO timestamp as relative time ('2 hours ago')."""
    from datetime import datetime, timezone

    dt = datetime.fromisoformat(iso_timestamp)
    seconds = int((datetime.now(timezone.utc) - dt).total_seconds())

    if seconds < 60:
        return "just now"
    if seconds < 3600:
        m = seconds // 60
        return f"{m} minute{'s' if m != 1 else ''} ago"
    if seconds < 86400:
        h = seconds // 3600
        return f"{h} hour{'s' if h != 1 else ''} ago"
    d = seconds // 86400
    return f"{d} day{'s' if d != 1 else ''} ago"


def format_elapsed(seconds: float) -> str:
    """Format an elapsed time as a human-readable string."""
    if seconds < 1:
        return f"{seconds * 1000:.0f} ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes = int(seconds) // 60
    secs = seconds - minutes * 60
    return f"{minutes}m {secs:.0f}s"
