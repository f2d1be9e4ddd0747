"""Records finished sweeps and aggregates statistics.

History lives in ``$XDG_DATA_HOME/deskclean/history.json``. The CLI, the
daemon and the D-Bus service may all append to it, so writes hold an
``flock`` on a sibling lock file and replace the file atomically.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from datetime import datetime, timedelta, timezone
from typing import Any

from deskclean.models.sweep_result import SweepResult
from deskclean.utils import file_lock, xdg_data_home

log = logging.getLogger(__name__)

_DATA_DIR = xdg_data_home() / "deskclean"

HISTORY_FILE = _DATA_DIR / "history.json"

# Oldest records are dropped beyond this many sweeps.
_MAX_RECORDS = 1000


def load_history() -> dict[str, Any]:
    """Load the history file, returning empty structure if missing."""
    if not HISTORY_FILE.exists():
        return {"sweeps": []}
    try:
        with open(HISTORY_FILE, encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError):
        log.exception("Failed to load history file: %s", HISTORY_FILE)
        return {"sweeps": []}
    data.setdefault("sweeps", [])
    return data


def save_history(data: dict[str, Any]) -> None:
    """Write the history data to disk."""
    _DATA_DIR.mkdir(parents=True, exist_ok=True)
    tmp = HISTORY_FILE.with_name(HISTORY_FILE.name + ".tmp")
    try:
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp, HISTORY_FILE)
    except OSError:
        log.exception("Failed to save history file: %s", HISTORY_FILE)


class Tracker:
    """Tracks and persists sweep outcomes."""

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def record(self, result: SweepResult, trigger: str = "manual") -> None:
        """Append one sweep to the history file.

        Args:
            result: The finished sweep.
            trigger: ``"manual"`` or ``"scheduled"``.
        """
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "trigger": trigger,
            "source": str(result.source_root),
            "target": str(result.target_root),
            "moved": result.moved_count,
            "skipped": result.skipped_count,
            "errors": result.error_count,
            "target_created": result.target_created,
        }
        with self._lock, file_lock(HISTORY_FILE.with_name(HISTORY_FILE.name + ".lock")):
            history = load_history()
            history["sweeps"].append(entry)
            del history["sweeps"][:-_MAX_RECORDS]
            save_history(history)
        log.debug("Recorded %s sweep: %d moved, %d errors", trigger, result.moved_count, result.error_count)

    def get_last_sweep(self) -> dict[str, Any] | None:
        """Return the most recent sweep record, or None."""
        sweeps = load_history().get("sweeps", [])
        return sweeps[-1] if sweeps else None

    def get_last_sweep_time(self) -> str | None:
        """Return ISO timestamp of the most recent sweep, or None."""
        last = self.get_last_sweep()
        return last["timestamp"] if last else None

    def get_stats(self, period: str = "all") -> dict[str, Any]:
        """Get aggregated statistics for a time period.

        Args:
            period: One of 'today', 'week', 'month', 'all'.
        """
        all_sweeps = load_history().get("sweeps", [])

        match period:
            case "today":
                cutoff = _start_of_today()
            case "week":
                cutoff = _start_of_today() - timedelta(days=7)
            case "month":
                cutoff = _start_of_today() - timedelta(days=30)
            case _:
                cutoff = None

        if cutoff is not None:
            sweeps = [s for s in all_sweeps if datetime.fromisoformat(s["timestamp"]) >= cutoff]
        else:
            sweeps = all_sweeps

        return {
            "period": period,
            "sweep_count": len(sweeps),
            "moved": sum(s.get("moved", 0) for s in sweeps),
            "skipped": sum(s.get("skipped", 0) for s in sweeps),
            "errors": sum(s.get("errors", 0) for s in sweeps),
            "lifetime_moved": sum(s.get("moved", 0) for s in all_sweeps),
            "last_sweep": all_sweeps[-1]["timestamp"] if all_sweeps else None,
        }


def _start_of_today() -> datetime:
    """Return the start of the current UTC day."""
    now = datetime.now(timezone.utc)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)
