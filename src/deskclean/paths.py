"""Run intervals and archive path scheme.

The sweep core only ever sees resolved paths and periods; everything
here turns the user's settings into those values.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from deskclean.models.sweep_result import SweepRequest

if TYPE_CHECKING:
    from deskclean.settings import Settings

ON_DEMAND = "on demand"

# Label -> minutes. Negative means on demand.
RUN_INTERVALS: dict[str, int] = {
    "every minute": 1,
    "every 5 minutes": 5,
    "every 15 minutes": 15,
    "every 30 minutes": 30,
    "every hour": 60,
    "every 4 hours": 240,
    "every 24 hours": 1440,
    ON_DEMAND: -1,
}

# Label -> strftime format for the dated archive folder.
DATE_SCHEMES: dict[str, str] = {
    "YYYY-MM-DD": "%Y-%m-%d",
    "YYYY-Mon-DD": "%Y-%b-%d",
    "MM-DD-YYYY": "%m-%d-%Y",
    "Mon-DD-YYYY": "%b-%d-%Y",
    "YYYY-MM": "%Y-%m",
    "YYYY-Mon": "%Y-%b",
    "MM-YYYY": "%m-%Y",
    "Mon-YYYY": "%b-%Y",
}


def interval_minutes(label: str) -> int:
    """Return the minutes for an interval label, -1 for on demand.

    Raises:
        KeyError: Unknown label.
    """
    return RUN_INTERVALS[label]


def interval_to_period(label: str) -> timedelta | None:
    """Resolve an interval label to a timer period, None for on demand."""
    minutes = interval_minutes(label)
    if minutes <= 0:
        return None
    return timedelta(minutes=minutes)


def format_date(date_scheme: str, now: datetime | None = None) -> str:
    """Render *now* with one of the DATE_SCHEMES labels."""
    return (now or datetime.now()).strftime(DATE_SCHEMES[date_scheme])


def archive_root(home_dir: Path | str, app_folder: str) -> Path:
    """Folder holding all dated archive folders."""
    return Path(home_dir).expanduser() / app_folder


def resolve_target_path(
    home_dir: Path | str,
    app_folder: str,
    label: str,
    separator: str,
    date_scheme: str,
    now: datetime | None = None,
) -> Path:
    """Build ``home/app_folder/<date><separator><label>`` for the given moment."""
    folder = f"{format_date(date_scheme, now)}{separator}{label}"
    return archive_root(home_dir, app_folder) / folder


def build_request(settings: Settings, now: datetime | None = None) -> SweepRequest:
    """Snapshot the settings into a request for one sweep."""
    target = resolve_target_path(
        settings.get("home_dir"),
        settings.get("app_folder"),
        settings.get("target_folder_label"),
        settings.get("target_folder_separator"),
        settings.get("target_folder_date_scheme"),
        now,
    )
    return SweepRequest(source_root=Path(settings.get("source_path")).expanduser(), target_root=target)
