"""CLI interface for DeskClean."""

from __future__ import annotations

import json
import logging
import sys
import threading
from pathlib import Path

import click

from deskclean.core.errors import SweepError
from deskclean.core.executor import SweepExecutor
from deskclean.core.tracker import Tracker
from deskclean.daemon import SweepDaemon
from deskclean.models.sweep_result import SweepResult
from deskclean.paths import DATE_SCHEMES, RUN_INTERVALS, build_request, format_date
from deskclean.settings import OPTIONS, ConfigError, Settings
from deskclean.utils import format_elapsed, format_relative_time


def _setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


@click.group()
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v info, -vv debug)")
def main(verbose: int) -> None:
    """DeskClean: moves your desktop clutter into dated archive folders."""
    _setup_logging(verbose)


# ── run ──────────────────────────────────────────────────────────────────

@main.command()
@click.option("--source", "-s", type=click.Path(path_type=Path), default=None, help="Folder to sweep")
@click.option("--target", "-t", type=click.Path(path_type=Path), default=None, help="Archive folder to move into")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def run(source: Path | None, target: Path | None, as_json: bool) -> None:
    """Sweep now, without waiting for the timer."""
    request = build_request(Settings.instance())
    source = source or request.source_root
    target = target or request.target_root

    try:
        result = SweepExecutor().sweep(source, target)
    except SweepError as exc:
        if as_json:
            click.echo(json.dumps({"status": "aborted", "kind": exc.kind, "error": str(exc)}, indent=2))
        else:
            click.echo(f"  {click.style('✗', fg='red')} Sweep aborted, nothing was moved: {exc}", err=True)
        sys.exit(1)

    if result.total:
        Tracker().record(result, "manual")

    if as_json:
        click.echo(json.dumps({"status": "swept", "result": result.to_dict()}, indent=2))
        return
    _print_result(result)


def _print_result(result: SweepResult) -> None:
    if result.moved_count == 0 and not result.has_errors:
        click.echo(f"  {click.style('·', fg='bright_black')} Nothing to sweep in {result.source_root}")
    elif result.has_errors:
        click.echo(
            f"  {click.style('!', fg='yellow')} Moved {result.moved_count} entries to {result.target_root}, "
            f"{click.style(f'{result.error_count} error(s)', fg='yellow')}"
        )
        for message in result.errors:
            click.echo(f"      {message}")
    else:
        click.echo(
            f"  {click.style('✓', fg='green')} Moved "
            f"{click.style(str(result.moved_count), fg='green', bold=True)} entries to {result.target_root}"
        )
    if result.skipped_count:
        click.echo(f"    skipped {result.skipped_count} hidden entries")
    click.echo(f"    took {format_elapsed(result.elapsed)}")


# ── daemon ───────────────────────────────────────────────────────────────

@main.command()
def daemon() -> None:
    """Run the scheduler in the foreground until interrupted."""
    sweeper = SweepDaemon()
    sweeper.add_result_listener(
        lambda r, trigger: click.echo(
            f"[{trigger}] moved {r.moved_count}, skipped {r.skipped_count}, errors {r.error_count}"
        )
    )
    sweeper.add_error_listener(lambda exc, trigger: click.echo(f"[{trigger}] aborted: {exc}", err=True))
    sweeper.start()
    status = sweeper.status()
    click.echo(f"Sweeping {status['source']} ({status['run_interval']}). Press Ctrl+C to stop.")
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        click.echo("\nStopping...")
    finally:
        sweeper.stop()


# ── config ───────────────────────────────────────────────────────────────

@main.group()
def config() -> None:
    """Show or change settings."""


@config.command("show")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def config_show(as_json: bool) -> None:
    """Show current settings and the resolved archive folder."""
    settings = Settings.instance()
    values = settings.as_dict()
    target = build_request(settings).target_root

    if as_json:
        click.echo(json.dumps({**values, "resolved_target": str(target)}, indent=2))
        return

    click.echo()
    for key, value in values.items():
        click.echo(f"  {click.style(key, fg='cyan', bold=True):40s} {value}")
    click.echo(f"\n  Archive location: {click.style(str(target), bold=True)}")
    click.echo(f"  Settings file:    {settings.path}\n")


@config.command("set")
@click.argument("key", type=click.Choice(list(OPTIONS)))
@click.argument("value")
def config_set(key: str, value: str) -> None:
    """Change a setting."""
    try:
        Settings.instance().set_option(key, value)
    except ConfigError as exc:
        raise click.BadParameter(str(exc), param_hint="value")
    click.echo(f"{key} = {value}")


@config.command("reset")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
def config_reset(yes: bool) -> None:
    """Revert all settings to their defaults."""
    if not yes and not click.confirm("Reset all settings?", default=False):
        click.echo("Aborted.")
        return
    Settings.instance().reset()
    click.echo("Settings reset.")


# ── intervals / schemes ──────────────────────────────────────────────────

@main.command()
def intervals() -> None:
    """List allowed run intervals."""
    current = Settings.instance().get("run_interval")
    for label, minutes in RUN_INTERVALS.items():
        marker = click.style("*", fg="green") if label == current else " "
        detail = f"{minutes} min" if minutes > 0 else "manual only"
        click.echo(f"  {marker} {label:20s} {click.style(detail, fg='bright_black')}")


@main.command()
def schemes() -> None:
    """List archive folder date schemes with today's rendering."""
    current = Settings.instance().get("target_folder_date_scheme")
    for label in DATE_SCHEMES:
        marker = click.style("*", fg="green") if label == current else " "
        click.echo(f"  {marker} {label:15s} {click.style(format_date(label), fg='bright_black')}")


# ── stats ────────────────────────────────────────────────────────────────

@main.command()
@click.option("--period", "-p", default="all", type=click.Choice(["today", "week", "month", "all"]))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def stats(period: str, as_json: bool) -> None:
    """Show sweep statistics."""
    data = Tracker().get_stats(period)

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    last = format_relative_time(data["last_sweep"]) if data["last_sweep"] else "never"
    click.echo(f"\nStatistics ({period})\n")
    click.echo(f"  Sweeps:         {data['sweep_count']}")
    click.echo(f"  Entries moved:  {click.style(str(data['moved']), fg='green', bold=True)}")
    click.echo(f"  Hidden skipped: {data['skipped']}")
    click.echo(f"  Errors:         {data['errors']}")
    click.echo(f"  Lifetime moved: {click.style(str(data['lifetime_moved']), fg='cyan', bold=True)}")
    click.echo(f"  Last sweep:     {last}\n")


# ── service ──────────────────────────────────────────────────────────────

@main.group()
def service() -> None:
    """D-Bus service management."""


@service.command("start")
def service_start() -> None:
    """Start the D-Bus service in foreground."""
    from deskclean.dbus_service import start_service

    click.echo("Starting DeskClean D-Bus service...")
    start_service()
