"""Long-running sweeper: settings, scheduler, executor and history wired together."""

from __future__ import annotations

import logging
import threading
from datetime import timedelta
from typing import Any, Callable

from deskclean.core.errors import SweepError
from deskclean.core.executor import SweepExecutor
from deskclean.core.scheduler import IntervalScheduler
from deskclean.core.tracker import Tracker
from deskclean.models.sweep_result import SweepResult
from deskclean.paths import build_request, interval_to_period
from deskclean.settings import Settings

log = logging.getLogger(__name__)

ResultCallback = Callable[[SweepResult, str], None]  # (result, trigger)
ErrorCallback = Callable[[SweepError, str], None]  # (error, trigger)


def resolve_period(label: str) -> timedelta | None:
    """Resolve a stored interval label, treating unknown labels as on demand."""
    try:
        return interval_to_period(label)
    except KeyError:
        log.warning("Unknown run interval '%s', running on demand", label)
        return None


class SweepDaemon:
    """Owns the scheduler thread and the manual "run now" path.

    Settings are read once per sweep and passed to the executor as plain
    values; the only way into the scheduler is its control queue, fed by
    the ``run_interval`` settings listener. While started, the settings
    file is polled every *reload_interval* seconds so changes written by
    other processes (``deskclean config set``) reach the scheduler too.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        executor: SweepExecutor | None = None,
        tracker: Tracker | None = None,
        *,
        reload_interval: float = 2.0,
    ) -> None:
        self.settings = settings or Settings.instance()
        self.executor = executor or SweepExecutor()
        self.tracker = tracker or Tracker()
        self.scheduler = IntervalScheduler(
            self._scheduled_sweep,
            resolve_period(self.settings.get("run_interval")),
        )
        self._on_result: list[ResultCallback] = []
        self._on_error: list[ErrorCallback] = []
        self._last_result: SweepResult | None = None
        self._last_error: SweepError | None = None
        self._state_lock = threading.Lock()
        self._started = False
        self._reload_interval = reload_interval
        self._watch_stop = threading.Event()
        self._watcher: threading.Thread | None = None

    # ── lifecycle ────────────────────────────────────────────────────────

    def start(self) -> None:
        """Start the scheduler thread and follow interval changes."""
        if self._started:
            return
        self.settings.subscribe("run_interval", self._on_interval_setting)
        # Catch up on edits made while stopped.
        self.settings.reload()
        self.scheduler.change_interval(resolve_period(self.settings.get("run_interval")))
        self.scheduler.start()
        self._watch_stop.clear()
        self._watcher = threading.Thread(
            target=self._watch_settings, name="deskclean-settings", daemon=True
        )
        self._watcher.start()
        self._started = True
        log.info("Sweeping %s", self.settings.get("source_path"))

    def stop(self, timeout: float | None = None) -> bool:
        """Stop the scheduler, waiting for an in-flight sweep to finish.

        Returns False if *timeout* expired before the sweep finished; the
        daemon then still counts as started and :meth:`stop` may be retried.
        """
        if not self._started:
            return True
        self._watch_stop.set()
        if self._watcher is not None:
            self._watcher.join()
            self._watcher = None
        self.settings.unsubscribe("run_interval", self._on_interval_setting)
        if not self.scheduler.stop(timeout):
            return False
        self._started = False
        return True

    def reload_settings(self) -> bool:
        """Pick up settings written by another process. Returns True if the file changed."""
        return self.settings.reload()

    def _watch_settings(self) -> None:
        while not self._watch_stop.wait(self._reload_interval):
            self.reload_settings()

    def add_result_listener(self, callback: ResultCallback) -> None:
        self._on_result.append(callback)

    def add_error_listener(self, callback: ErrorCallback) -> None:
        self._on_error.append(callback)

    # ── sweeping ─────────────────────────────────────────────────────────

    def run_now(self) -> SweepResult:
        """Sweep immediately, bypassing the timer.

        Raises:
            SweepError: The sweep aborted (unreadable source, target not creatable).
        """
        return self._sweep("manual")

    def _scheduled_sweep(self) -> None:
        try:
            self._sweep("scheduled")
        except SweepError:
            pass  # already logged and reported to listeners in _sweep

    def _sweep(self, trigger: str) -> SweepResult:
        self.reload_settings()
        request = build_request(self.settings)
        log.info("Running %s sweep: %s -> %s", trigger, request.source_root, request.target_root)
        try:
            result = self.executor.sweep(request.source_root, request.target_root)
        except SweepError as exc:
            log.error("Sweep aborted (%s): %s", exc.kind, exc)
            with self._state_lock:
                self._last_error = exc
            for callback in list(self._on_error):
                self._call_listener(callback, exc, trigger)
            raise

        if result.has_errors:
            log.warning("Sweep completed with %d errors", result.error_count)
        with self._state_lock:
            self._last_result = result
            self._last_error = None
        if result.total:
            self.tracker.record(result, trigger)
        for callback in list(self._on_result):
            self._call_listener(callback, result, trigger)
        return result

    @staticmethod
    def _call_listener(callback: Callable[..., None], *args: Any) -> None:
        try:
            callback(*args)
        except Exception:
            log.exception("Sweep listener failed")

    # ── interval ─────────────────────────────────────────────────────────

    def set_interval(self, label: str) -> None:
        """Persist a new run interval; the scheduler picks it up via the listener.

        Raises:
            ConfigError: *label* is not one of the allowed intervals.
        """
        self.settings.set_option("run_interval", label)

    def _on_interval_setting(self, _key: str, value: Any) -> None:
        self.scheduler.change_interval(resolve_period(value))

    # ── status ───────────────────────────────────────────────────────────

    def status(self) -> dict[str, Any]:
        """Snapshot of the daemon for display."""
        self.reload_settings()
        request = build_request(self.settings)
        period = self.scheduler.period
        with self._state_lock:
            last_result = self._last_result
            last_error = self._last_error
        return {
            "state": self.scheduler.state.value,
            "run_interval": self.settings.get("run_interval"),
            "period_seconds": period.total_seconds() if period else None,
            "source": str(request.source_root),
            "target": str(request.target_root),
            "scheduled_sweeps": self.scheduler.sweep_count,
            "last_result": last_result.to_dict() if last_result else None,
            "last_error": {"kind": last_error.kind, "message": str(last_error)} if last_error else None,
            "last_sweep": self.tracker.get_last_sweep_time(),
        }
