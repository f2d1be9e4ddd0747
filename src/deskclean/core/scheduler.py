"""Interval scheduler driving periodic sweeps.

The scheduler owns a repeating timer and a control queue. Interval changes
and shutdown requests arrive on the queue as tagged messages; the loop
services them and the timer through a single ``Queue.get`` call, so a sweep
never overlaps another sweep started by the same scheduler.
"""

from __future__ import annotations

import enum
import logging
import queue
import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable

log = logging.getLogger(__name__)

# Period the timer ticks at when started in on-demand mode.
DEFAULT_PERIOD = timedelta(minutes=60)


class SchedulerState(enum.Enum):
    PERIODIC = "periodic"
    ON_DEMAND = "on_demand"
    STOPPED = "stopped"


@dataclass(frozen=True, slots=True)
class IntervalChanged:
    """Switch to a new period. ``None`` or a non-positive period means on demand."""

    period: timedelta | None


@dataclass(frozen=True, slots=True)
class Shutdown:
    """Stop the scheduler loop."""


def is_periodic(period: timedelta | None) -> bool:
    """Check if *period* resolves to automatic sweeping."""
    return period is not None and period > timedelta(0)


class IntervalScheduler:
    """Fires *sweep* every period until shut down.

    Args:
        sweep: Callable invoked for every timer firing while periodic.
        initial_period: Starting interval; ``None`` or non-positive starts on demand.
        default_period: Tick period used while on demand with no prior period.
        clock: Monotonic clock in seconds, replaceable in tests.
    """

    def __init__(
        self,
        sweep: Callable[[], Any],
        initial_period: timedelta | None = None,
        *,
        default_period: timedelta = DEFAULT_PERIOD,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sweep = sweep
        self._clock = clock
        self._control: queue.Queue[IntervalChanged | Shutdown] = queue.Queue()
        self._thread: threading.Thread | None = None
        self._sweep_count = 0

        if is_periodic(initial_period):
            self._state = SchedulerState.PERIODIC
            self._tick = initial_period
        else:
            self._state = SchedulerState.ON_DEMAND
            self._tick = default_period
        self._resume_state = self._state
        self._deadline = 0.0

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def period(self) -> timedelta | None:
        """Current period, or None while on demand or stopped."""
        return self._tick if self._state is SchedulerState.PERIODIC else None

    @property
    def sweep_count(self) -> int:
        """Number of sweeps this scheduler has triggered."""
        return self._sweep_count

    @property
    def control(self) -> queue.Queue:
        """The control channel; accepts IntervalChanged and Shutdown messages."""
        return self._control

    def change_interval(self, period: timedelta | None) -> None:
        """Request a new interval. Applied before the next timer firing is evaluated."""
        self._control.put(IntervalChanged(period))

    def shutdown(self) -> None:
        """Request the loop to exit."""
        self._control.put(Shutdown())

    # ── loop ─────────────────────────────────────────────────────────────

    def run(self) -> None:
        """Service the control channel and the timer until shut down."""
        self._deadline = self._clock() + self._tick.total_seconds()
        if self._state is SchedulerState.PERIODIC:
            log.info("Sweeper scheduled every %s", self._tick)
        else:
            log.info("Sweeper set to run on demand")

        while self._state is not SchedulerState.STOPPED:
            timeout = max(0.0, self._deadline - self._clock())
            try:
                message = self._control.get(timeout=timeout)
            except queue.Empty:
                self._on_fire()
                continue
            self._handle(message)

        log.debug("Scheduler loop exited after %d sweeps", self._sweep_count)

    def _handle(self, message: IntervalChanged | Shutdown) -> None:
        match message:
            case Shutdown():
                if self._state is not SchedulerState.STOPPED:
                    self._resume_state = self._state
                self._state = SchedulerState.STOPPED
            case IntervalChanged(period=period) if is_periodic(period):
                self._state = SchedulerState.PERIODIC
                self._tick = period
                self._deadline = self._clock() + period.total_seconds()
                log.info("Reset timer to %s", period)
            case IntervalChanged():
                self._state = SchedulerState.ON_DEMAND
                log.info("Sweeper set to run on demand")
            case _:
                log.warning("Ignoring unknown control message: %r", message)

    def _on_fire(self) -> None:
        self._deadline = self._clock() + self._tick.total_seconds()
        if self._state is not SchedulerState.PERIODIC:
            log.debug("Timer fired while on demand, not sweeping")
            return

        self._sweep_count += 1
        try:
            self._sweep()
        except Exception:
            log.exception("Scheduled sweep failed")

    # ── thread helpers ───────────────────────────────────────────────────

    @property
    def is_running(self) -> bool:
        """True while the loop thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> threading.Thread:
        """Run the loop on a daemon thread.

        A stopped scheduler resumes in the mode it was in when it stopped;
        shutdown requests left over from before are discarded.
        """
        if self.is_running:
            return self._thread
        if self._state is SchedulerState.STOPPED:
            self._state = self._resume_state
        self._drain_shutdowns()
        self._thread = threading.Thread(target=self.run, name="deskclean-scheduler", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: float | None = None) -> bool:
        """Shut down and wait for the loop thread to exit.

        With the default *timeout* this blocks until an in-flight sweep has
        finished. Returns False if the thread was still running when the
        timeout expired; it will exit on its own once the sweep returns.
        """
        if not self.is_running:
            self._thread = None
            if self._state is not SchedulerState.STOPPED:
                self._resume_state = self._state
                self._state = SchedulerState.STOPPED
            return True
        self.shutdown()
        self._thread.join(timeout)
        if self._thread.is_alive():
            log.warning("Scheduler still finishing a sweep after %ss", timeout)
            return False
        self._thread = None
        return True

    def _drain_shutdowns(self) -> None:
        kept: list[IntervalChanged] = []
        while True:
            try:
                message = self._control.get_nowait()
            except queue.Empty:
                break
            if not isinstance(message, Shutdown):
                kept.append(message)
        for message in kept:
            self._control.put(message)
