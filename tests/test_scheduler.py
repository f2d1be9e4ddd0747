"""Tests for the interval scheduler."""

from __future__ import annotations

import threading
import time
from datetime import timedelta

import pytest

from deskclean.core.scheduler import (
    IntervalChanged,
    IntervalScheduler,
    SchedulerState,
    Shutdown,
    is_periodic,
)


class Recorder:
    """Sweep callable that records when it ran."""

    def __init__(self, duration: float = 0.0, fail: bool = False) -> None:
        self.times: list[float] = []
        self.duration = duration
        self.fail = fail
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()
        self._cond = threading.Condition(self._lock)

    def __call__(self) -> None:
        with self._lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
        if self.duration:
            time.sleep(self.duration)
        with self._cond:
            self.active -= 1
            self.times.append(time.monotonic())
            self._cond.notify_all()
        if self.fail:
            raise RuntimeError("sweep exploded")

    @property
    def count(self) -> int:
        with self._lock:
            return len(self.times)

    def wait_for(self, n: int, timeout: float = 5.0) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: len(self.times) >= n, timeout)


def _wait_until(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return False


@pytest.fixture
def running():
    """Start schedulers on threads and make sure they stop."""
    started: list[IntervalScheduler] = []

    def _start(scheduler: IntervalScheduler) -> IntervalScheduler:
        scheduler.start()
        started.append(scheduler)
        return scheduler

    yield _start
    for scheduler in started:
        scheduler.stop(timeout=5)


class TestInitialState:
    def test_positive_period_is_periodic(self):
        scheduler = IntervalScheduler(Recorder(), timedelta(minutes=5))
        assert scheduler.state is SchedulerState.PERIODIC
        assert scheduler.period == timedelta(minutes=5)

    @pytest.mark.parametrize("period", [None, timedelta(0), timedelta(minutes=-1)])
    def test_non_positive_period_is_on_demand(self, period):
        scheduler = IntervalScheduler(Recorder(), period)
        assert scheduler.state is SchedulerState.ON_DEMAND
        assert scheduler.period is None

    def test_is_periodic(self):
        assert is_periodic(timedelta(seconds=1))
        assert not is_periodic(None)
        assert not is_periodic(timedelta(0))


class TestTimer:
    def test_fires_repeatedly(self, running):
        sweep = Recorder()
        running(IntervalScheduler(sweep, timedelta(seconds=0.03)))

        assert sweep.wait_for(3)

    def test_on_demand_never_fires(self, running):
        sweep = Recorder()
        running(IntervalScheduler(sweep, None, default_period=timedelta(seconds=0.01)))

        time.sleep(0.2)
        assert sweep.count == 0

    def test_sweep_errors_do_not_stop_the_loop(self, running):
        sweep = Recorder(fail=True)
        scheduler = running(IntervalScheduler(sweep, timedelta(seconds=0.02)))

        assert sweep.wait_for(2)
        assert scheduler.state is SchedulerState.PERIODIC

    def test_sweeps_never_overlap(self, running):
        sweep = Recorder(duration=0.05)
        running(IntervalScheduler(sweep, timedelta(seconds=0.005)))

        assert sweep.wait_for(3)
        assert sweep.peak == 1


class TestIntervalChanges:
    def test_switch_to_on_demand_suppresses_firings(self, running):
        sweep = Recorder()
        scheduler = running(IntervalScheduler(sweep, timedelta(seconds=0.02)))
        assert sweep.wait_for(1)

        scheduler.change_interval(None)
        assert _wait_until(lambda: scheduler.state is SchedulerState.ON_DEMAND)
        count = sweep.count
        time.sleep(0.2)

        assert sweep.count == count

    def test_positive_interval_resumes_from_on_demand(self, running):
        sweep = Recorder()
        scheduler = running(IntervalScheduler(sweep, None, default_period=timedelta(hours=1)))

        changed_at = time.monotonic()
        scheduler.change_interval(timedelta(seconds=0.1))

        assert sweep.wait_for(1)
        assert sweep.times[0] - changed_at >= 0.1
        assert scheduler.period == timedelta(seconds=0.1)

    def test_change_discards_elapsed_progress(self, running):
        sweep = Recorder()
        scheduler = running(IntervalScheduler(sweep, timedelta(seconds=0.3)))

        time.sleep(0.2)
        changed_at = time.monotonic()
        scheduler.change_interval(timedelta(seconds=0.3))

        assert sweep.wait_for(1)
        assert sweep.times[0] - changed_at >= 0.3

    def test_change_applies_before_pending_firing(self):
        sweep = Recorder()
        scheduler = IntervalScheduler(sweep, timedelta(microseconds=1))
        scheduler.control.put(IntervalChanged(None))
        scheduler.control.put(Shutdown())

        scheduler.run()

        assert sweep.count == 0
        assert scheduler.state is SchedulerState.STOPPED

    def test_changes_apply_in_delivery_order(self):
        sweep = Recorder()
        scheduler = IntervalScheduler(sweep, None, default_period=timedelta(hours=1))
        scheduler.change_interval(timedelta(minutes=5))
        scheduler.change_interval(None)
        scheduler.change_interval(timedelta(minutes=15))
        scheduler.shutdown()

        scheduler.run()

        assert scheduler.state is SchedulerState.STOPPED
        assert sweep.count == 0
        assert scheduler._tick == timedelta(minutes=15)


class TestShutdown:
    def test_stop_ends_loop(self):
        scheduler = IntervalScheduler(Recorder(), timedelta(hours=1))
        thread = scheduler.start()

        scheduler.stop(timeout=5)

        assert not thread.is_alive()
        assert scheduler.state is SchedulerState.STOPPED

    def test_no_firings_after_shutdown(self):
        sweep = Recorder()
        scheduler = IntervalScheduler(sweep, timedelta(seconds=0.02))
        scheduler.start()
        assert sweep.wait_for(1)

        scheduler.stop(timeout=5)
        count = sweep.count
        time.sleep(0.1)

        assert sweep.count == count

    def test_stop_waits_for_in_flight_sweep(self):
        sweep = Recorder(duration=0.3)
        scheduler = IntervalScheduler(sweep, timedelta(seconds=0.01))
        scheduler.start()
        assert _wait_until(lambda: sweep.active == 1)

        assert scheduler.stop() is True

        assert sweep.count == 1
        assert sweep.active == 0
        assert not scheduler.is_running

    def test_stop_timeout_reports_unfinished_sweep(self):
        sweep = Recorder(duration=0.3)
        scheduler = IntervalScheduler(sweep, timedelta(seconds=0.01))
        scheduler.start()
        assert _wait_until(lambda: sweep.active == 1)

        assert scheduler.stop(timeout=0.01) is False
        assert scheduler.is_running

        assert scheduler.stop() is True
        assert not scheduler.is_running
        assert sweep.count == 1


class TestRestart:
    def test_fires_again_after_restart(self, running):
        sweep = Recorder()
        scheduler = running(IntervalScheduler(sweep, timedelta(seconds=0.03)))
        assert sweep.wait_for(1)
        scheduler.stop(timeout=5)
        assert scheduler.state is SchedulerState.STOPPED
        count = sweep.count

        running(scheduler)

        assert scheduler.state is SchedulerState.PERIODIC
        assert scheduler.period == timedelta(seconds=0.03)
        assert sweep.wait_for(count + 2)

    def test_restart_keeps_on_demand(self, running):
        sweep = Recorder()
        scheduler = running(IntervalScheduler(sweep, None, default_period=timedelta(seconds=0.01)))
        scheduler.stop(timeout=5)

        running(scheduler)
        time.sleep(0.1)

        assert scheduler.state is SchedulerState.ON_DEMAND
        assert sweep.count == 0

    def test_stop_before_start_does_not_end_next_run(self, running):
        sweep = Recorder()
        scheduler = IntervalScheduler(sweep, timedelta(seconds=0.02))
        scheduler.shutdown()
        scheduler.stop()

        running(scheduler)

        assert sweep.wait_for(2)
        assert scheduler.is_running

    def test_interval_change_while_stopped_applies_on_restart(self, running):
        sweep = Recorder()
        scheduler = running(IntervalScheduler(sweep, timedelta(hours=1)))
        scheduler.stop(timeout=5)

        scheduler.change_interval(timedelta(seconds=0.02))
        running(scheduler)

        assert sweep.wait_for(1)
        assert scheduler.period == timedelta(seconds=0.02)
