"""D-Bus service for tray/settings front ends.

D-Bus methods use PascalCase per D-Bus convention, and type signatures
like "s" and "(iii)" are D-Bus protocol types, not Python syntax.
"""

from __future__ import annotations

import asyncio
import json
import logging

from dbus_next import BusType
from dbus_next.aio import MessageBus
from dbus_next.service import ServiceInterface, method, signal

from deskclean.core.errors import SweepError
from deskclean.core.tracker import load_history
from deskclean.daemon import SweepDaemon
from deskclean.models.sweep_result import SweepResult
from deskclean.paths import DATE_SCHEMES, RUN_INTERVALS
from deskclean.settings import ConfigError

log = logging.getLogger(__name__)

_BUS_NAME = "io.github.deskclean"
_OBJECT_PATH = "/io/github/deskclean"
_INTERFACE = "io.github.deskclean.Manager"


def _error_payload(exc: SweepError) -> str:
    return json.dumps({"error": str(exc), "kind": exc.kind, "result": exc.result.to_dict()})


# noinspection PyPep8Naming
class DeskCleanDBusService(ServiceInterface):
    """D-Bus service interface for DeskClean."""

    def __init__(self, daemon: SweepDaemon, loop: asyncio.AbstractEventLoop) -> None:
        super().__init__(_INTERFACE)
        self._daemon = daemon
        self._loop = loop
        # Sweeps finish on the scheduler thread; hop back to the loop to emit.
        daemon.add_result_listener(self._emit_finished)
        daemon.add_error_listener(self._emit_failed)

    @method()
    async def RunNow(self) -> "s":  # type: ignore[override]
        """Sweep immediately, returning the result (or abort reason) as JSON."""
        try:
            result = await self._loop.run_in_executor(None, self._daemon.run_now)
        except SweepError as exc:
            return _error_payload(exc)
        return json.dumps(result.to_dict())

    @method()
    def SetInterval(self, label: "s") -> "s":  # type: ignore[override]
        """Change the run interval by label, e.g. "every 15 minutes"."""
        try:
            self._daemon.set_interval(label)
        except ConfigError as exc:
            return json.dumps({"error": str(exc)})
        return json.dumps({"run_interval": label})

    @method()
    def ListIntervals(self) -> "s":  # type: ignore[override]
        """List allowed interval labels and date schemes."""
        return json.dumps({"intervals": list(RUN_INTERVALS), "date_schemes": list(DATE_SCHEMES)})

    @method()
    def GetStatus(self) -> "s":  # type: ignore[override]
        """Get scheduler state, paths and the last result."""
        return json.dumps(self._daemon.status())

    @method()
    def GetStats(self, period: "s") -> "s":  # type: ignore[override]
        """Get statistics for a time period."""
        return json.dumps(self._daemon.tracker.get_stats(period))

    @method()
    def GetHistory(self) -> "s":  # type: ignore[override]
        """Get full sweep history."""
        return json.dumps(load_history())

    @signal()
    def SweepFinished(self, moved: int, skipped: int, errors: int) -> "(iii)":  # type: ignore[override]
        return [moved, skipped, errors]

    @signal()
    def SweepFailed(self, kind: str, message: str) -> "(ss)":  # type: ignore[override]
        return [kind, message]

    def _emit_finished(self, result: SweepResult, _trigger: str) -> None:
        self._loop.call_soon_threadsafe(
            self.SweepFinished, result.moved_count, result.skipped_count, result.error_count
        )

    def _emit_failed(self, exc: SweepError, _trigger: str) -> None:
        self._loop.call_soon_threadsafe(self.SweepFailed, exc.kind, str(exc))


async def run_service() -> None:
    """Start the sweeper and export it on the session bus."""
    bus = await MessageBus(bus_type=BusType.SESSION).connect()
    daemon = SweepDaemon()
    service = DeskCleanDBusService(daemon, asyncio.get_running_loop())
    bus.export(_OBJECT_PATH, service)
    await bus.request_name(_BUS_NAME)
    daemon.start()
    log.info("D-Bus service started on %s", _BUS_NAME)
    try:
        await bus.wait_for_disconnect()
    finally:
        await asyncio.get_running_loop().run_in_executor(None, daemon.stop)


def start_service() -> None:
    """Entry point to start the D-Bus service."""
    asyncio.run(run_service())
