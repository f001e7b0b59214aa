"""Service-control host around the sync orchestrator.

A small state machine, START_PENDING -> RUNNING -> STOP_PENDING -> STOPPED,
driven by control requests (stop, shutdown, interrogate) and reporting each
status through a callback. It only touches the orchestrator through its
cancellation event and its start/stop/wait calls.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

import structlog

from sheetsync.core.errors import InternalError, SheetSyncError, StartupError
from sheetsync.core.logging import get_logger


class ServiceState(Enum):
    """Host service state, as reported to the service controller."""

    START_PENDING = "start_pending"
    RUNNING = "running"
    STOP_PENDING = "stop_pending"
    STOPPED = "stopped"


class ControlCommand(Enum):
    STOP = "stop"
    SHUTDOWN = "shutdown"
    INTERROGATE = "interrogate"


ACCEPTED_WHILE_RUNNING: frozenset[ControlCommand] = frozenset(
    {ControlCommand.STOP, ControlCommand.SHUTDOWN}
)


@dataclass(frozen=True, slots=True)
class ControlRequest:
    """A command from the service controller. Unknown commands are kept as text."""

    command: ControlCommand | str
    source: str = ""


@dataclass(frozen=True, slots=True)
class ServiceStatus:
    """Acknowledgment sent back to the service controller."""

    state: ServiceState
    accepts: frozenset[ControlCommand] = frozenset()
    error: SheetSyncError | None = None

    @property
    def exit_code(self) -> int:
        return 0 if self.error is None else 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "accepts": sorted(c.value for c in self.accepts),
            "error": self.error.to_dict() if self.error else None,
        }


StatusCallback = Callable[[ServiceStatus], None]


class Runnable(Protocol):
    """What the host needs from the orchestrator."""

    async def start(self, cancel: asyncio.Event | None = None) -> None: ...

    async def stop(self) -> None: ...

    async def wait(self) -> None: ...


@dataclass
class ServiceHost:
    """
    Runs an orchestrator under the service-control protocol.

    ``run`` reports START_PENDING, starts the orchestrator and reports
    RUNNING, then serves control requests until STOP or SHUTDOWN arrives or
    the orchestrator ends on its own. Returns the process exit code.
    """

    orchestrator: Runnable
    on_status: StatusCallback | None = None
    stop_timeout: float = 5.0
    logger: structlog.stdlib.BoundLogger = field(default_factory=lambda: get_logger("service"))

    _state: ServiceState = field(default=ServiceState.START_PENDING, init=False)
    _error: SheetSyncError | None = field(default=None, init=False)
    _requests: asyncio.Queue[ControlRequest] = field(default_factory=asyncio.Queue, init=False)
    _cancel: asyncio.Event = field(default_factory=asyncio.Event, init=False)

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def status(self) -> ServiceStatus:
        accepts = ACCEPTED_WHILE_RUNNING if self._state is ServiceState.RUNNING else frozenset()
        return ServiceStatus(state=self._state, accepts=accepts, error=self._error)

    def request(self, command: ControlCommand | str, source: str = "") -> None:
        """Queue a control request. Safe to call from a signal handler on the loop."""
        self._requests.put_nowait(ControlRequest(command=command, source=source))

    def _report(self, state: ServiceState) -> None:
        if state is not self._state:
            self.logger.info("service_state", previous=self._state.value, state=state.value)
        self._state = state
        if self.on_status is not None:
            self.on_status(self.status)

    async def run(self) -> int:
        self._report(ServiceState.START_PENDING)
        try:
            await self.orchestrator.start(self._cancel)
        except SheetSyncError as e:
            self._error = e
            self._report(ServiceState.STOPPED)
            return 1
        except Exception as e:
            self.logger.exception("service_start_failed", error=str(e))
            self._error = StartupError.failed("start", str(e))
            self._report(ServiceState.STOPPED)
            return 1

        self._report(ServiceState.RUNNING)
        watch = asyncio.create_task(self.orchestrator.wait(), name="sheetsync-service-watch")
        try:
            ended_on_its_own = await self._serve(watch)
        finally:
            if not watch.done():
                watch.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await watch

        if ended_on_its_own:
            self._error = self._watch_outcome(watch)
            self._report(ServiceState.STOPPED)
            return self.status.exit_code

        self._report(ServiceState.STOP_PENDING)
        self._cancel.set()
        try:
            async with asyncio.timeout(self.stop_timeout):
                await self.orchestrator.stop()
        except TimeoutError:
            self.logger.warning("service_stop_timeout", timeout=self.stop_timeout)
            self._error = InternalError.timeout("service stop", self.stop_timeout)

        self._report(ServiceState.STOPPED)
        return self.status.exit_code

    async def _serve(self, watch: asyncio.Task[None]) -> bool:
        """Handle control requests. True if the orchestrator ended first."""
        while True:
            getter = asyncio.ensure_future(self._requests.get())
            done, _ = await asyncio.wait({getter, watch}, return_when=asyncio.FIRST_COMPLETED)
            if getter not in done:
                getter.cancel()
                return True

            request = getter.result()
            command = request.command
            if not isinstance(command, ControlCommand):
                self.logger.warning("service_unknown_command", command=command)
            elif command is ControlCommand.INTERROGATE:
                self._report(self._state)
            else:
                self.logger.info(
                    "service_stop_requested", command=command.value, source=request.source
                )
                return False

    def _watch_outcome(self, watch: asyncio.Task[None]) -> SheetSyncError | None:
        if watch.cancelled():
            return None
        error = watch.exception()
        if error is None:
            return None
        if isinstance(error, SheetSyncError):
            return error
        self.logger.error("service_orchestrator_failed", error=str(error))
        return InternalError.unexpected(str(error))
