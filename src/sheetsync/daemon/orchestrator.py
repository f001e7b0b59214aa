"""Change-triggered sync pipeline.

Connects to the destination once, starts the watcher, then runs a single
processing task that turns every change notification for the watched
workbook into: read first table, read second table, replace first table,
replace second table. Cycles never overlap; a failed cycle is logged and
the loop waits for the next change.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from sheetsync.core.errors import InternalError, SheetSyncError, StartupError, WatcherError
from sheetsync.core.logging import clear_cycle_id, get_logger, set_cycle_id
from sheetsync.tables.base import (
    ChangeNotification,
    NotificationStream,
    RowSet,
    SyncSession,
    TableSink,
    TableSource,
    Watcher,
    WatchTarget,
)

if TYPE_CHECKING:
    from sheetsync.config.models import SheetSyncConfig


class OrchestratorState(Enum):
    """Sync orchestrator state."""

    NOT_STARTED = "not_started"
    CONNECTING = "connecting"
    WATCHING = "watching"
    PROCESSING = "processing"
    STOPPING = "stopping"
    STOPPED = "stopped"


@dataclass
class SyncReport:
    """Outcome of one sync cycle."""

    cycle_id: str
    path: str
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    duration_sec: float = 0.0
    rows: dict[str, int] = field(default_factory=dict)
    replaced: list[str] = field(default_factory=list)
    error: SheetSyncError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "cycle_id": self.cycle_id,
            "path": self.path,
            "started_at": self.started_at.isoformat(),
            "duration_sec": round(self.duration_sec, 3),
            "rows": dict(self.rows),
            "replaced": list(self.replaced),
            "error": self.error.to_dict() if self.error else None,
        }


@dataclass
class OrchestratorStatus:
    """Current orchestrator status."""

    state: OrchestratorState
    cycles_completed: int
    cycles_failed: int
    last_report: SyncReport | None = None
    last_error: SheetSyncError | None = None


@dataclass
class SyncOrchestrator:
    """
    Owns the destination session, the watcher and the processing loop.

    Design:
    - The session is established before the watcher starts; no session, no watch
    - One processing task consumes the notification stream; blocking reads and
      writes run in a worker thread and are awaited one at a time
    - Cancellation (the event given to ``start``) and ``stop`` both end the
      loop without interrupting a cycle already in flight
    - A stream closed by the watcher while not stopping is terminal and is
      raised from ``wait``
    """

    target: WatchTarget
    table_names: tuple[str, str]
    spreadsheet_id: str
    credentials_path: str
    watcher: Watcher
    source: TableSource
    sink: TableSink
    logger: structlog.stdlib.BoundLogger = field(
        default_factory=lambda: get_logger("orchestrator")
    )

    _state: OrchestratorState = field(default=OrchestratorState.NOT_STARTED, init=False)
    _session: SyncSession | None = field(default=None, init=False)
    _stream: NotificationStream | None = field(default=None, init=False)
    _task: asyncio.Task[None] | None = field(default=None, init=False)
    _cancel: asyncio.Event | None = field(default=None, init=False)
    _stop_event: asyncio.Event = field(default_factory=asyncio.Event, init=False)
    _cycles_completed: int = field(default=0, init=False)
    _cycles_failed: int = field(default=0, init=False)
    _last_report: SyncReport | None = field(default=None, init=False)
    _last_error: SheetSyncError | None = field(default=None, init=False)
    _terminal_error: SheetSyncError | None = field(default=None, init=False)

    def __post_init__(self) -> None:
        if len(self.table_names) != 2:
            raise ValueError(f"exactly two table names are required, got {self.table_names!r}")
        self.table_names = (self.table_names[0], self.table_names[1])

    @classmethod
    def from_config(
        cls,
        config: SheetSyncConfig,
        *,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> SyncOrchestrator:
        """Wire the workbook reader, Sheets client and file watcher from config."""
        from sheetsync.daemon.watcher import FileWatcher
        from sheetsync.tables.excel import ExcelTableSource
        from sheetsync.tables.sheets import GoogleSheetsSink

        def child(name: str) -> structlog.stdlib.BoundLogger:
            return logger.bind(component=name) if logger is not None else get_logger(name)

        target = WatchTarget(
            path=Path(config.watch.path),
            check_interval=config.watch.check_interval_sec,
            debounce_ms=config.watch.debounce_ms,
            force_polling=config.watch.force_polling,
        )
        return cls(
            target=target,
            table_names=config.tables.names,
            spreadsheet_id=config.destination.spreadsheet_id,
            credentials_path=config.destination.credentials_path,
            watcher=FileWatcher(
                target=target,
                queue_size=config.watch.queue_size,
                logger=child("watcher"),
            ),
            source=ExcelTableSource(logger=child("excel")),
            sink=GoogleSheetsSink(logger=child("sheets")),
            logger=child("orchestrator"),
        )

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def session(self) -> SyncSession | None:
        return self._session

    @property
    def status(self) -> OrchestratorStatus:
        return OrchestratorStatus(
            state=self._state,
            cycles_completed=self._cycles_completed,
            cycles_failed=self._cycles_failed,
            last_report=self._last_report,
            last_error=self._last_error,
        )

    def _set_state(self, state: OrchestratorState) -> None:
        if state is self._state:
            return
        previous, self._state = self._state, state
        self.logger.debug("orchestrator_state", previous=previous.value, state=state.value)

    def _stopping(self) -> bool:
        return self._stop_event.is_set() or (self._cancel is not None and self._cancel.is_set())

    async def start(self, cancel: asyncio.Event | None = None) -> None:
        """Connect, start watching, and launch the processing loop.

        Raises the connect or watcher failure after moving to STOPPED; the
        watcher is never started without a session.
        """
        if self._state is not OrchestratorState.NOT_STARTED:
            raise StartupError.already_started(self._state.value)

        self._cancel = cancel
        self._set_state(OrchestratorState.CONNECTING)
        self.logger.info(
            "orchestrator_starting",
            path=str(self.target.path),
            spreadsheet_id=self.spreadsheet_id,
            tables=list(self.table_names),
        )

        try:
            self._session = await asyncio.to_thread(self.sink.connect, self.credentials_path)
        except SheetSyncError as e:
            self._startup_failed("connect", e)
            raise
        except Exception as e:
            raise self._startup_failed("connect", StartupError.failed("connect", str(e))) from e

        try:
            self._stream = await self.watcher.start(cancel)
        except SheetSyncError as e:
            self._startup_failed("watch", e)
            raise
        except Exception as e:
            raise self._startup_failed("watch", StartupError.failed("watch", str(e))) from e

        self._set_state(OrchestratorState.WATCHING)
        self._task = asyncio.create_task(self._run(self._stream), name="sheetsync-orchestrator")
        self.logger.info("orchestrator_started", account=self._session.account)

    def _startup_failed(self, step: str, error: SheetSyncError) -> SheetSyncError:
        self._last_error = error
        self._set_state(OrchestratorState.STOPPED)
        self.logger.error("orchestrator_start_failed", step=step, error=str(error))
        return error

    async def stop(self) -> None:
        """Stop watching and wait for the loop. Safe before start and when repeated."""
        if self._state is OrchestratorState.NOT_STARTED:
            return

        self._stop_event.set()
        if self._state is not OrchestratorState.STOPPED:
            self._set_state(OrchestratorState.STOPPING)

        await self.watcher.stop()
        if self._task is not None:
            await asyncio.shield(self._task)
        self._set_state(OrchestratorState.STOPPED)

    async def wait(self) -> None:
        """Wait for the processing loop to end.

        Raises WatcherError if the loop ended because the watch closed.
        """
        if self._task is not None:
            await asyncio.shield(self._task)
        if self._terminal_error is not None:
            raise self._terminal_error

    async def _next_notification(self, stream: NotificationStream) -> ChangeNotification | None:
        """Next notification, or None once stopping or the stream is closed."""
        waiters: list[asyncio.Future[Any]] = [
            asyncio.ensure_future(stream.get()),
            asyncio.ensure_future(self._stop_event.wait()),
        ]
        if self._cancel is not None:
            waiters.append(asyncio.ensure_future(self._cancel.wait()))

        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters[1:]:
                waiter.cancel()

        getter = waiters[0]
        if not getter.done():
            getter.cancel()
            return None
        notification: ChangeNotification | None = getter.result()
        if notification is None or self._stopping():
            return None
        return notification

    async def _run(self, stream: NotificationStream) -> None:
        """Processing loop. Never raises; terminal conditions go to ``wait``."""
        try:
            while not self._stopping():
                notification = await self._next_notification(stream)
                if notification is None:
                    break
                await self._process(notification)

            if not self._stopping():
                reason = stream.close_reason
                if not isinstance(reason, WatcherError):
                    reason = WatcherError.closed(str(self.target.path), "notification stream ended")
                self._terminal_error = reason
                self._last_error = reason
                self.logger.error("orchestrator_watch_lost", error=str(reason))
        except Exception as e:
            self.logger.exception("orchestrator_loop_failed", error=str(e))
            self._terminal_error = InternalError.unexpected(str(e))
            self._last_error = self._terminal_error
        finally:
            stopping = self._stopping()
            if stopping:
                self._set_state(OrchestratorState.STOPPING)
            await self.watcher.stop()
            self._set_state(OrchestratorState.STOPPED)
            self.logger.info(
                "orchestrator_stopped",
                reason="stopped" if stopping else "watch_closed",
                cycles_completed=self._cycles_completed,
                cycles_failed=self._cycles_failed,
            )

    async def _process(self, notification: ChangeNotification) -> None:
        """Run one sync cycle for a change notification."""
        if not self.target.matches(notification.path):
            self.logger.debug("notification_ignored", path=str(notification.path))
            return

        cycle_id = set_cycle_id()
        self._set_state(OrchestratorState.PROCESSING)
        report = SyncReport(cycle_id=cycle_id, path=str(notification.path))
        started = time.monotonic()
        self.logger.info("sync_cycle_started", path=report.path, change=notification.change)

        try:
            tables: dict[str, RowSet] = {}
            for table in self.table_names:
                tables[table] = await asyncio.to_thread(
                    self.source.read_table, notification.path, table
                )
                report.rows[table] = len(tables[table])

            for table in self.table_names:
                await asyncio.to_thread(
                    self.sink.replace_table,
                    self._session,
                    self.spreadsheet_id,
                    table,
                    tables[table],
                )
                report.replaced.append(table)
                self.logger.info("table_replaced", table=table, rows=report.rows[table])
        except SheetSyncError as e:
            report.error = e
            self.logger.error(
                "sync_cycle_failed",
                error=str(e),
                code=int(e.code),
                replaced=list(report.replaced),
            )
        except Exception as e:
            report.error = InternalError.unexpected(str(e), type=type(e).__name__)
            self.logger.exception("sync_cycle_failed", error=str(e), replaced=list(report.replaced))
        finally:
            report.duration_sec = time.monotonic() - started
            self._last_report = report
            if report.ok:
                self._cycles_completed += 1
                self.logger.info(
                    "sync_cycle_completed",
                    rows=dict(report.rows),
                    duration_sec=round(report.duration_sec, 3),
                )
            else:
                self._cycles_failed += 1
                self._last_error = report.error
            if self._state is OrchestratorState.PROCESSING:
                self._set_state(OrchestratorState.WATCHING)
            clear_cycle_id()
