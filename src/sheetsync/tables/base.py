"""Capability contracts between the sync pipeline and its integrations.

The orchestrator only depends on these protocols. Concrete implementations
(openpyxl workbook reader, Google Sheets client, watchfiles watcher) live in
their own modules and can be swapped for in-memory doubles.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

Row = list[str]
RowSet = list[Row]
"""Ordered rows of ordered text cells. No header or type inference."""


def normalize_path(path: str | os.PathLike[str]) -> Path:
    """Absolute, normalized, case-folded where the platform is case-insensitive."""
    return Path(os.path.normcase(os.path.abspath(os.fspath(path))))


@dataclass(frozen=True, slots=True)
class WatchTarget:
    """A single watched file plus its fallback polling cadence."""

    path: Path
    check_interval: float = 5.0
    debounce_ms: int = 1000
    force_polling: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", normalize_path(self.path))

    @property
    def directory(self) -> Path:
        return self.path.parent

    @property
    def name(self) -> str:
        return self.path.name

    def matches(self, path: str | os.PathLike[str]) -> bool:
        """True if *path* is this exact file after normalization."""
        return normalize_path(path) == self.path


@dataclass(frozen=True, slots=True)
class ChangeNotification:
    """The watched file was written or (re)created."""

    path: Path
    change: str = "modified"
    received_at: float = 0.0


@dataclass
class SyncSession:
    """Authenticated connection to the destination, one per process run."""

    service: Any
    credentials_path: str
    account: str | None = None
    connected_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class NotificationStream:
    """FIFO of change notifications with a single producer and consumer.

    ``get`` returns notifications in order, then None once the producer has
    closed the stream and the backlog is drained.
    ``close_reason`` tells the consumer why the stream ended; it is None
    after an orderly stop.
    """

    _CLOSED = object()

    def __init__(self, maxsize: int = 0) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self.close_reason: Exception | None = None
        self._sentinel_task: asyncio.Task[None] | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return self._queue.qsize()

    async def put(self, notification: ChangeNotification) -> None:
        if self._closed:
            return
        await self._queue.put(notification)

    def close(self, reason: Exception | None = None) -> None:
        """Close the stream. Pending notifications are still delivered."""
        if self._closed:
            return
        self._closed = True
        self.close_reason = reason
        # Sentinel goes after whatever is already queued
        try:
            self._queue.put_nowait(self._CLOSED)
        except asyncio.QueueFull:
            self._sentinel_task = asyncio.get_running_loop().create_task(
                self._queue.put(self._CLOSED)
            )

    async def get(self) -> ChangeNotification | None:
        """Next notification, or None once the stream is closed and drained."""
        item = await self._queue.get()
        if item is self._CLOSED:
            # Keep returning None to any later reader
            self._queue.put_nowait(self._CLOSED)
            return None
        return item  # type: ignore[no-any-return]


@runtime_checkable
class Watcher(Protocol):
    """Emits a notification each time the watched file changes."""

    async def start(self, cancel: asyncio.Event | None = None) -> NotificationStream: ...

    async def stop(self) -> None: ...


@runtime_checkable
class TableSource(Protocol):
    """Reads one named table from a local tabular file."""

    def read_table(self, path: Path, table: str) -> RowSet: ...


@runtime_checkable
class TableSink(Protocol):
    """Replaces the full contents of a named remote table."""

    def connect(self, credentials_path: str) -> SyncSession: ...

    def replace_table(
        self,
        session: SyncSession,
        spreadsheet_id: str,
        table: str,
        rows: Sequence[Sequence[str]],
    ) -> None: ...
