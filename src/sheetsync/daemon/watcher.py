"""Single-file watcher using watchfiles.

Design:
- Watches the parent directory (non-recursive), never the file itself:
  exporters that save via delete+recreate or rename-over change the file's
  inode, which silently drops a per-file watch on most backends
- Batches arrive unfiltered so the directory's liveness is checked after
  every one; only added/modified events whose base name equals the target's
  reach the queue
- Each backend batch (already debounced by watchfiles) becomes at most one
  notification per changed path
- Falls back to polling at the configured check interval for
  cross-filesystem mounts (WSL /mnt/*, network shares) or when forced
- Backend errors are logged and the watch is re-armed; a watched directory
  that disappears closes the stream for good
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import time
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from pathlib import Path

import structlog
from watchfiles import Change, awatch

from sheetsync.core.errors import WatcherError
from sheetsync.core.logging import get_logger
from sheetsync.tables.base import ChangeNotification, NotificationStream, WatchTarget

RETRY_BACKOFF_SEC = 1.0
STEP_MS = 50

CHANGE_KINDS: frozenset[Change] = frozenset({Change.added, Change.modified})


def _is_cross_filesystem(path: Path) -> bool:
    """Detect if path is on a cross-filesystem mount (WSL /mnt/*, network drives, etc.)."""
    path_str = str(path)
    # WSL accessing Windows filesystem: /mnt/c/, /mnt/d/, etc.
    # Single drive letter, alone or followed by / (not /mnt/data/, a regular mount)
    if (
        path_str.startswith("/mnt/")
        and len(path_str) > 5
        and path_str[5].isalpha()
        and (len(path_str) == 6 or path_str[6] == "/")
    ):
        return True
    return path_str.startswith(("/run/user/", "/media/", "/net/"))


class TargetFilter:
    """watchfiles filter: writes and creations of one file name only."""

    def __init__(self, name: str) -> None:
        self.name = os.path.normcase(name)

    def __call__(self, change: Change, path: str) -> bool:
        return change in CHANGE_KINDS and os.path.normcase(os.path.basename(path)) == self.name

    def __repr__(self) -> str:
        return f"TargetFilter(name={self.name!r})"


@dataclass
class FileWatcher:
    """
    Watches one file and emits a ChangeNotification each time it is written
    or recreated.

    ``start`` returns a NotificationStream; calling it again while running
    returns the same stream. ``stop`` is idempotent. Either ``stop`` or the
    cancellation event passed to ``start`` ends reception, releases the OS
    watch and closes the stream.
    """

    target: WatchTarget
    queue_size: int = 256
    stop_timeout: float = 2.0
    logger: structlog.stdlib.BoundLogger = field(default_factory=lambda: get_logger("watcher"))

    _stream: NotificationStream | None = field(default=None, init=False)
    _task: asyncio.Task[None] | None = field(default=None, init=False)
    _stop_event: asyncio.Event = field(default_factory=asyncio.Event, init=False)
    _filter: TargetFilter = field(init=False)

    def __post_init__(self) -> None:
        self._filter = TargetFilter(self.target.name)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def polling(self) -> bool:
        return self.target.force_polling or _is_cross_filesystem(self.target.directory)

    async def start(self, cancel: asyncio.Event | None = None) -> NotificationStream:
        """Start watching. Raises WatcherError if the directory cannot be watched."""
        if self.running and self._stream is not None:
            return self._stream

        directory = self.target.directory
        if not directory.is_dir():
            raise WatcherError.unavailable(str(directory), "directory does not exist")
        if not os.access(directory, os.R_OK | os.X_OK):
            raise WatcherError.unavailable(str(directory), "permission denied")

        self._stop_event = asyncio.Event()
        self._stream = NotificationStream(maxsize=self.queue_size)
        self._task = asyncio.create_task(
            self._receive(self._stream, self._stop_event, cancel),
            name="sheetsync-watcher",
        )
        self.logger.info(
            "file_watcher_started",
            path=str(self.target.path),
            mode="polling" if self.polling else "native",
            interval=self.target.check_interval,
            debounce_ms=self.target.debounce_ms,
        )
        return self._stream

    async def stop(self) -> None:
        """Stop watching. Safe to call when not running."""
        task = self._task
        if task is None:
            return

        self._stop_event.set()
        if not task.done():
            try:
                await asyncio.wait_for(task, timeout=self.stop_timeout)
            except TimeoutError:
                self.logger.warning("file_watcher_stop_timeout", timeout=self.stop_timeout)
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._task = None

        if self._stream is not None:
            self._stream.close()

        self.logger.info("file_watcher_stopped", path=str(self.target.path))

    async def _relay_cancel(self, cancel: asyncio.Event, stop_event: asyncio.Event) -> None:
        await cancel.wait()
        if not stop_event.is_set():
            self.logger.info("file_watcher_cancelled", path=str(self.target.path))
        stop_event.set()

    def _directory_gone(self) -> bool:
        return not self.target.directory.is_dir()

    def _batches(
        self, directory: str, stop_event: asyncio.Event
    ) -> AsyncGenerator[set[tuple[Change, str]], None]:
        """Raw debounced change batches; empty batches on rust timeout."""
        return awatch(
            directory,
            watch_filter=None,
            stop_event=stop_event,
            debounce=self.target.debounce_ms,
            step=STEP_MS,
            rust_timeout=int(max(self.target.check_interval, 1.0) * 1000),
            yield_on_timeout=True,
            recursive=False,
            force_polling=self.polling,
            poll_delay_ms=int(self.target.check_interval * 1000),
            ignore_permission_denied=True,
        )

    async def _receive(
        self,
        stream: NotificationStream,
        stop_event: asyncio.Event,
        cancel: asyncio.Event | None,
    ) -> None:
        """Reception loop. Ends on stop, cancellation, or a closed watch."""
        relay: asyncio.Task[None] | None = None
        if cancel is not None:
            relay = asyncio.create_task(self._relay_cancel(cancel, stop_event))

        reason: WatcherError | None = None
        directory = str(self.target.directory)
        try:
            while not stop_event.is_set():
                if self._directory_gone():
                    reason = WatcherError.closed(directory, "watched directory no longer exists")
                    break
                try:
                    async with contextlib.aclosing(self._batches(directory, stop_event)) as batches:
                        async for changes in batches:
                            if self._directory_gone():
                                break
                            if changes:
                                await self._handle_changes(stream, changes)
                    if not stop_event.is_set() and not self._directory_gone():
                        self.logger.warning("watcher_rearming", path=directory)
                        with contextlib.suppress(TimeoutError):
                            await asyncio.wait_for(stop_event.wait(), timeout=RETRY_BACKOFF_SEC)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    if stop_event.is_set():
                        break
                    self.logger.error("watcher_error", path=directory, error=str(e))
                    with contextlib.suppress(TimeoutError):
                        await asyncio.wait_for(stop_event.wait(), timeout=RETRY_BACKOFF_SEC)
        finally:
            if relay is not None:
                relay.cancel()
            if reason is not None:
                self.logger.error("file_watcher_closed", path=directory, error=str(reason))
            stream.close(reason)

    async def _handle_changes(
        self,
        stream: NotificationStream,
        changes: set[tuple[Change, str]],
    ) -> None:
        """Collapse one backend batch into one notification per changed path."""
        latest: dict[str, Change] = {}
        for change_type, path_str in changes:
            if not self._filter(change_type, path_str):
                continue
            # A create in the same batch as a write is reported as a create
            if latest.get(path_str) is not Change.added:
                latest[path_str] = change_type

        now = time.monotonic()
        for path_str in sorted(latest):
            change_type = latest[path_str]
            self.logger.info("file_changed", path=path_str, change=change_type.name)
            await stream.put(
                ChangeNotification(path=Path(path_str), change=change_type.name, received_at=now)
            )
