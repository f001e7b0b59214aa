"""Tests for the single-file watcher.

Tests cover:
- TargetFilter event kinds and base-name matching
- Cross-filesystem detection
- Batch collapsing in _handle_changes
- Start preconditions, idempotent start/stop
- Reception loop: directory loss amid noise, re-arming after backend errors
- Real polling watch: change detection, silence after stop, directory loss
"""

from __future__ import annotations

import asyncio
import shutil
from collections.abc import AsyncGenerator
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from watchfiles import Change

from sheetsync.core.errors import ErrorCode, WatcherError
from sheetsync.daemon.watcher import FileWatcher, TargetFilter, _is_cross_filesystem
from sheetsync.tables.base import NotificationStream, WatchTarget


def _polling_watcher(path: Path) -> FileWatcher:
    target = WatchTarget(path=path, check_interval=0.1, debounce_ms=50, force_polling=True)
    return FileWatcher(target=target)


class TestTargetFilter:
    """Watch filter tests."""

    @pytest.mark.parametrize(
        ("change", "expected"),
        [
            (Change.added, True),
            (Change.modified, True),
            (Change.deleted, False),
        ],
    )
    def test_given_change_kind_when_filtered_then_only_writes_and_creates_pass(
        self, change: Change, expected: bool
    ) -> None:
        """Deletes (and renames away, which surface as deletes) are ignored."""
        # Given
        watch_filter = TargetFilter("export.xlsx")

        # When
        result = watch_filter(change, "/data/export.xlsx")

        # Then
        assert result is expected

    def test_given_sibling_file_when_filtered_then_rejected(self) -> None:
        """Other files in the watched directory never pass."""
        watch_filter = TargetFilter("export.xlsx")

        assert not watch_filter(Change.modified, "/data/export.xlsx.tmp")
        assert not watch_filter(Change.modified, "/data/~$export.xlsx")
        assert not watch_filter(Change.added, "/data/other.xlsx")

    def test_given_filter_when_repr_then_shows_name(self) -> None:
        assert "export.xlsx" in repr(TargetFilter("export.xlsx"))


class TestCrossFilesystemDetection:
    """Tests for _is_cross_filesystem function."""

    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("/mnt/c/Users/me/export.xlsx", True),
            ("/mnt/d/", True),
            ("/mnt/data/export.xlsx", False),
            ("/media/usb/export.xlsx", True),
            ("/net/share/export.xlsx", True),
            ("/run/user/1000/gvfs/export.xlsx", True),
            ("/home/me/export.xlsx", False),
        ],
    )
    def test_given_path_when_checked_then_mount_kind_detected(
        self, path: str, expected: bool
    ) -> None:
        assert _is_cross_filesystem(Path(path)) is expected

    def test_given_cross_filesystem_target_when_polling_checked_then_true(self) -> None:
        """Cross-filesystem targets fall back to polling."""
        watcher = FileWatcher(target=WatchTarget(path=Path("/mnt/c/export.xlsx")))
        assert watcher.polling is True

    def test_given_drive_root_directory_when_checked_then_cross_filesystem(self) -> None:
        """A workbook directly on a WSL drive root is detected."""
        assert _is_cross_filesystem(Path("/mnt/c")) is True
        assert _is_cross_filesystem(Path("/mnt/cd")) is False


class TestHandleChanges:
    """Batch collapsing tests."""

    @pytest.mark.asyncio
    async def test_given_burst_when_handled_then_one_notification(self, tmp_path: Path) -> None:
        """A delete+create+modify burst becomes one 'added' notification."""
        # Given
        path = tmp_path / "export.xlsx"
        watcher = _polling_watcher(path)
        stream = NotificationStream()
        changes = {
            (Change.deleted, str(path)),
            (Change.added, str(path)),
            (Change.modified, str(path)),
            (Change.modified, str(tmp_path / "notes.txt")),
        }

        # When
        await watcher._handle_changes(stream, changes)

        # Then
        assert stream.qsize() == 1
        notification = await stream.get()
        assert notification is not None
        assert notification.path == path
        assert notification.change == "added"

    @pytest.mark.asyncio
    async def test_given_only_deletes_when_handled_then_nothing(self, tmp_path: Path) -> None:
        path = tmp_path / "export.xlsx"
        watcher = _polling_watcher(path)
        stream = NotificationStream()

        await watcher._handle_changes(stream, {(Change.deleted, str(path))})

        assert stream.qsize() == 0


class TestStartStop:
    """Start preconditions and idempotence."""

    @pytest.mark.asyncio
    async def test_given_missing_directory_when_start_then_unavailable(
        self, tmp_path: Path
    ) -> None:
        """start fails without starting when the directory cannot be watched."""
        # Given
        watcher = _polling_watcher(tmp_path / "nope" / "export.xlsx")

        # When / Then
        with pytest.raises(WatcherError) as exc_info:
            await watcher.start()
        assert exc_info.value.code == ErrorCode.WATCH_UNAVAILABLE
        assert not watcher.running

    @pytest.mark.asyncio
    async def test_given_running_when_start_again_then_same_stream(self, tmp_path: Path) -> None:
        """Second start returns the existing stream."""
        # Given
        watcher = _polling_watcher(tmp_path / "export.xlsx")
        first = await watcher.start()

        # When
        second = await watcher.start()

        # Then
        assert second is first
        await watcher.stop()

    @pytest.mark.asyncio
    async def test_given_never_started_when_stop_then_no_error(self, tmp_path: Path) -> None:
        watcher = _polling_watcher(tmp_path / "export.xlsx")
        await watcher.stop()
        await watcher.stop()
        assert not watcher.running

    @pytest.mark.asyncio
    async def test_given_running_when_stop_twice_then_stream_closed(self, tmp_path: Path) -> None:
        # Given
        watcher = _polling_watcher(tmp_path / "export.xlsx")
        stream = await watcher.start()

        # When
        await watcher.stop()
        await watcher.stop()

        # Then
        assert not watcher.running
        assert stream.closed
        assert stream.close_reason is None
        assert await stream.get() is None

    @pytest.mark.asyncio
    async def test_given_cancel_event_when_set_then_stream_closes(self, tmp_path: Path) -> None:
        """The cancellation signal alone ends reception."""
        # Given
        cancel = asyncio.Event()
        watcher = _polling_watcher(tmp_path / "export.xlsx")
        stream = await watcher.start(cancel)

        # When
        cancel.set()

        # Then
        assert await asyncio.wait_for(stream.get(), timeout=5.0) is None
        assert stream.close_reason is None
        await watcher.stop()


class TestReceiveLoop:
    """Reception loop against a scripted backend."""

    @pytest.mark.asyncio
    async def test_given_directory_removed_amid_noise_when_watching_then_closed(
        self, tmp_path: Path
    ) -> None:
        """Directory loss is noticed even when the backend never goes quiet."""
        # Given
        watched = tmp_path / "exports"
        watched.mkdir()
        watcher = _polling_watcher(watched / "export.xlsx")

        async def noisy_batches(
            directory: str, stop_event: asyncio.Event
        ) -> AsyncGenerator[set[tuple[Change, str]], None]:
            shutil.rmtree(watched)
            while not stop_event.is_set():
                yield {(Change.deleted, str(watched / "other.xlsx"))}
                await asyncio.sleep(0.01)

        watcher._batches = noisy_batches  # type: ignore[method-assign]

        # When
        stream = await watcher.start()

        # Then
        assert await asyncio.wait_for(stream.get(), timeout=2.0) is None
        assert isinstance(stream.close_reason, WatcherError)
        assert stream.close_reason.code == ErrorCode.WATCH_CLOSED
        await watcher.stop()

    @pytest.mark.asyncio
    async def test_given_backend_error_when_directory_exists_then_logged_and_rearmed(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A transient backend failure is logged and watching continues."""
        # Given
        monkeypatch.setattr("sheetsync.daemon.watcher.RETRY_BACKOFF_SEC", 0.01)
        path = tmp_path / "export.xlsx"
        logger = MagicMock()
        watcher = FileWatcher(
            target=WatchTarget(path=path, check_interval=0.1, force_polling=True),
            logger=logger,
        )
        arms = 0

        async def flaky_batches(
            directory: str, stop_event: asyncio.Event
        ) -> AsyncGenerator[set[tuple[Change, str]], None]:
            nonlocal arms
            arms += 1
            if arms == 1:
                raise OSError("inotify overflow")
            yield {(Change.modified, str(path))}
            await stop_event.wait()

        watcher._batches = flaky_batches  # type: ignore[method-assign]

        # When
        stream = await watcher.start()
        notification = await asyncio.wait_for(stream.get(), timeout=2.0)

        # Then
        assert notification is not None
        assert notification.path == path
        assert arms == 2
        logger.error.assert_any_call(
            "watcher_error", path=str(tmp_path), error="inotify overflow"
        )
        assert not stream.closed
        await watcher.stop()


@pytest.mark.slow
class TestPollingWatch:
    """Real filesystem watch in polling mode."""

    @pytest.mark.asyncio
    async def test_given_file_written_when_watching_then_notified(self, tmp_path: Path) -> None:
        """Writing the target produces a notification for its path."""
        # Given
        path = tmp_path / "export.xlsx"
        watcher = _polling_watcher(path)
        stream = await watcher.start()
        await asyncio.sleep(0.3)

        # When
        path.write_bytes(b"v1")

        # Then
        notification = await asyncio.wait_for(stream.get(), timeout=10.0)
        assert notification is not None
        assert notification.path == path
        assert notification.change in {"added", "modified"}

        await watcher.stop()

    @pytest.mark.asyncio
    async def test_given_sibling_written_when_watching_then_silent(self, tmp_path: Path) -> None:
        """Directory noise never reaches the stream."""
        # Given
        watcher = _polling_watcher(tmp_path / "export.xlsx")
        stream = await watcher.start()
        await asyncio.sleep(0.3)

        # When
        (tmp_path / "other.xlsx").write_bytes(b"x")
        await asyncio.sleep(1.0)

        # Then
        assert stream.qsize() == 0
        await watcher.stop()

    @pytest.mark.asyncio
    async def test_given_stopped_when_file_changes_then_no_notification(
        self, tmp_path: Path
    ) -> None:
        """No dangling watch: writes after stop produce nothing."""
        # Given
        path = tmp_path / "export.xlsx"
        watcher = _polling_watcher(path)
        stream = await watcher.start()
        await watcher.stop()

        # When
        path.write_bytes(b"after stop")
        await asyncio.sleep(0.5)

        # Then
        assert await stream.get() is None

    @pytest.mark.asyncio
    async def test_given_directory_removed_when_watching_then_stream_closed(
        self, tmp_path: Path
    ) -> None:
        """Losing the watched directory closes the stream with WATCH_CLOSED."""
        # Given
        watched = tmp_path / "exports"
        watched.mkdir()
        watcher = _polling_watcher(watched / "export.xlsx")
        stream = await watcher.start()
        await asyncio.sleep(0.3)

        # When
        shutil.rmtree(watched)

        # Then
        assert await asyncio.wait_for(stream.get(), timeout=15.0) is None
        assert isinstance(stream.close_reason, WatcherError)
        assert stream.close_reason.code == ErrorCode.WATCH_CLOSED
        await watcher.stop()
