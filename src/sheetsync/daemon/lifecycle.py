"""Process lifecycle: foreground runner, service runner, PID and state files."""

from __future__ import annotations

import asyncio
import contextlib
import json
import os
import signal
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from sheetsync.config.models import SheetSyncConfig
from sheetsync.core.errors import SheetSyncError
from sheetsync.core.logging import get_logger
from sheetsync.daemon.orchestrator import SyncOrchestrator
from sheetsync.daemon.service import ControlCommand, ServiceHost, ServiceStatus

logger = get_logger("lifecycle")

# Relative to service.runtime_dir
PID_FILE = "sheetsync.pid"
STATE_FILE = "state.json"


def write_pid_file(runtime_dir: Path) -> None:
    """Write the PID file for service discovery."""
    runtime_dir.mkdir(parents=True, exist_ok=True)
    pid_path = runtime_dir / PID_FILE
    pid_path.write_text(str(os.getpid()))
    logger.debug("pid_file_written", pid_path=str(pid_path))


def remove_pid_file(runtime_dir: Path) -> None:
    with contextlib.suppress(FileNotFoundError):
        (runtime_dir / PID_FILE).unlink()


def read_pid(runtime_dir: Path) -> int | None:
    """Read the service PID. Returns None if missing or malformed."""
    try:
        return int((runtime_dir / PID_FILE).read_text().strip())
    except (FileNotFoundError, ValueError):
        return None


def is_running(runtime_dir: Path) -> bool:
    """Check the PID file and the process. Stale PID files are removed."""
    pid = read_pid(runtime_dir)
    if pid is None:
        return False

    try:
        os.kill(pid, 0)
        return True
    except PermissionError:
        # Exists, owned by another user
        return True
    except (OSError, ProcessLookupError):
        remove_pid_file(runtime_dir)
        return False


def write_state_file(runtime_dir: Path, status: ServiceStatus, **extra: Any) -> None:
    """Record the last reported service status for ``sheetsync status``."""
    runtime_dir.mkdir(parents=True, exist_ok=True)
    payload = {
        "pid": os.getpid(),
        "updated_at": datetime.now(UTC).isoformat(),
        **status.to_dict(),
        **extra,
    }
    state_path = runtime_dir / STATE_FILE
    tmp_path = state_path.with_suffix(".tmp")
    tmp_path.write_text(json.dumps(payload, indent=2))
    tmp_path.replace(state_path)


def read_state_file(runtime_dir: Path) -> dict[str, Any] | None:
    try:
        data = json.loads((runtime_dir / STATE_FILE).read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        return None
    return data if isinstance(data, dict) else None


def stop_daemon(runtime_dir: Path) -> bool:
    """Stop a running service by sending SIGTERM. Returns True if signalled."""
    pid = read_pid(runtime_dir)
    if pid is None:
        return False

    try:
        os.kill(pid, signal.SIGTERM)
        logger.info("stop_signal_sent", pid=pid)
        return True
    except (OSError, ProcessLookupError):
        remove_pid_file(runtime_dir)
        return False


def _install_handlers(
    loop: asyncio.AbstractEventLoop,
    handlers: dict[signal.Signals, Callable[[], None]],
) -> list[signal.Signals]:
    installed = []
    for sig, handler in handlers.items():
        try:
            loop.add_signal_handler(sig, handler)
        except (NotImplementedError, RuntimeError):
            # No loop signal support (Windows); Ctrl+C still raises KeyboardInterrupt
            logger.debug("signal_handler_unsupported", signal=sig.name)
            continue
        installed.append(sig)
    return installed


def _remove_handlers(loop: asyncio.AbstractEventLoop, installed: list[signal.Signals]) -> None:
    for sig in installed:
        loop.remove_signal_handler(sig)


async def _stop_with_timeout(orchestrator: SyncOrchestrator, timeout: float) -> None:
    try:
        async with asyncio.timeout(timeout):
            await orchestrator.stop()
    except TimeoutError:
        logger.warning("stop_timeout", message=f"Orderly stop timed out after {timeout}s")


async def run_foreground(
    config: SheetSyncConfig,
    orchestrator: SyncOrchestrator | None = None,
) -> int:
    """Run until SIGINT/SIGTERM, then stop in order. Returns the exit code."""
    orchestrator = orchestrator or SyncOrchestrator.from_config(config)
    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()
    main_task = asyncio.current_task()
    shutdown_count = 0

    def signal_handler() -> None:
        nonlocal shutdown_count
        shutdown_count += 1
        logger.info("shutdown_signal_received", count=shutdown_count)
        cancel.set()
        if shutdown_count > 1 and main_task is not None:
            # Second signal: stop waiting on the loop; stop stays bounded by stop_timeout_sec
            main_task.cancel()

    installed = _install_handlers(
        loop, {signal.SIGINT: signal_handler, signal.SIGTERM: signal_handler}
    )
    try:
        try:
            await orchestrator.start(cancel)
        except SheetSyncError as e:
            logger.error("startup_failed", error=str(e), code=int(e.code))
            return 1

        try:
            await orchestrator.wait()
        except SheetSyncError as e:
            logger.error("sync_ended", error=str(e), code=int(e.code))
            return 1
        finally:
            await _stop_with_timeout(orchestrator, config.service.stop_timeout_sec)
        return 0
    finally:
        _remove_handlers(loop, installed)


async def run_service(
    config: SheetSyncConfig,
    orchestrator: SyncOrchestrator | None = None,
) -> int:
    """Run under the service-control protocol. Returns the exit code.

    SIGTERM maps to STOP, SIGINT to SHUTDOWN and SIGHUP to INTERROGATE.
    """
    runtime_dir = Path(config.service.runtime_dir)
    orchestrator = orchestrator or SyncOrchestrator.from_config(config)

    def on_status(status: ServiceStatus) -> None:
        orch = orchestrator.status
        try:
            write_state_file(
                runtime_dir,
                status,
                orchestrator=orch.state.value,
                cycles_completed=orch.cycles_completed,
                cycles_failed=orch.cycles_failed,
                last_report=orch.last_report.to_dict() if orch.last_report else None,
            )
        except OSError as e:
            logger.warning("state_file_write_failed", path=str(runtime_dir), error=str(e))

    host = ServiceHost(
        orchestrator=orchestrator,
        on_status=on_status,
        stop_timeout=config.service.stop_timeout_sec,
    )

    handlers: dict[signal.Signals, Callable[[], None]] = {
        signal.SIGTERM: lambda: host.request(ControlCommand.STOP, source="SIGTERM"),
        signal.SIGINT: lambda: host.request(ControlCommand.SHUTDOWN, source="SIGINT"),
    }
    if hasattr(signal, "SIGHUP"):
        handlers[signal.SIGHUP] = lambda: host.request(
            ControlCommand.INTERROGATE, source="SIGHUP"
        )

    loop = asyncio.get_running_loop()
    write_pid_file(runtime_dir)
    installed = _install_handlers(loop, handlers)
    try:
        return await host.run()
    finally:
        _remove_handlers(loop, installed)
        remove_pid_file(runtime_dir)
