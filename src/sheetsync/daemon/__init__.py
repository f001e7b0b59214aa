"""SheetSync daemon - file watching, sync loop and service host."""

from sheetsync.daemon.orchestrator import (
    OrchestratorState,
    OrchestratorStatus,
    SyncOrchestrator,
    SyncReport,
)
from sheetsync.daemon.service import (
    ControlCommand,
    ControlRequest,
    ServiceHost,
    ServiceState,
    ServiceStatus,
)
from sheetsync.daemon.watcher import FileWatcher

__all__ = [
    "ControlCommand",
    "ControlRequest",
    "FileWatcher",
    "OrchestratorState",
    "OrchestratorStatus",
    "ServiceHost",
    "ServiceState",
    "ServiceStatus",
    "SyncOrchestrator",
    "SyncReport",
]
