"""Core module exports."""

from sheetsync.core.errors import (
    ConfigError,
    ErrorCode,
    InternalError,
    SheetSyncError,
    SinkError,
    SourceError,
    StartupError,
    WatcherError,
)
from sheetsync.core.logging import (
    clear_cycle_id,
    configure_logging,
    get_cycle_id,
    get_logger,
    set_cycle_id,
)
from sheetsync.core.progress import pluralize, status

__all__ = [
    # Errors
    "ConfigError",
    "ErrorCode",
    "InternalError",
    "SheetSyncError",
    "SinkError",
    "SourceError",
    "StartupError",
    "WatcherError",
    # Logging
    "clear_cycle_id",
    "configure_logging",
    "get_cycle_id",
    "get_logger",
    "set_cycle_id",
    # Progress
    "pluralize",
    "status",
]
