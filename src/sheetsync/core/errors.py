"""SheetSync error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Table source (local workbook)
- 4xxx: Table sink (remote spreadsheet)
- 5xxx: Watcher
- 6xxx: Lifecycle
- 9xxx: Internal
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002
    CONFIG_MISSING_REQUIRED = 2003
    CONFIG_FILE_NOT_FOUND = 2004

    # Source (3xxx)
    SOURCE_FILE_UNREADABLE = 3001
    SOURCE_TABLE_NOT_FOUND = 3002
    SOURCE_PARSE_ERROR = 3003

    # Sink (4xxx)
    SINK_CREDENTIALS_INVALID = 4001
    SINK_AUTH_FAILED = 4002
    SINK_NOT_CONNECTED = 4003
    SINK_TABLE_NOT_FOUND = 4004
    SINK_CLEAR_FAILED = 4005
    SINK_WRITE_FAILED = 4006

    # Watcher (5xxx)
    WATCH_UNAVAILABLE = 5001
    WATCH_CLOSED = 5002

    # Lifecycle (6xxx)
    STARTUP_FAILED = 6001
    ALREADY_STARTED = 6002

    # Internal (9xxx)
    INTERNAL_ERROR = 9001
    INTERNAL_TIMEOUT = 9002


@dataclass(eq=False)
class SheetSyncError(Exception):
    """Base error with structured context for logs and status output.

    Instances stay mutable; contextlib assigns ``__traceback__`` on re-raise.
    """

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'SINK_WRITE_FAILED')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON status output."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(SheetSyncError):
    """Configuration-related errors. Always fatal at startup."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )

    @classmethod
    def missing_required(cls, field: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_MISSING_REQUIRED,
            message=f"Missing required config field: {field}",
            details={"field": field},
        )

    @classmethod
    def file_not_found(cls, path: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_FILE_NOT_FOUND,
            message=f"Config file not found: {path}",
            details={"path": path},
        )


class SourceError(SheetSyncError):
    """Failures reading a table from the watched workbook.

    Retryable in the sense that the next write to the file triggers a new
    attempt; nothing retries the same cycle.
    """

    @classmethod
    def file_unreadable(cls, path: str, reason: str) -> "SourceError":
        return cls(
            code=ErrorCode.SOURCE_FILE_UNREADABLE,
            message=f"Cannot open workbook {path}: {reason}",
            retryable=True,
            details={"path": path, "reason": reason},
        )

    @classmethod
    def table_not_found(cls, path: str, table: str) -> "SourceError":
        return cls(
            code=ErrorCode.SOURCE_TABLE_NOT_FOUND,
            message=f"Sheet '{table}' not found in {path}",
            retryable=True,
            details={"path": path, "table": table},
        )

    @classmethod
    def parse_error(cls, path: str, table: str, reason: str) -> "SourceError":
        return cls(
            code=ErrorCode.SOURCE_PARSE_ERROR,
            message=f"Failed to read rows from sheet '{table}': {reason}",
            retryable=True,
            details={"path": path, "table": table, "reason": reason},
        )


class SinkError(SheetSyncError):
    """Failures talking to the destination spreadsheet."""

    @classmethod
    def credentials_invalid(cls, path: str, reason: str) -> "SinkError":
        return cls(
            code=ErrorCode.SINK_CREDENTIALS_INVALID,
            message=f"Unable to load credentials from {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def auth_failed(cls, reason: str) -> "SinkError":
        return cls(
            code=ErrorCode.SINK_AUTH_FAILED,
            message=f"Unable to create Sheets client: {reason}",
            details={"reason": reason},
        )

    @classmethod
    def not_connected(cls) -> "SinkError":
        return cls(
            code=ErrorCode.SINK_NOT_CONNECTED,
            message="Not connected to the Sheets API",
        )

    @classmethod
    def table_not_found(cls, spreadsheet_id: str, table: str) -> "SinkError":
        return cls(
            code=ErrorCode.SINK_TABLE_NOT_FOUND,
            message=f"Sheet '{table}' not found in spreadsheet {spreadsheet_id}",
            retryable=True,
            details={"spreadsheet_id": spreadsheet_id, "table": table},
        )

    @classmethod
    def clear_failed(cls, table: str, reason: str, status: int = 0) -> "SinkError":
        return cls(
            code=ErrorCode.SINK_CLEAR_FAILED,
            message=f"Unable to clear sheet '{table}': {reason}",
            retryable=True,
            details={"table": table, "reason": reason, "status": status},
        )

    @classmethod
    def write_failed(cls, table: str, reason: str, status: int = 0) -> "SinkError":
        return cls(
            code=ErrorCode.SINK_WRITE_FAILED,
            message=f"Unable to update sheet '{table}': {reason}",
            retryable=True,
            details={"table": table, "reason": reason, "status": status},
        )


class WatcherError(SheetSyncError):
    """File watcher failures."""

    @classmethod
    def unavailable(cls, path: str, reason: str) -> "WatcherError":
        return cls(
            code=ErrorCode.WATCH_UNAVAILABLE,
            message=f"Cannot watch {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def closed(cls, path: str, reason: str) -> "WatcherError":
        return cls(
            code=ErrorCode.WATCH_CLOSED,
            message=f"Watch on {path} closed unexpectedly: {reason}",
            details={"path": path, "reason": reason},
        )


class StartupError(SheetSyncError):
    """Orchestrator startup failures."""

    @classmethod
    def failed(cls, step: str, reason: str) -> "StartupError":
        return cls(
            code=ErrorCode.STARTUP_FAILED,
            message=f"Startup failed while {step}: {reason}",
            details={"step": step, "reason": reason},
        )

    @classmethod
    def already_started(cls, state: str) -> "StartupError":
        return cls(
            code=ErrorCode.ALREADY_STARTED,
            message=f"Orchestrator cannot start from state '{state}'",
            details={"state": state},
        )


class InternalError(SheetSyncError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )

    @classmethod
    def timeout(cls, operation: str, seconds: float) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_TIMEOUT,
            message=f"{operation} timed out after {seconds}s",
            details={"operation": operation, "seconds": seconds},
        )
