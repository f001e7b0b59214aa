"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (SHEETSYNC__SECTION__KEY)
3. Config file (YAML or JSON, default ./config.yaml)
4. Built-in defaults (this file)

Environment Variable Format:
    SHEETSYNC__<SECTION>__<KEY>=<VALUE>

Examples:
    SHEETSYNC__LOGGING__LEVEL=DEBUG
    SHEETSYNC__WATCH__CHECK_INTERVAL_SEC=2
    SHEETSYNC__DESTINATION__SPREADSHEET_ID=1AbC...
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

DEFAULT_CHECK_INTERVAL_SEC = 5.0


class WatchConfig(BaseModel):
    """Watched workbook configuration.

    Env vars:
        SHEETSYNC__WATCH__PATH: Workbook to watch
        SHEETSYNC__WATCH__CHECK_INTERVAL_SEC: Polling cadence fallback
        SHEETSYNC__WATCH__FORCE_POLLING: Poll even when native events work
    """

    path: str = Field(
        default="",
        description="Workbook whose writes trigger a sync. Relative paths resolve "
        "against the config file's directory.",
    )
    check_interval_sec: float = Field(
        default=DEFAULT_CHECK_INTERVAL_SEC,
        description="Polling cadence used when native file events are unavailable "
        "(network shares, WSL /mnt/* mounts) or polling is forced.",
    )
    debounce_ms: int = Field(
        default=1000,
        description="Window for collapsing bursts of filesystem events into one change. "
        "Exporters often write a file in several steps.",
    )
    force_polling: bool = Field(
        default=False,
        description="Always poll instead of using native file events.",
    )
    queue_size: int = Field(
        default=256,
        description="Pending change notifications before the watcher waits on the sync loop.",
    )

    @field_validator("check_interval_sec")
    @classmethod
    def validate_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"check_interval_sec must be positive, got {v}")
        return v

    @field_validator("debounce_ms", "queue_size")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"must be >= 0, got {v}")
        return v


class DestinationConfig(BaseModel):
    """Remote spreadsheet configuration.

    Env vars:
        SHEETSYNC__DESTINATION__CREDENTIALS_PATH: Service-account JSON key
        SHEETSYNC__DESTINATION__SPREADSHEET_ID: Target spreadsheet ID
    """

    credentials_path: str = Field(
        default="",
        description="Service-account JSON key with access to the spreadsheet.",
    )
    spreadsheet_id: str = Field(
        default="",
        description="ID of the destination spreadsheet (from its URL).",
    )


class TablesConfig(BaseModel):
    """The two sheets copied on every sync, in order.

    Each name identifies a sheet in the workbook and the same-named sheet in
    the destination spreadsheet.
    """

    first: str = Field(default="", description="Sheet synced first.")
    second: str = Field(default="", description="Sheet synced second.")

    @property
    def names(self) -> tuple[str, str]:
        return (self.first, self.second)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        SHEETSYNC__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        SHEETSYNC__LOGGING__FILE: Absolute path of an additional JSON log file
    """

    level: LogLevel = Field(
        default="INFO",
        description="Console log level. DEBUG logs every filtered filesystem event.",
    )
    format: Literal["json", "console"] = "console"
    file: str | None = Field(
        default=None,
        description="Optional log file (JSON lines). Written in addition to stderr.",
    )
    file_level: LogLevel | None = None  # Inherits level if None

    @field_validator("level", "file_level", mode="before")
    @classmethod
    def normalize_level(cls, v: str | None) -> str | None:
        return v.upper() if isinstance(v, str) else v

    @field_validator("file")
    @classmethod
    def validate_file(cls, v: str | None) -> str | None:
        if not v:
            return None
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"Log file must be an absolute path: {v}")
        return str(path)


class ServiceConfig(BaseModel):
    """Service host configuration.

    Env vars:
        SHEETSYNC__SERVICE__RUNTIME_DIR: Where PID and state files live
        SHEETSYNC__SERVICE__STOP_TIMEOUT_SEC: Graceful stop timeout
    """

    runtime_dir: str = Field(
        default=".sheetsync",
        description="Directory for PID and state files. Relative to the config file.",
    )
    stop_timeout_sec: float = Field(
        default=5.0,
        description="How long an orderly stop may take before giving up on in-flight work.",
    )


class SheetSyncConfig(BaseModel):
    """Root configuration for SheetSync."""

    watch: WatchConfig = Field(default_factory=WatchConfig)
    destination: DestinationConfig = Field(default_factory=DestinationConfig)
    tables: TablesConfig = Field(default_factory=TablesConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    service: ServiceConfig = Field(default_factory=ServiceConfig)
