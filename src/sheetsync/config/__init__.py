"""Config module exports."""

from sheetsync.config.loader import DEFAULT_CONFIG_FILE, load_config
from sheetsync.config.models import (
    DestinationConfig,
    LoggingConfig,
    ServiceConfig,
    SheetSyncConfig,
    TablesConfig,
    WatchConfig,
)
from sheetsync.config.template import write_config_template

__all__ = [
    "DEFAULT_CONFIG_FILE",
    "load_config",
    "write_config_template",
    "SheetSyncConfig",
    "WatchConfig",
    "DestinationConfig",
    "TablesConfig",
    "LoggingConfig",
    "ServiceConfig",
]
