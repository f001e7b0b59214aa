"""Table capabilities: contracts, workbook source, Google Sheets sink."""

from sheetsync.tables.base import (
    ChangeNotification,
    NotificationStream,
    RowSet,
    SyncSession,
    TableSink,
    TableSource,
    Watcher,
    WatchTarget,
    normalize_path,
)
from sheetsync.tables.excel import ExcelTableSource
from sheetsync.tables.sheets import GoogleSheetsSink

__all__ = [
    "ChangeNotification",
    "ExcelTableSource",
    "GoogleSheetsSink",
    "NotificationStream",
    "RowSet",
    "SyncSession",
    "TableSink",
    "TableSource",
    "Watcher",
    "WatchTarget",
    "normalize_path",
]
