"""Starter configuration file written by ``sheetsync init``."""

from pathlib import Path

from sheetsync.config.models import DEFAULT_CHECK_INTERVAL_SEC, LoggingConfig

PLACEHOLDER_SPREADSHEET_ID = "your-spreadsheet-id"


def render_config_template(
    *,
    watch_path: str = "export.xlsx",
    credentials_path: str = "credentials.json",
    spreadsheet_id: str = PLACEHOLDER_SPREADSHEET_ID,
    first_table: str = "Sheet1",
    second_table: str = "Sheet2",
) -> str:
    """Return the commented YAML for a new config file."""
    default_level = LoggingConfig().level
    lines = [
        "# SheetSync configuration",
        "# Relative paths are resolved against this file's directory.",
        "",
        "watch:",
        "  # Workbook whose writes trigger a sync",
        f"  path: {watch_path}",
        "  # Polling cadence (seconds) when native file events are unavailable",
        f"  # check_interval_sec: {DEFAULT_CHECK_INTERVAL_SEC}",
        "  # force_polling: false",
        "",
        "destination:",
        "  # Service-account JSON key; share the spreadsheet with its client_email",
        f"  credentials_path: {credentials_path}",
        f"  spreadsheet_id: {spreadsheet_id}",
        "",
        "# Sheets copied on every change, first then second.",
        "# Each must exist in the workbook and in the spreadsheet.",
        "tables:",
        f"  first: {first_table}",
        f"  second: {second_table}",
        "",
        "logging:",
        "  # DEBUG, INFO, WARNING, ERROR, CRITICAL",
        f"  level: {default_level}",
        "  # file: /absolute/path/sheetsync.log",
        "",
    ]
    return "\n".join(lines)


def write_config_template(path: Path, **values: str) -> None:
    """Write a starter config file to *path*."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_config_template(**values), encoding="utf-8")
