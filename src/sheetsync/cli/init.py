"""sheetsync init command - write a starter config file."""

from pathlib import Path

import click

from sheetsync.config.loader import DEFAULT_CONFIG_FILE
from sheetsync.config.template import write_config_template
from sheetsync.core.progress import status


@click.command()
@click.argument(
    "path",
    default=DEFAULT_CONFIG_FILE,
    required=False,
    type=click.Path(dir_okay=False, path_type=Path),
)
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing config file")
@click.option("--watch", "watch_path", default="export.xlsx", help="Workbook to watch")
@click.option(
    "--credentials", "credentials_path", default="credentials.json", help="Service-account key"
)
@click.option("--spreadsheet-id", default=None, help="Destination spreadsheet ID")
def init_command(
    path: Path,
    force: bool,
    watch_path: str,
    credentials_path: str,
    spreadsheet_id: str | None,
) -> None:
    """Write a commented starter config to PATH (default: ./config.yaml)."""
    if path.exists() and not force:
        status(f"Config already exists: {path}", style="warning")
        status("Use --force to overwrite", style="info")
        raise SystemExit(1)

    values = {"watch_path": watch_path, "credentials_path": credentials_path}
    if spreadsheet_id:
        values["spreadsheet_id"] = spreadsheet_id
    write_config_template(path, **values)

    status(f"Wrote {path}", style="success")
    status("Edit the table names and spreadsheet ID, then run 'sheetsync run'", style="info")
