"""sheetsync status command - show service status."""

import json
from pathlib import Path
from typing import Any

import click

from sheetsync.cli.utils import CONFIG_ARGUMENT, load_config_or_fail
from sheetsync.core.progress import pluralize
from sheetsync.daemon.lifecycle import is_running, read_pid, read_state_file


@click.command()
@CONFIG_ARGUMENT
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def status_command(config_path: Path, as_json: bool) -> None:
    """Show SheetSync service status.

    CONFIG is the configuration file (default: ./config.yaml).
    """
    config = load_config_or_fail(config_path)
    runtime_dir = Path(config.service.runtime_dir)

    running = is_running(runtime_dir)
    state = read_state_file(runtime_dir) or {}
    payload: dict[str, Any] = {
        "running": running,
        "pid": read_pid(runtime_dir) if running else None,
        "watch_path": config.watch.path,
        "spreadsheet_id": config.destination.spreadsheet_id,
        **{k: v for k, v in state.items() if k != "pid"},
    }

    if as_json:
        click.echo(json.dumps(payload))
        return

    if running:
        click.echo(f"Service: running (PID {payload['pid']})")
    else:
        click.echo("Service: not running")
    click.echo(f"Watching: {config.watch.path}")
    click.echo(f"Spreadsheet: {config.destination.spreadsheet_id}")

    if not state:
        return
    click.echo(f"Last state: {state.get('state', 'unknown')} (at {state.get('updated_at', '?')})")
    if "cycles_completed" in state:
        click.echo(
            f"Syncs: {state['cycles_completed']} completed, {state.get('cycles_failed', 0)} failed"
        )
    report = state.get("last_report")
    if report:
        outcome = "ok" if not report.get("error") else report["error"].get("message", "failed")
        rows = report.get("rows") or {}
        if rows:
            counts = ", ".join(f"{table}: {pluralize(n, 'row')}" for table, n in rows.items())
            outcome = f"{outcome} ({counts})"
        click.echo(f"Last sync: {report.get('started_at', '?')} - {outcome}")
    error = state.get("error")
    if error:
        click.echo(f"Error: {error.get('message', error)}")
