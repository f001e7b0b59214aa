"""sheetsync run command - sync in the foreground until interrupted."""

import asyncio
from pathlib import Path

import click

from sheetsync.cli.utils import CONFIG_ARGUMENT, apply_logging, load_config_or_fail
from sheetsync.core.progress import status


@click.command()
@CONFIG_ARGUMENT
@click.pass_context
def run_command(ctx: click.Context, config_path: Path) -> None:
    """Watch the workbook and sync on every change. Runs in foreground.

    CONFIG is the configuration file (default: ./config.yaml). Stop with
    Ctrl+C or SIGTERM; a sync already in progress is allowed to finish.
    """
    from sheetsync.daemon.lifecycle import run_foreground

    config = load_config_or_fail(config_path)
    apply_logging(ctx, config)

    status(f"Watching {config.watch.path}", style="none")
    status(
        f"Syncing {config.tables.first!r} and {config.tables.second!r} "
        f"to spreadsheet {config.destination.spreadsheet_id}",
        style="info",
    )

    try:
        exit_code = asyncio.run(run_foreground(config))
    except (KeyboardInterrupt, asyncio.CancelledError):
        click.echo("\nStopped")
        return

    if exit_code != 0:
        status("Sync stopped with an error; see the log for details", style="error")
        raise SystemExit(exit_code)
    status("Stopped", style="success")
