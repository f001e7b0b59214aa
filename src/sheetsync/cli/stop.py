"""sheetsync stop command - stop a running service."""

from __future__ import annotations

import time
from pathlib import Path

import click

from sheetsync.cli.utils import CONFIG_ARGUMENT, load_config_or_fail
from sheetsync.daemon.lifecycle import is_running, read_pid, stop_daemon


@click.command()
@CONFIG_ARGUMENT
@click.option("--timeout", default=10.0, show_default=True, help="Seconds to wait for exit")
def stop_command(config_path: Path, timeout: float) -> None:
    """Stop the SheetSync service started with this config.

    CONFIG is the configuration file (default: ./config.yaml).
    """
    config = load_config_or_fail(config_path)
    runtime_dir = Path(config.service.runtime_dir)

    if not is_running(runtime_dir):
        click.echo("Service is not running.")
        return

    pid = read_pid(runtime_dir)
    click.echo(f"Stopping service (PID {pid})...")

    if not stop_daemon(runtime_dir):
        click.echo("Failed to send stop signal; the process may have already exited.", err=True)
        return

    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if not is_running(runtime_dir):
            click.echo("Service stopped.")
            return
        time.sleep(0.1)

    click.echo(f"Service did not stop within {timeout:g} seconds.", err=True)
    raise SystemExit(1)
