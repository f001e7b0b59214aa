"""sheetsync service command - run under the service-control protocol."""

import asyncio
from pathlib import Path

import click

from sheetsync.cli.utils import CONFIG_ARGUMENT, apply_logging, load_config_or_fail


@click.command()
@CONFIG_ARGUMENT
@click.pass_context
def service_command(ctx: click.Context, config_path: Path) -> None:
    """Run as a managed service with PID and state files.

    CONFIG is the configuration file (default: ./config.yaml). SIGTERM stops,
    SIGINT shuts down, SIGHUP re-reports the current state to the state file.
    """
    from sheetsync.daemon.lifecycle import is_running, read_pid, run_service

    config = load_config_or_fail(config_path)
    runtime_dir = Path(config.service.runtime_dir)

    if is_running(runtime_dir):
        click.echo(f"Already running (PID {read_pid(runtime_dir)})")
        raise SystemExit(1)

    apply_logging(ctx, config)
    raise SystemExit(asyncio.run(run_service(config)))
