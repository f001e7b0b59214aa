"""SheetSync CLI - sheetsync command."""

import click

from sheetsync.cli.init import init_command
from sheetsync.cli.run import run_command
from sheetsync.cli.service import service_command
from sheetsync.cli.status import status_command
from sheetsync.cli.stop import stop_command
from sheetsync.core.logging import configure_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="sheetsync")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """SheetSync - push two workbook sheets to Google Sheets whenever the file changes."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    configure_logging(level="DEBUG" if verbose else "INFO")


cli.add_command(init_command, name="init")
cli.add_command(run_command, name="run")
cli.add_command(service_command, name="service")
cli.add_command(stop_command, name="stop")
cli.add_command(status_command, name="status")


if __name__ == "__main__":
    cli()
