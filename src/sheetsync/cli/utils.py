"""CLI utilities."""

from pathlib import Path

import click

from sheetsync.config.loader import DEFAULT_CONFIG_FILE, load_config
from sheetsync.config.models import SheetSyncConfig
from sheetsync.core.errors import ConfigError
from sheetsync.core.logging import configure_logging

CONFIG_ARGUMENT = click.argument(
    "config_path",
    metavar="CONFIG",
    default=DEFAULT_CONFIG_FILE,
    required=False,
    type=click.Path(dir_okay=False, path_type=Path),
)


def load_config_or_fail(config_path: Path) -> SheetSyncConfig:
    """Load the config file, turning ConfigError into a CLI error.

    Raises:
        click.ClickException: If the file is missing or invalid
    """
    try:
        return load_config(config_path)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e


def apply_logging(ctx: click.Context, config: SheetSyncConfig) -> None:
    """Reconfigure logging from the config file; -v still forces DEBUG."""
    logging_config = config.logging
    if ctx.obj and ctx.obj.get("verbose"):
        logging_config = logging_config.model_copy(update={"level": "DEBUG"})
    configure_logging(config=logging_config)
