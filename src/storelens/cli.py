from __future__ import annotations

import logging
from typing import Optional, cast

import click
from click import Command

from . import __version__

# Command Files
from .command_entities import entities_cmd
from .command_records import records_cmd
from .command_tables import describe_cmd, tables_cmd
from .env_loader import load_env_files
from .logging_config import configure_logging

_logger = logging.getLogger(__name__)

# Load .env very early, so everything else sees env vars
load_env_files()


@click.group(
    context_settings={"help_option_names": ["-h", "--help"]},
    invoke_without_command=True,
)
@click.version_option(__version__, "--version", prog_name="storelens")
@click.option(
    "-v",
    "--verbose",
    "loglevel",
    flag_value=logging.INFO,
    default=None,
    help="Enable INFO logs.",
)
@click.option(
    "-vv",
    "--very-verbose",
    "loglevel",
    flag_value=logging.DEBUG,
    help="Enable DEBUG logs.",
)
@click.pass_context
def cli(ctx: click.Context, loglevel: Optional[int]) -> None:
    """Inspect SQLite, CoreData and SwiftData store files."""
    configure_logging(loglevel)
    _logger.debug("CLI start, version=%s", __version__)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# Cast ensures IDE knows of the Command type
cli.add_command(cast(Command, tables_cmd))
cli.add_command(cast(Command, describe_cmd))
cli.add_command(cast(Command, records_cmd))
cli.add_command(cast(Command, entities_cmd))
