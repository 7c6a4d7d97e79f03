"""Helpers shared by the CLI commands."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import click

from .client import DatabaseClient
from .exceptions import StoreLensError

_logger = logging.getLogger(__name__)


def error_text(exc: StoreLensError) -> str:
    """Message plus recovery suggestion, as shown to the user."""
    if exc.recovery_suggestion:
        return f"{exc.message}\n{exc.recovery_suggestion}"
    return exc.message


@contextmanager
def open_client(path: Path, read_only: bool = False) -> Iterator[DatabaseClient]:
    """Connected client for one command; storelens errors become ClickExceptions."""
    client = DatabaseClient()
    try:
        client.connect(path, force_read_only=True if read_only else None)
        yield client
    except StoreLensError as exc:
        _logger.debug("Command failed", exc_info=True)
        raise click.ClickException(error_text(exc)) from exc
    finally:
        client.shutdown()


read_only_option = click.option(
    "--read-only",
    "read_only",
    is_flag=True,
    default=False,
    help="Open the file read-only even when it is writable.",
)

database_argument = click.argument(
    "path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
