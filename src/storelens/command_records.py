"""CLI command printing the decoded rows of one table."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import click

from .cli_support import database_argument, open_client, read_only_option
from .display import format_value, record_to_dict, render_rows


@click.command(name="records")
@database_argument
@click.argument("table")
@click.option(
    "--limit",
    "limit",
    type=click.IntRange(min=0),
    default=20,
    show_default=True,
    help="Maximum number of records to show.",
)
@click.option(
    "--offset",
    "offset",
    type=click.IntRange(min=0),
    default=0,
    show_default=True,
    help="Number of records to skip.",
)
@click.option("--json", "as_json", is_flag=True, help="Print records as JSON.")
@read_only_option
def records_cmd(
    path: Path,
    table: str,
    limit: Optional[int],
    offset: int,
    as_json: bool,
    read_only: bool,
) -> None:
    """Print the records of TABLE with every cell decoded."""
    with open_client(path, read_only) as client:
        described = client.describe_table(table)
        records = client.fetch_records(described, limit=limit, offset=offset)

    if as_json:
        payload = [record_to_dict(r, described) for r in records]
        click.echo(json.dumps(payload, indent=2, default=str))
        return

    if not records:
        click.echo(f"No records in {described.name}.")
        return

    header = ["rowid", *described.column_names]
    rows = [
        ["" if r.row_id is None else str(r.row_id)]
        + [format_value(r.get(name)) for name in described.column_names]
        for r in records
    ]
    for line in render_rows(header, rows):
        click.echo(line)
    click.echo("")
    click.echo(f"{len(records)} of {described.record_count} records")
