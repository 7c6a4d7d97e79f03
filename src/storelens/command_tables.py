"""CLI commands listing tables and describing one table."""

from __future__ import annotations

from pathlib import Path

import click

from .cli_support import database_argument, open_client, read_only_option
from .display import render_rows


@click.command(name="tables")
@database_argument
@read_only_option
def tables_cmd(path: Path, read_only: bool) -> None:
    """List the tables of a database with their row counts."""
    with open_client(path, read_only) as client:
        mode = client.access_mode
        tables = client.tables()

    click.echo(f"Database: {path}")
    click.echo(f"Access:   {mode.value if mode else 'closed'}")
    click.echo("")
    if not tables:
        click.echo("No tables found.")
        return

    click.echo("Tables:")
    for t in tables:
        click.echo(f"  - {t.name}: {t.record_count} rows")


@click.command(name="describe")
@database_argument
@click.argument("table")
@read_only_option
def describe_cmd(path: Path, table: str, read_only: bool) -> None:
    """Show the columns of TABLE in declaration order."""
    with open_client(path, read_only) as client:
        described = client.describe_table(table)

    click.echo(f"Table: {described.name} ({described.record_count} rows)")
    rows = [
        [
            c.name,
            c.declared_type or "-",
            "NOT NULL" if c.not_null else "",
            str(c.primary_key_rank) if c.is_primary_key else "",
        ]
        for c in described.columns
    ]
    for line in render_rows(["column", "type", "null", "pk"], rows):
        click.echo(line)
