"""CLI command showing the object-graph schema of a CoreData/SwiftData store."""

from __future__ import annotations

from pathlib import Path

import click

from .cli_support import database_argument, open_client


@click.command(name="entities")
@database_argument
def entities_cmd(path: Path) -> None:
    """Show the entities of a store and the columns their properties map to."""
    with open_client(path, read_only=True) as client:
        metadata = client.current_metadata()
        mode = client.display_mode()
        entities = client.load_object_graph_schema()

    version = metadata.persistence_version if metadata else None
    click.echo(f"Store:        {path}")
    click.echo(f"Persistence:  {version if version is not None else 'unknown'}")
    click.echo(f"Display mode: {mode.value}")
    click.echo("")

    if entities is None:
        click.echo("No model cache found; the file is shown as plain SQLite tables.")
        return
    if not entities:
        click.echo("The model cache holds no entities with a matching table.")
        return

    for entity in entities:
        click.echo(f"{entity.display_name} -> {entity.table_name} ({entity.table.record_count} rows)")
        for prop in entity.properties.values():
            click.echo(f"  - {prop.display_name} -> {prop.column.name}")
