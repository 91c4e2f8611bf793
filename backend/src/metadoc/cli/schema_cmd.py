"""Schema CLI commands."""

import click

from metadoc.cli.common import open_database, resolve_paths
from metadoc.metadata.registry import SchemaRegistry
from metadoc.metadata.sync import SchemaSynchronizer


@click.group()
def schema():
    """Physical schema commands."""
    pass


@schema.command()
def heal():
    """Re-assert document tables, link columns and tenant isolation.

    Runs the same self-healing pass as API startup.
    """
    base_path, _, _ = resolve_paths()
    db = open_database(base_path)
    try:
        registry = SchemaRegistry(db)
        SchemaSynchronizer(db, registry).bootstrap()
        count = len(registry.list_doc_types())
    finally:
        db.dispose()

    click.echo(click.style(f"Checked {count} DocType(s).", fg="green"))
