"""Metadoc CLI entry point."""

import logging
import os

import click


@click.group()
@click.option(
    "--log-level",
    default=lambda: os.environ.get("METADOC_LOG_LEVEL", "WARNING"),
    show_default="METADOC_LOG_LEVEL or WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Root logging level.",
)
def cli(log_level: str):
    """Metadoc - metadata-driven document engine CLI."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Register subcommand groups
from metadoc.cli.doctype_cmd import doctype  # noqa: E402
from metadoc.cli.migrate_cmd import migrate  # noqa: E402
from metadoc.cli.schema_cmd import schema  # noqa: E402
from metadoc.cli.tenant_cmd import tenant  # noqa: E402

cli.add_command(doctype)
cli.add_command(schema)
cli.add_command(tenant)
cli.add_command(migrate)
