"""Tenant CLI commands."""

import click
from sqlalchemy.exc import IntegrityError

from metadoc.cli.common import open_database, resolve_paths
from metadoc.metadata.registry import SchemaRegistry


@click.group()
def tenant():
    """Tenant commands."""
    pass


@tenant.command()
@click.argument("tenant_id")
@click.option("--name", default=None, help="Display name (defaults to the ID).")
def create(tenant_id: str, name: str | None):
    """Register a tenant."""
    base_path, _, _ = resolve_paths()
    db = open_database(base_path)
    try:
        registry = SchemaRegistry(db)
        registry.create_tables()
        registry.create_tenant(tenant_id, name)
    except IntegrityError:
        click.echo(f"Error: Tenant '{tenant_id}' already exists", err=True)
        raise SystemExit(1)
    finally:
        db.dispose()

    click.echo(click.style(f"Created tenant {tenant_id}", fg="green"))


@tenant.command("list")
def list_cmd():
    """List tenant IDs."""
    base_path, _, _ = resolve_paths()
    db = open_database(base_path)
    try:
        registry = SchemaRegistry(db)
        registry.create_tables()
        tenant_ids = registry.list_tenant_ids()
    finally:
        db.dispose()

    if not tenant_ids:
        click.echo("No tenants.")
        return
    for tenant_id in tenant_ids:
        click.echo(tenant_id)
