"""Migrate CLI commands - upgrade, downgrade, stamp, status.

These manage the registry tables only. Document tables are reconciled by
``metadoc doctype sync``.
"""

from pathlib import Path

import click

from metadoc.cli.common import resolve_paths
from metadoc.migrations.runner import (
    apply_migrations,
    get_migration_status,
    rollback_migration,
    stamp_migration,
)
from metadoc.persistence.config import DatabaseConfig


def _database_url(base_path: Path) -> str:
    db_config = DatabaseConfig.from_env(base_path)

    # Ensure parent dir exists for SQLite
    if db_config.is_sqlite:
        sqlite_path = db_config.url.replace("sqlite:///", "")
        if sqlite_path and sqlite_path != ":memory:":
            Path(sqlite_path).parent.mkdir(parents=True, exist_ok=True)

    return db_config.sqlalchemy_url


def _has_versions(migrations_path: Path) -> bool:
    versions_dir = migrations_path / "versions"
    return versions_dir.exists() and any(versions_dir.glob("*.py"))


@click.group()
def migrate():
    """Registry migration commands."""
    pass


@migrate.command()
@click.option("--to", "target", default=None, help="Upgrade up to a specific revision.")
def upgrade(target: str | None):
    """Apply pending migrations."""
    base_path, _, migrations_path = resolve_paths()

    if not _has_versions(migrations_path):
        click.echo(f"No migrations found in {migrations_path / 'versions'}.")
        return

    try:
        apply_migrations(_database_url(base_path), migrations_path, target=target)
    except Exception as e:
        click.echo(f"Error applying migrations: {e}", err=True)
        raise SystemExit(1)

    click.echo(click.style("Migrations applied successfully.", fg="green"))
    _print_status(_database_url(base_path), migrations_path)


@migrate.command()
@click.option("--to", "target", default="-1", help="Target revision (default: one step back).")
def downgrade(target: str):
    """Roll back migrations."""
    base_path, _, migrations_path = resolve_paths()

    try:
        rollback_migration(_database_url(base_path), migrations_path, target=target)
    except Exception as e:
        click.echo(f"Error rolling back: {e}", err=True)
        raise SystemExit(1)

    click.echo(click.style("Rollback complete.", fg="green"))
    _print_status(_database_url(base_path), migrations_path)


@migrate.command()
@click.argument("revision", default="head")
def stamp(revision: str):
    """Mark REVISION as applied without running it.

    Use this once on a database whose registry tables were created at
    API startup.
    """
    base_path, _, migrations_path = resolve_paths()

    if not _has_versions(migrations_path):
        click.echo(f"No migrations found in {migrations_path / 'versions'}.")
        return

    try:
        stamp_migration(_database_url(base_path), migrations_path, revision=revision)
    except Exception as e:
        click.echo(f"Error stamping: {e}", err=True)
        raise SystemExit(1)

    click.echo(f"Database stamped at {revision} (no SQL executed).")


@migrate.command()
def status():
    """Show migration status."""
    base_path, _, migrations_path = resolve_paths()

    if not _has_versions(migrations_path):
        click.echo("No migrations found.")
        return

    _print_status(_database_url(base_path), migrations_path)


def _print_status(sa_url: str, migrations_path: Path):
    migrations = get_migration_status(sa_url, migrations_path)
    if not migrations:
        click.echo("No migrations found.")
        return

    click.echo("\nMigration status:")
    for m in migrations:
        marker = click.style("applied", fg="green") if m.is_applied else click.style("pending", fg="yellow")
        click.echo(f"  {m.revision}  {m.description:<40} [{marker}]")
