"""Path and database helpers shared by the CLI commands."""

import os
from pathlib import Path

from metadoc.persistence import Database, DatabaseConfig, create_database


def resolve_paths():
    """Resolve base, metadata, and migrations paths from cwd.

    ``METADOC_METADATA_PATH`` overrides the metadata directory.
    """
    cwd = Path.cwd()
    if cwd.name == "backend":
        base_path = cwd.parent
    else:
        base_path = cwd
    metadata_path = Path(os.environ.get("METADOC_METADATA_PATH") or base_path / "metadata")
    migrations_path = base_path / "migrations"
    return base_path, metadata_path, migrations_path


def open_database(base_path: Path) -> Database:
    """Create the Database configured by the environment."""
    return create_database(DatabaseConfig.from_env(base_path))
