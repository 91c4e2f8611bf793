"""Alembic environment for the registry tables.

runner.py copies this file into the migrations directory and supplies
``sqlalchemy.url`` on the Config, so there is no alembic.ini.

Only the tables on ``registry_metadata`` are compared when autogenerating;
``tab<DocType>`` tables belong to the schema synchronizer and are skipped.
"""

from alembic import context
from sqlalchemy import create_engine, pool

from metadoc.metadata.registry import registry_metadata


def include_object(obj, name, type_, reflected, compare_to):
    """Keep autogenerate away from document tables."""
    if type_ == "table" and reflected and compare_to is None:
        return name in registry_metadata.tables
    return True


def _configure_options(url: str) -> dict:
    return {
        "target_metadata": registry_metadata,
        "include_object": include_object,
        "compare_type": True,
        # SQLite cannot ALTER most constraints in place
        "render_as_batch": url.startswith("sqlite"),
    }


def run_offline(url: str) -> None:
    """Emit SQL to stdout instead of connecting."""
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_options(url),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_online(url: str) -> None:
    connectable = create_engine(url, poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_options(url))
        with context.begin_transaction():
            context.run_migrations()


database_url = context.config.get_main_option("sqlalchemy.url")
if context.is_offline_mode():
    run_offline(database_url)
else:
    run_online(database_url)
