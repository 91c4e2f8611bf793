"""Alembic migration runner for the registry tables.

Wraps Alembic's programmatic API to apply, roll back, stamp and inspect
migrations without a static alembic.ini file. Document tables
(``tab<DocType>``) are not managed here; the schema synchronizer owns them.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine, inspect, text


@dataclass
class MigrationInfo:
    """Info about a single migration."""

    revision: str
    description: str
    is_applied: bool


def _make_alembic_config(database_url: str, migrations_dir: Path) -> Config:
    cfg = Config()
    cfg.set_main_option("sqlalchemy.url", database_url)
    cfg.set_main_option("script_location", str(migrations_dir))
    _ensure_alembic_structure(migrations_dir)
    return cfg


def _ensure_alembic_structure(migrations_dir: Path) -> None:
    """Ensure the migrations directory has env.py, versions/ and script.py.mako."""
    migrations_dir.mkdir(parents=True, exist_ok=True)
    (migrations_dir / "versions").mkdir(exist_ok=True)

    env_target = migrations_dir / "env.py"
    if not env_target.exists():
        env_source = Path(__file__).parent / "env.py"
        env_target.write_text(env_source.read_text())

    mako_target = migrations_dir / "script.py.mako"
    if not mako_target.exists():
        mako_target.write_text(_SCRIPT_MAKO_TEMPLATE)


_SCRIPT_MAKO_TEMPLATE = '''\
"""${message}"""

revision = ${repr(up_revision)}
down_revision = ${repr(down_revision)}

from alembic import op
import sqlalchemy as sa

def upgrade():
    ${upgrades if upgrades else "pass"}

def downgrade():
    ${downgrades if downgrades else "pass"}
'''


def apply_migrations(database_url: str, migrations_dir: Path, target: str | None = None) -> None:
    """Apply pending migrations up to ``target`` (default "head")."""
    cfg = _make_alembic_config(database_url, migrations_dir)
    command.upgrade(cfg, target or "head")


def rollback_migration(database_url: str, migrations_dir: Path, target: str = "-1") -> None:
    """Downgrade to ``target`` (default: one revision back)."""
    cfg = _make_alembic_config(database_url, migrations_dir)
    command.downgrade(cfg, target)


def stamp_migration(database_url: str, migrations_dir: Path, revision: str = "head") -> None:
    """Mark ``revision`` as applied without running it.

    Use this on databases whose registry tables were created at startup
    by ``SchemaRegistry.create_tables``.
    """
    cfg = _make_alembic_config(database_url, migrations_dir)
    command.stamp(cfg, revision)


def get_migration_status(database_url: str, migrations_dir: Path) -> list[MigrationInfo]:
    """All revisions in chronological order with their applied flag."""
    cfg = _make_alembic_config(database_url, migrations_dir)
    script = ScriptDirectory.from_config(cfg)

    engine = create_engine(database_url)
    current_heads: set[str] = set()
    try:
        with engine.connect() as conn:
            if inspect(conn).has_table("alembic_version"):
                result = conn.execute(text("SELECT version_num FROM alembic_version"))
                current_heads = {row[0] for row in result}
    finally:
        engine.dispose()

    # Everything reachable from a current head through down_revision is applied
    applied: set[str] = set()
    for head_rev in current_heads:
        rev_obj = script.get_revision(head_rev)
        while rev_obj is not None:
            applied.add(rev_obj.revision)
            if rev_obj.down_revision:
                rev_obj = script.get_revision(str(rev_obj.down_revision))
            else:
                break

    migrations = [
        MigrationInfo(
            revision=rev.revision,
            description=rev.doc or "",
            is_applied=rev.revision in applied,
        )
        for rev in script.walk_revisions()
    ]
    # walk_revisions goes newest-first
    migrations.reverse()
    return migrations
