"""Database handle and tenant-scoped transactions.

All access goes through SQLAlchemy Core so the same statements run on
PostgreSQL (psycopg v3, row-level security enforced) and SQLite (local
development and tests).

Tenant context
--------------
Row-level security policies compare ``"tenantId"`` with
``current_setting('<tenant_setting>', true)``. The setting is applied with
``set_config(..., true)``, which is transaction-local, so it must be issued
on the same connection and inside the same transaction as the queries it
guards. ``Database.tenant_transaction`` is the only way to obtain a
``TenantTransaction``, and every document query takes one, which makes it
impossible to run a document query without the context set.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine

from metadoc.core.errors import MissingTenantError
from metadoc.persistence.config import DatabaseConfig

logger = logging.getLogger(__name__)


@dataclass
class TenantTransaction:
    """An open transaction whose session tenant context is already set.

    Attributes:
        connection: SQLAlchemy connection inside ``engine.begin()``
        tenant_id: Tenant the context was set to
        dialect: Dialect name ("postgresql", "sqlite")
    """

    connection: Connection
    tenant_id: str
    dialect: str

    def fetch_all(self, sql: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        result = self.connection.execute(text(sql), params or {})
        return [dict(row) for row in result.mappings().all()]

    def fetch_one(self, sql: str, params: dict[str, Any] | None = None) -> dict[str, Any] | None:
        result = self.connection.execute(text(sql), params or {})
        row = result.mappings().first()
        return dict(row) if row is not None else None

    def execute(self, sql: str, params: dict[str, Any] | None = None) -> int:
        """Execute a statement and return the affected row count."""
        result = self.connection.execute(text(sql), params or {})
        return result.rowcount


class Database:
    """Owns the SQLAlchemy engine and hands out transactions."""

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self.engine: Engine = create_engine(config.sqlalchemy_url, echo=config.echo)

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    @property
    def is_postgresql(self) -> bool:
        return self.dialect == "postgresql"

    @property
    def tenant_setting(self) -> str:
        return self.config.tenant_setting

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Open a transaction that commits on exit and rolls back on error.

        Used for registry and DDL work, which is not tenant-scoped.
        """
        with self.engine.begin() as conn:
            yield conn

    @contextmanager
    def tenant_transaction(self, tenant_id: str | None) -> Iterator[TenantTransaction]:
        """Open a transaction with the session tenant context applied.

        Raises:
            MissingTenantError: If tenant_id is empty.
        """
        if not tenant_id:
            raise MissingTenantError()

        with self.engine.begin() as conn:
            if self.is_postgresql:
                conn.execute(
                    text("SELECT set_config(:setting, :tenant_id, true)"),
                    {"setting": self.tenant_setting, "tenant_id": tenant_id},
                )
                logger.debug("Tenant context %s set to %s", self.tenant_setting, tenant_id)
            yield TenantTransaction(connection=conn, tenant_id=tenant_id, dialect=self.dialect)

    def dispose(self) -> None:
        """Close all pooled connections."""
        self.engine.dispose()
