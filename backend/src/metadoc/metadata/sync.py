"""Schema synchronizer - reconciles the registry and physical tables with a definition.

``sync_doc_type`` runs in two transactions: the registry rows (DocType,
DocField, DocPerm) are reconciled in the first, physical DDL runs in the
second. Columns and tables are only ever added; nothing is dropped.

On PostgreSQL each document table gets row-level security enabled and
forced, with a ``tenant_isolation_policy`` comparing ``"tenantId"`` to the
session tenant setting. SQLite has no RLS; isolation there rests on the
tenant predicate every document statement carries.
"""

from __future__ import annotations

import logging

from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection

from metadoc.core.errors import ValidationFailedError
from metadoc.core.identifiers import (
    assert_safe_column_name,
    quote,
    quoted_table,
    to_safe_table_name,
)
from metadoc.core.types import (
    CHILD_LINK_COLUMNS,
    STANDARD_COLUMNS,
    get_column_type,
    is_known_field_type,
)
from metadoc.metadata.registry import SchemaRegistry
from metadoc.metadata.types import DocTypeDefinition
from metadoc.persistence.database import Database
from metadoc.validation.types import INVALID_DEFINITION, ValidationError

logger = logging.getLogger(__name__)

POLICY_NAME = "tenant_isolation_policy"

# Engine-managed columns a definition may not redeclare ("name" is allowed)
RESERVED_FIELD_NAMES = (set(STANDARD_COLUMNS) | set(CHILD_LINK_COLUMNS)) - {"name"}


def definition_errors(definition: DocTypeDefinition) -> list[ValidationError]:
    """Structural problems with a definition, checked before storage is touched.

    Identifier safety is not covered here; it raises on its own.
    """
    errors: list[ValidationError] = []
    seen: set[str] = set()

    for f in definition.fields:
        if f.name in seen:
            errors.append(
                ValidationError(f"Duplicate field '{f.name}'", INVALID_DEFINITION, f.name)
            )
        seen.add(f.name)

        if f.name in RESERVED_FIELD_NAMES:
            errors.append(
                ValidationError(
                    f"Field '{f.name}' is managed by the engine", INVALID_DEFINITION, f.name
                )
            )

        if not is_known_field_type(f.type):
            errors.append(
                ValidationError(
                    f"Unknown field type '{f.type}' for field '{f.name}'",
                    INVALID_DEFINITION,
                    f.name,
                )
            )
        elif f.is_table and not f.options:
            errors.append(
                ValidationError(
                    f"Table field '{f.name}' must name its child DocType in options",
                    INVALID_DEFINITION,
                    f.name,
                )
            )

    if definition.is_single and definition.is_child:
        errors.append(
            ValidationError("A DocType cannot be both single and child", INVALID_DEFINITION)
        )

    return errors


def check_identifiers(definition: DocTypeDefinition) -> None:
    """Run the DocType name and every field name through identifier safety.

    Raises:
        InvalidIdentifierError: On the first unsafe name.
    """
    to_safe_table_name(definition.name)
    for f in definition.fields:
        assert_safe_column_name(f.name)


class SchemaSynchronizer:
    """Applies DocType definitions to the registry and the database."""

    def __init__(self, db: Database, registry: SchemaRegistry):
        self.db = db
        self.registry = registry

    def sync_doc_type(self, definition: DocTypeDefinition) -> DocTypeDefinition:
        """Upsert the registry rows and reconcile the physical table.

        Returns:
            The stored definition as re-read from the registry.

        Raises:
            InvalidIdentifierError: Unsafe DocType or field name.
            ValidationFailedError: Structural problems with the definition.
        """
        check_identifiers(definition)
        errors = definition_errors(definition)
        if errors:
            raise ValidationFailedError(errors)

        with self.db.transaction() as conn:
            self.registry.upsert_doc_type(conn, definition)
            self.registry.reconcile_fields(conn, definition)
            if definition.permissions is not None:
                self.registry.replace_permissions(conn, definition.name, definition.permissions)

        if not definition.is_single:
            with self.db.transaction() as conn:
                self._lock(conn, definition.name)
                self.ensure_table(conn, definition.name, definition.is_child)
                if definition.is_child:
                    self.ensure_columns(conn, definition.name, CHILD_LINK_COLUMNS)
                self.ensure_columns(
                    conn,
                    definition.name,
                    {f.name: get_column_type(f.type) for f in definition.data_fields},
                )
                self.ensure_tenant_isolation(conn, definition.name)

        logger.info("Synced DocType %s (%d fields)", definition.name, len(definition.fields))
        return self.registry.get_doc_type(definition.name)

    # ------------------------------------------------------------------
    # DDL
    # ------------------------------------------------------------------

    def _lock(self, conn: Connection, doc_type: str) -> None:
        if self.db.is_postgresql:
            conn.execute(
                text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
                {"key": to_safe_table_name(doc_type)},
            )

    def ensure_table(self, conn: Connection, doc_type: str, is_child: bool = False) -> bool:
        """Create ``tab<DocType>`` with the standard columns if it is missing.

        Returns:
            True if the table was created.
        """
        table_name = to_safe_table_name(doc_type)
        if inspect(conn).has_table(table_name):
            return False

        columns = dict(STANDARD_COLUMNS)
        if is_child:
            columns.update(CHILD_LINK_COLUMNS)
        column_sql = ", ".join(f"{quote(name)} {ddl}" for name, ddl in columns.items())
        conn.execute(text(f"CREATE TABLE IF NOT EXISTS {quote(table_name)} ({column_sql})"))
        logger.info("Created table %s", table_name)
        return True

    def ensure_columns(self, conn: Connection, doc_type: str, columns: dict[str, str]) -> list[str]:
        """Add every column in ``columns`` the table does not report yet.

        Returns:
            Names of the columns that were added.
        """
        table_name = to_safe_table_name(doc_type)
        existing = {c["name"] for c in inspect(conn).get_columns(table_name)}
        added: list[str] = []
        for name, ddl in columns.items():
            if name in existing:
                continue
            assert_safe_column_name(name)
            conn.execute(text(f"ALTER TABLE {quote(table_name)} ADD COLUMN {quote(name)} {ddl}"))
            logger.info("Added column %s.%s (%s)", table_name, name, ddl)
            added.append(name)
        return added

    def ensure_tenant_isolation(self, conn: Connection, doc_type: str) -> bool:
        """Ensure ``tenantId`` exists and, on PostgreSQL, the forced RLS policy.

        Returns:
            True if a policy was created.
        """
        self.ensure_columns(conn, doc_type, {"tenantId": STANDARD_COLUMNS["tenantId"]})
        if not self.db.is_postgresql:
            return False

        table_name = to_safe_table_name(doc_type)
        table = quote(table_name)
        conn.execute(text(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY"))
        conn.execute(text(f"ALTER TABLE {table} FORCE ROW LEVEL SECURITY"))

        existing = conn.execute(
            text(
                "SELECT 1 FROM pg_policies"
                " WHERE schemaname = current_schema() AND tablename = :table AND policyname = :policy"
            ),
            {"table": table_name, "policy": POLICY_NAME},
        ).first()
        if existing is not None:
            return False

        # tenant_setting is pattern-checked by DatabaseConfig
        predicate = f"\"tenantId\" = current_setting('{self.db.tenant_setting}', true)"
        conn.execute(
            text(
                f"CREATE POLICY {POLICY_NAME} ON {table}"
                f" USING ({predicate}) WITH CHECK ({predicate})"
            )
        )
        logger.info("Created row-level security policy on %s", table_name)
        return True

    # ------------------------------------------------------------------
    # Startup self-healing
    # ------------------------------------------------------------------

    def bootstrap(self) -> None:
        """Re-assert tables, declared columns and tenant isolation for every DocType.

        Each step is best-effort: a failure is logged and the walk continues.
        Also backfills ``tenantId`` on legacy rows when exactly one tenant
        exists, and child ``parentId`` from the legacy ``parent`` text pointer.
        """
        self.registry.create_tables()
        doc_types = [d for d in self.registry.list_doc_types() if not d.is_single]
        tenant_ids = self.registry.list_tenant_ids()

        for definition in doc_types:
            try:
                with self.db.transaction() as conn:
                    self._lock(conn, definition.name)
                    self.ensure_table(conn, definition.name, definition.is_child)
                    if definition.is_child:
                        self.ensure_columns(conn, definition.name, CHILD_LINK_COLUMNS)
                    self.ensure_columns(
                        conn,
                        definition.name,
                        {f.name: get_column_type(f.type) for f in definition.data_fields},
                    )
                    self.ensure_columns(
                        conn, definition.name, {"tenantId": STANDARD_COLUMNS["tenantId"]}
                    )
                    if len(tenant_ids) == 1:
                        self._backfill_tenant(conn, definition.name, tenant_ids[0])
                    self.ensure_tenant_isolation(conn, definition.name)
            except Exception as exc:
                logger.warning("Self-healing failed for DocType %s: %s", definition.name, exc)

        for definition in doc_types:
            if not definition.is_child:
                continue
            for tenant_id in tenant_ids:
                try:
                    self._backfill_parent_ids(definition.name, tenant_id)
                except Exception as exc:
                    logger.warning(
                        "parentId backfill failed for %s (tenant %s): %s",
                        definition.name,
                        tenant_id,
                        exc,
                    )

    def _backfill_tenant(self, conn: Connection, doc_type: str, tenant_id: str) -> None:
        if self.db.is_postgresql:
            # Forced RLS hides NULL-tenant rows from the owner too; the caller
            # re-forces it via ensure_tenant_isolation in this transaction
            conn.execute(text(f"ALTER TABLE {quoted_table(doc_type)} NO FORCE ROW LEVEL SECURITY"))
        result = conn.execute(
            text(f'UPDATE {quoted_table(doc_type)} SET "tenantId" = :tenant_id WHERE "tenantId" IS NULL'),
            {"tenant_id": tenant_id},
        )
        if result.rowcount:
            logger.info("Backfilled tenantId on %d %s rows", result.rowcount, doc_type)

    def _backfill_parent_ids(self, child_doc_type: str, tenant_id: str) -> None:
        child = quoted_table(child_doc_type)
        for parent_doc_type, _field in self.registry.find_parent_fields(child_doc_type):
            parent = quoted_table(parent_doc_type)
            with self.db.tenant_transaction(tenant_id) as tx:
                count = tx.execute(
                    f'UPDATE {child} SET "parentId" = ('
                    f'SELECT p."id" FROM {parent} p'
                    f' WHERE (p."name" = {child}."parent" OR p."id" = {child}."parent")'
                    ' AND p."tenantId" = :tenant_id LIMIT 1)'
                    ' WHERE "parentId" IS NULL AND "parenttype" = :parenttype'
                    ' AND "tenantId" = :tenant_id',
                    {"parenttype": parent_doc_type, "tenant_id": tenant_id},
                )
            if count:
                logger.info(
                    "Backfilled parentId on %d %s rows (parent %s)",
                    count,
                    child_doc_type,
                    parent_doc_type,
                )
