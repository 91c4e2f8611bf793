"""Schema registry - the persisted catalog of DocType, DocField and DocPerm rows.

The registry tables are plain SQLAlchemy Core tables, dialect-neutral
between PostgreSQL and SQLite. They are global (not tenant-scoped) and
carry no row-level security.

Every method accepts an optional ``conn``. When given, the work joins that
connection's transaction; otherwise a short transaction is opened.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import (
    Boolean,
    DateTime,
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    delete,
    insert,
    select,
    text,
    update,
)
from sqlalchemy.engine import Connection

from metadoc.core.types import TABLE_FIELD_TYPE
from metadoc.metadata.types import (
    DocFieldDefinition,
    DocPermDefinition,
    DocTypeDefinition,
    PermissionAction,
)
from metadoc.persistence.database import Database

logger = logging.getLogger(__name__)

_NOW = text("CURRENT_TIMESTAMP")

registry_metadata = MetaData()

doc_type_table = Table(
    "DocType",
    registry_metadata,
    Column("name", String(255), primary_key=True),
    Column("module", String(255), nullable=False),
    Column("isSingle", Boolean, nullable=False, default=False),
    Column("isChild", Boolean, nullable=False, default=False),
    Column("description", Text),
    Column("creation", DateTime(timezone=True), server_default=_NOW),
    Column("modified", DateTime(timezone=True), server_default=_NOW),
)

doc_field_table = Table(
    "DocField",
    registry_metadata,
    Column("id", String(36), primary_key=True),
    Column(
        "docTypeName",
        String(255),
        ForeignKey("DocType.name", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("name", String(255), nullable=False),
    Column("label", String(255)),
    Column("type", String(50), nullable=False),
    Column("required", Boolean, nullable=False, default=False),
    Column("unique", Boolean, nullable=False, default=False),
    Column("hidden", Boolean, nullable=False, default=False),
    Column("readonly", Boolean, nullable=False, default=False),
    Column("options", Text),
    Column("target", String(255)),
    Column("idx", Integer, nullable=False, default=0),
    UniqueConstraint("docTypeName", "name", name="uq_docfield_doctype_name"),
)

doc_perm_table = Table(
    "DocPerm",
    registry_metadata,
    Column("id", String(36), primary_key=True),
    Column(
        "docTypeName",
        String(255),
        ForeignKey("DocType.name", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("role", String(255), nullable=False),
    *[
        Column(action.value, Boolean, nullable=False, default=False)
        for action in PermissionAction
    ],
    Column("idx", Integer, nullable=False, default=0),
)

audit_log_table = Table(
    "AuditLog",
    registry_metadata,
    Column("id", String(36), primary_key=True),
    Column("tenantId", String(255), nullable=False),
    Column("userId", String(255)),
    Column("action", String(20), nullable=False),
    Column("docType", String(255), nullable=False),
    Column("docName", String(255), nullable=False),
    Column("timestamp", DateTime(timezone=True), server_default=_NOW),
)

tenant_table = Table(
    "Tenant",
    registry_metadata,
    Column("id", String(255), primary_key=True),
    Column("name", String(255)),
    Column("creation", DateTime(timezone=True), server_default=_NOW),
)


def _new_id() -> str:
    return str(uuid.uuid4())


class SchemaRegistry:
    """Reads and writes DocType metadata."""

    def __init__(self, db: Database):
        self.db = db

    @contextmanager
    def _use(self, conn: Connection | None) -> Iterator[Connection]:
        if conn is not None:
            yield conn
        else:
            with self.db.transaction() as new_conn:
                yield new_conn

    def create_tables(self) -> None:
        """Create the registry tables if they don't exist."""
        registry_metadata.create_all(self.db.engine, checkfirst=True)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def doc_type_exists(self, name: str, conn: Connection | None = None) -> bool:
        with self._use(conn) as c:
            row = c.execute(
                select(doc_type_table.c.name).where(doc_type_table.c.name == name)
            ).first()
        return row is not None

    def get_fields(self, name: str, conn: Connection | None = None) -> list[DocFieldDefinition]:
        with self._use(conn) as c:
            rows = c.execute(
                select(doc_field_table)
                .where(doc_field_table.c.docTypeName == name)
                .order_by(doc_field_table.c.idx)
            ).mappings().all()
        return [_row_to_field(row) for row in rows]

    def get_permissions(
        self, name: str, conn: Connection | None = None
    ) -> list[DocPermDefinition]:
        with self._use(conn) as c:
            rows = c.execute(
                select(doc_perm_table)
                .where(doc_perm_table.c.docTypeName == name)
                .order_by(doc_perm_table.c.idx)
            ).mappings().all()
        return [_row_to_perm(row) for row in rows]

    def get_doc_type(
        self, name: str, conn: Connection | None = None
    ) -> DocTypeDefinition | None:
        """Load a full definition (fields and permissions ordered by idx)."""
        with self._use(conn) as c:
            row = c.execute(
                select(doc_type_table).where(doc_type_table.c.name == name)
            ).mappings().first()
            if row is None:
                return None
            definition = _row_to_doc_type(row)
            definition.fields = self.get_fields(name, c)
            definition.permissions = self.get_permissions(name, c)
        return definition

    def list_doc_types(self, conn: Connection | None = None) -> list[DocTypeDefinition]:
        """All registered DocTypes ordered by name, with their fields."""
        with self._use(conn) as c:
            rows = c.execute(
                select(doc_type_table).order_by(doc_type_table.c.name)
            ).mappings().all()
            definitions = [_row_to_doc_type(row) for row in rows]
            for definition in definitions:
                definition.fields = self.get_fields(definition.name, c)
        return definitions

    def find_parent_fields(
        self, child_name: str, conn: Connection | None = None
    ) -> list[tuple[str, str]]:
        """Return ``(parent DocType, field name)`` for every Table field pointing at a child."""
        with self._use(conn) as c:
            rows = c.execute(
                select(doc_field_table.c.docTypeName, doc_field_table.c.name)
                .where(doc_field_table.c.type == TABLE_FIELD_TYPE)
                .where(doc_field_table.c.options == child_name)
                .order_by(doc_field_table.c.docTypeName, doc_field_table.c.idx)
            ).all()
        return [(row[0], row[1]) for row in rows]

    # ------------------------------------------------------------------
    # Reconciliation writes (used by SchemaSynchronizer)
    # ------------------------------------------------------------------

    def upsert_doc_type(self, conn: Connection, definition: DocTypeDefinition) -> None:
        values = {
            "module": definition.module,
            "isSingle": definition.is_single,
            "isChild": definition.is_child,
            "description": definition.description,
        }
        if self.doc_type_exists(definition.name, conn):
            conn.execute(
                update(doc_type_table)
                .where(doc_type_table.c.name == definition.name)
                .values(**values, modified=_NOW)
            )
        else:
            conn.execute(insert(doc_type_table).values(name=definition.name, **values))

    def reconcile_fields(self, conn: Connection, definition: DocTypeDefinition) -> None:
        """Delete fields no longer declared, then update-or-insert the rest.

        ``idx`` follows declaration order.
        """
        declared = [f.name for f in definition.fields]
        conn.execute(
            delete(doc_field_table)
            .where(doc_field_table.c.docTypeName == definition.name)
            .where(doc_field_table.c.name.not_in(declared))
        )

        existing = {
            row[0]: row[1]
            for row in conn.execute(
                select(doc_field_table.c.name, doc_field_table.c.id).where(
                    doc_field_table.c.docTypeName == definition.name
                )
            ).all()
        }

        for idx, field_def in enumerate(definition.fields):
            field_def.idx = idx
            values = {
                "label": field_def.label,
                "type": field_def.type,
                "required": field_def.required,
                "unique": field_def.unique,
                "hidden": field_def.hidden,
                "readonly": field_def.readonly,
                "options": field_def.options,
                "target": field_def.target,
                "idx": idx,
            }
            field_id = existing.get(field_def.name)
            if field_id:
                conn.execute(
                    update(doc_field_table)
                    .where(doc_field_table.c.id == field_id)
                    .values(**values)
                )
            else:
                conn.execute(
                    insert(doc_field_table).values(
                        id=_new_id(),
                        docTypeName=definition.name,
                        name=field_def.name,
                        **values,
                    )
                )

    def replace_permissions(
        self, conn: Connection, doc_type: str, permissions: list[DocPermDefinition]
    ) -> None:
        """Delete every grant for the DocType and re-insert in declared order."""
        conn.execute(delete(doc_perm_table).where(doc_perm_table.c.docTypeName == doc_type))
        for idx, perm in enumerate(permissions):
            perm.idx = idx
            conn.execute(
                insert(doc_perm_table).values(
                    id=_new_id(),
                    docTypeName=doc_type,
                    role=perm.role,
                    idx=idx,
                    **{action.value: getattr(perm, action.value) for action in PermissionAction},
                )
            )

    # ------------------------------------------------------------------
    # Tenants
    # ------------------------------------------------------------------

    def create_tenant(
        self, tenant_id: str, name: str | None = None, conn: Connection | None = None
    ) -> None:
        with self._use(conn) as c:
            c.execute(insert(tenant_table).values(id=tenant_id, name=name or tenant_id))
        logger.info("Created tenant %s", tenant_id)

    def list_tenant_ids(self, conn: Connection | None = None) -> list[str]:
        with self._use(conn) as c:
            rows = c.execute(select(tenant_table.c.id).order_by(tenant_table.c.id)).all()
        return [row[0] for row in rows]


def _row_to_doc_type(row) -> DocTypeDefinition:
    return DocTypeDefinition(
        name=row["name"],
        module=row["module"],
        is_single=bool(row["isSingle"]),
        is_child=bool(row["isChild"]),
        description=row["description"],
    )


def _row_to_field(row) -> DocFieldDefinition:
    return DocFieldDefinition(
        name=row["name"],
        label=row["label"] or row["name"],
        type=row["type"],
        required=bool(row["required"]),
        unique=bool(row["unique"]),
        hidden=bool(row["hidden"]),
        readonly=bool(row["readonly"]),
        options=row["options"],
        target=row["target"],
        idx=row["idx"],
    )


def _row_to_perm(row) -> DocPermDefinition:
    return DocPermDefinition(
        role=row["role"],
        idx=row["idx"],
        **{action.value: bool(row[action.value]) for action in PermissionAction},
    )
