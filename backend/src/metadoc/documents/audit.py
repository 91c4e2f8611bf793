"""Append-only audit trail for document mutations.

Entries are written on the operation's own connection, so an audit
insert that fails rolls the mutation back with it.
"""

from __future__ import annotations

import logging
import uuid
from enum import Enum
from typing import Any

from sqlalchemy import insert, select

from metadoc.auth.types import UserContext
from metadoc.metadata.registry import audit_log_table
from metadoc.persistence.database import TenantTransaction

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    SUBMIT = "SUBMIT"
    CANCEL = "CANCEL"


class AuditLogger:
    """Writes and reads AuditLog rows."""

    def log(
        self,
        tx: TenantTransaction,
        action: AuditAction,
        doc_type: str,
        doc_name: str | None,
        user: UserContext,
    ) -> None:
        if not tx.tenant_id or not doc_name:
            logger.debug("Skipping %s audit entry for %s: no tenant or name", action.value, doc_type)
            return

        tx.connection.execute(
            insert(audit_log_table).values(
                id=str(uuid.uuid4()),
                tenantId=tx.tenant_id,
                userId=user.user_id,
                action=action.value,
                docType=doc_type,
                docName=str(doc_name),
            )
        )

    def list_entries(
        self,
        tx: TenantTransaction,
        doc_type: str | None = None,
        doc_name: str | None = None,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        """Entries for the transaction's tenant, oldest first."""
        query = select(audit_log_table).where(audit_log_table.c.tenantId == tx.tenant_id)
        if doc_type:
            query = query.where(audit_log_table.c.docType == doc_type)
        if doc_name:
            query = query.where(audit_log_table.c.docName == doc_name)
        query = query.order_by(audit_log_table.c.timestamp, audit_log_table.c.id).limit(limit)
        return [dict(row) for row in tx.connection.execute(query).mappings().all()]
