"""Generic document engine.

Create, read, list, update, delete, submit and cancel documents of any
synced DocType. Each operation runs in one tenant transaction:

    permission -> validate -> beforeSave -> allow-list -> SQL -> children
    -> afterSave / onSubmit / onCancel -> audit -> commit

Hooks and the audit insert run before commit, so a failure in either
rolls the whole operation back.

Docstatus state machine::

    Draft (0) --submit--> Submitted (1) --cancel--> Cancelled (2)

Submitted documents cannot be updated or deleted. Transitions are
conditional updates (``WHERE docstatus = <expected>``), so two concurrent
submits cannot both succeed.
"""

from __future__ import annotations

import logging
import os
import uuid
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy.exc import DBAPIError

from metadoc.auth.permissions import PermissionEvaluator
from metadoc.auth.types import UserContext
from metadoc.core.errors import (
    BadRequestError,
    InternalError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationFailedError,
)
from metadoc.core.identifiers import assert_safe_column_name
from metadoc.documents.audit import AuditAction, AuditLogger
from metadoc.hooks.registry import HookRegistry
from metadoc.hooks.types import HookEvent
from metadoc.metadata.registry import SchemaRegistry
from metadoc.metadata.types import (
    DocFieldDefinition,
    DocStatus,
    DocTypeDefinition,
    PermissionAction,
)
from metadoc.persistence import statements
from metadoc.persistence.database import Database, TenantTransaction
from metadoc.validation.engine import DocumentValidator
from metadoc.validation.types import INVALID_VALUE, UNKNOWN_FIELD, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100

# Server-managed keys dropped from incoming payloads
STRIPPED_KEYS = ("id", "creation", "modified")

# Columns the engine sets on every child row; dropped from incoming rows
CHILD_MANAGED_KEYS = (
    "parent",
    "parenttype",
    "parentfield",
    "parentId",
    "idx",
    "tenantId",
    "owner",
    "docstatus",
)

NOT_SUBMITTED_GUARD = '("docstatus" IS NULL OR "docstatus" <> 1)'

# Field types stored in non-text columns; "" is written as NULL
_NON_TEXT_TYPES = {"Int", "Float", "Currency", "Check", "Date", "Datetime"}


def page_size_from_env() -> int:
    return int(os.environ.get("METADOC_LIST_PAGE_SIZE", DEFAULT_PAGE_SIZE))


@contextmanager
def _database_errors(verb: str, doc_type: str) -> Iterator[None]:
    """Re-raise driver errors from a write as InternalError."""
    try:
        yield
    except DBAPIError as exc:
        logger.exception("Failed to %s %s", verb, doc_type)
        raise InternalError(
            f"Failed to {verb} {doc_type}; its table may be missing columns (re-sync the DocType)"
        ) from exc


def _strip(payload: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in payload.items() if k not in STRIPPED_KEYS}


def _coerce(field: DocFieldDefinition, value: Any) -> Any:
    if field.type in _NON_TEXT_TYPES and value == "":
        return None
    if field.type == "Check" and value is not None:
        return bool(value)
    return value


def _decode_row(definition: DocTypeDefinition, row: dict[str, Any]) -> dict[str, Any]:
    """Normalise driver values (SQLite stores booleans as 0/1)."""
    for field in definition.data_fields:
        if field.type == "Check" and row.get(field.name) is not None:
            row[field.name] = bool(row[field.name])
    return row


class DocumentEngine:
    """Generic CRUD and workflow over any registered DocType."""

    def __init__(
        self,
        db: Database,
        registry: SchemaRegistry,
        permissions: PermissionEvaluator | None = None,
        validator: DocumentValidator | None = None,
        hooks: HookRegistry | None = None,
        audit: AuditLogger | None = None,
        page_size: int | None = None,
    ):
        self.db = db
        self.registry = registry
        self.permissions = permissions or PermissionEvaluator(registry)
        self.validator = validator or DocumentValidator(registry)
        self.hooks = hooks or HookRegistry()
        self.audit = audit or AuditLogger()
        self.page_size = page_size if page_size is not None else page_size_from_env()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load_definition(
        self, tx: TenantTransaction, doc_type: str, action: PermissionAction, user: UserContext
    ) -> DocTypeDefinition:
        self.permissions.ensure_permission(doc_type, user.roles, action, tx.connection)
        definition = self.registry.get_doc_type(doc_type, tx.connection)
        if definition is None:
            raise NotFoundError(f"DocType {doc_type} not found")
        if definition.is_single:
            raise BadRequestError(f"DocType {doc_type} is a Single and has no documents")
        return definition

    def _child_definition(self, tx: TenantTransaction, field: DocFieldDefinition) -> DocTypeDefinition:
        child = self.registry.get_doc_type(field.options, tx.connection)
        if child is None:
            raise NotFoundError(f"DocType {field.options} not found")
        return child

    def _partition(
        self, definition: DocTypeDefinition, payload: dict[str, Any]
    ) -> tuple[dict[str, Any], dict[str, list[dict[str, Any]]]]:
        """Split a payload into scalar columns and child-table arrays.

        Only declared fields (plus ``name``) pass; everything else fails
        with UNKNOWN_FIELD before any key is used as an identifier.
        """
        standard: dict[str, Any] = {}
        children: dict[str, list[dict[str, Any]]] = {}
        errors: list[ValidationError] = []

        for key, value in payload.items():
            field = definition.get_field(key)
            if isinstance(value, list):
                if field is None or not field.is_table:
                    errors.append(
                        ValidationError(f"Unknown child table field: {key}", UNKNOWN_FIELD, key)
                    )
                    continue
                children[key] = value
            elif key != "name" and (field is None or field.is_table):
                errors.append(ValidationError(f"Unknown field: {key}", UNKNOWN_FIELD, key))
            elif isinstance(value, dict):
                errors.append(ValidationError(f"{key} must be a single value", INVALID_VALUE, key))
            elif key == "name":
                standard[key] = value
            else:
                standard[key] = _coerce(field, value)

        if errors:
            raise ValidationFailedError(errors)
        for key in standard:
            assert_safe_column_name(key)
        return standard, children

    def _find_row(
        self, tx: TenantTransaction, definition: DocTypeDefinition, name: str
    ) -> dict[str, Any] | None:
        sql, params = statements.select_by_name(definition.name, name, tx.tenant_id)
        row = tx.fetch_one(sql, params)
        return _decode_row(definition, row) if row is not None else None

    def _hydrate(
        self, tx: TenantTransaction, definition: DocTypeDefinition, row: dict[str, Any]
    ) -> dict[str, Any]:
        """Attach every Table field's child rows, ordered by idx."""
        parent = row.get("name") or row.get("id")
        for field in definition.table_fields:
            child = self._child_definition(tx, field)
            sql, params = statements.select_children(
                child.name, parent, field.name, definition.name, tx.tenant_id
            )
            row[field.name] = [_decode_row(child, r) for r in tx.fetch_all(sql, params)]
        return row

    def _insert_children(
        self,
        tx: TenantTransaction,
        definition: DocTypeDefinition,
        field: DocFieldDefinition,
        parent_row: dict[str, Any],
        rows: list[dict[str, Any]],
        user: UserContext,
    ) -> None:
        child = self._child_definition(tx, field)
        parent = parent_row.get("name") or parent_row.get("id")

        for idx, raw in enumerate(rows):
            if not isinstance(raw, dict):
                raise ValidationFailedError.single(
                    f"Rows of {field.name} must be objects", UNKNOWN_FIELD, field.name
                )
            payload = {k: v for k, v in _strip(raw).items() if k not in CHILD_MANAGED_KEYS}
            values, nested = self._partition(child, payload)
            if nested:
                raise ValidationFailedError.single(
                    f"Child table {child.name} cannot contain child tables",
                    UNKNOWN_FIELD,
                    next(iter(nested)),
                )
            self.validator.validate_fields(child.fields, values, tx)

            child_id = str(uuid.uuid4())
            values.update(
                {
                    "id": child_id,
                    "name": values.get("name") or child_id,
                    "owner": user.user_id,
                    "parent": parent,
                    "parenttype": definition.name,
                    "parentfield": field.name,
                    "parentId": parent_row.get("id"),
                    "idx": idx,
                    "tenantId": tx.tenant_id,
                }
            )
            sql, params = statements.insert(child.name, values, returning=False)
            tx.execute(sql, params)

    def _delete_children(
        self,
        tx: TenantTransaction,
        definition: DocTypeDefinition,
        field: DocFieldDefinition,
        parent: str,
    ) -> int:
        child = self._child_definition(tx, field)
        sql, params = statements.delete_children(
            child.name, parent, field.name, definition.name, tx.tenant_id
        )
        return tx.execute(sql, params)

    def _resolve_missed_write(
        self, tx: TenantTransaction, definition: DocTypeDefinition, name: str, verb: str
    ) -> InvalidStateTransitionError | NotFoundError:
        """Explain why a guarded UPDATE/DELETE matched no row."""
        row = self._find_row(tx, definition, name)
        if row is None:
            return NotFoundError(f"{definition.name} {name} not found")
        return InvalidStateTransitionError(
            f"Cannot {verb} a submitted document", code="DOCUMENT_SUBMITTED"
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def create(self, doc_type: str, data: dict[str, Any], user: UserContext) -> dict[str, Any]:
        """Insert a Draft document with its child rows.

        Returns:
            The stored row merged with its child arrays.

        Raises:
            BadRequestError: A document with the given ``name`` already exists.
            InternalError: The insert failed in the database.
        """
        with _database_errors("create", doc_type), self.db.tenant_transaction(user.tenant_id) as tx:
            definition = self._load_definition(tx, doc_type, PermissionAction.CREATE, user)
            payload = _strip(data)
            self.validator.validate_fields(definition.fields, payload, tx)

            payload = _strip(self.hooks.trigger(doc_type, HookEvent.BEFORE_SAVE, dict(payload), user))
            standard, children = self._partition(definition, payload)

            # name is the document key within a tenant
            if standard.get("name"):
                sql, params = statements.exists_by_name(doc_type, standard["name"], tx.tenant_id)
                if tx.fetch_one(sql, params) is not None:
                    raise BadRequestError(
                        f"{doc_type} {standard['name']} already exists", code="DUPLICATE_NAME"
                    )

            doc_id = str(uuid.uuid4())
            standard.update(
                {
                    "id": doc_id,
                    "name": standard.get("name") or doc_id,
                    "tenantId": tx.tenant_id,
                    "owner": user.user_id,
                    "docstatus": DocStatus.DRAFT.value,
                }
            )
            sql, params = statements.insert(doc_type, standard)
            row = _decode_row(definition, tx.fetch_one(sql, params))

            for field in definition.table_fields:
                if children.get(field.name):
                    self._insert_children(tx, definition, field, row, children[field.name], user)

            result = self._hydrate(tx, definition, row)
            result = self.hooks.trigger(doc_type, HookEvent.AFTER_SAVE, result, user)
            self.audit.log(tx, AuditAction.CREATE, doc_type, result.get("name") or result.get("id"), user)

        logger.debug("Created %s %s", doc_type, result.get("name"))
        return result

    def find_one(self, doc_type: str, name: str, user: UserContext) -> dict[str, Any]:
        """Read one document by name, with child arrays.

        Raises:
            NotFoundError: No such document visible to the tenant.
        """
        with self.db.tenant_transaction(user.tenant_id) as tx:
            definition = self._load_definition(tx, doc_type, PermissionAction.READ, user)
            row = self._find_row(tx, definition, name)
            if row is None:
                raise NotFoundError(f"{doc_type} {name} not found")
            return self._hydrate(tx, definition, row)

    def find_all(self, doc_type: str, user: UserContext) -> list[dict[str, Any]]:
        """First page of the tenant's documents; no child hydration."""
        with self.db.tenant_transaction(user.tenant_id) as tx:
            definition = self._load_definition(tx, doc_type, PermissionAction.READ, user)
            sql, params = statements.select_page(doc_type, tx.tenant_id, self.page_size)
            return [_decode_row(definition, row) for row in tx.fetch_all(sql, params)]

    def update(
        self, doc_type: str, name: str, data: dict[str, Any], user: UserContext
    ) -> dict[str, Any]:
        """Patch scalar fields and fully replace any child table present in ``data``.

        Raises:
            NotFoundError: No such document.
            InvalidStateTransitionError: The document is submitted.
            BadRequestError: The patch tries to rename the document.
        """
        with _database_errors("update", doc_type), self.db.tenant_transaction(user.tenant_id) as tx:
            definition = self._load_definition(tx, doc_type, PermissionAction.WRITE, user)
            existing = self._find_row(tx, definition, name)
            if existing is None:
                raise NotFoundError(f"{doc_type} {name} not found")
            if existing.get("docstatus") == DocStatus.SUBMITTED:
                raise InvalidStateTransitionError(
                    "Cannot edit a submitted document", code="DOCUMENT_SUBMITTED"
                )

            patch = _strip(data)
            if "name" in patch:
                if patch["name"] not in (None, name):
                    raise BadRequestError(f"Cannot rename {doc_type} {name}")
                del patch["name"]

            merged = {**existing, **{k: v for k, v in patch.items() if not isinstance(v, list)}}
            errors = self.validator.collect_errors(
                definition.fields, merged, tx, link_fields=set(patch)
            )
            if errors:
                raise ValidationFailedError(errors)

            patch = _strip(self.hooks.trigger(doc_type, HookEvent.BEFORE_SAVE, dict(patch), user))
            patch.pop("name", None)
            standard, children = self._partition(definition, patch)

            if standard:
                sql, params = statements.update_by_name(
                    doc_type, standard, name, tx.tenant_id, extra_where=NOT_SUBMITTED_GUARD
                )
                row = tx.fetch_one(sql, params)
                if row is None:
                    raise self._resolve_missed_write(tx, definition, name, "edit")
                row = _decode_row(definition, row)
            else:
                row = existing

            for field in definition.table_fields:
                if field.name in children:
                    self._delete_children(tx, definition, field, name)
                    self._insert_children(tx, definition, field, row, children[field.name], user)

            result = self._hydrate(tx, definition, row)
            result = self.hooks.trigger(doc_type, HookEvent.AFTER_SAVE, result, user)
            self.audit.log(tx, AuditAction.UPDATE, doc_type, name, user)

        logger.debug("Updated %s %s", doc_type, name)
        return result

    def delete(self, doc_type: str, name: str, user: UserContext) -> dict[str, Any]:
        """Delete a non-submitted document and its child rows.

        Raises:
            NotFoundError: No such document.
            InvalidStateTransitionError: The document is submitted.
        """
        with _database_errors("delete", doc_type), self.db.tenant_transaction(user.tenant_id) as tx:
            definition = self._load_definition(tx, doc_type, PermissionAction.DELETE, user)
            existing = self._find_row(tx, definition, name)
            if existing is None:
                raise NotFoundError(f"{doc_type} {name} not found")
            if existing.get("docstatus") == DocStatus.SUBMITTED:
                raise InvalidStateTransitionError(
                    "Cannot delete a submitted document", code="DOCUMENT_SUBMITTED"
                )

            self.hooks.trigger(
                doc_type, HookEvent.BEFORE_DELETE, self._hydrate(tx, definition, existing), user
            )

            for field in definition.table_fields:
                self._delete_children(tx, definition, field, name)

            sql, params = statements.delete_by_name(
                doc_type, name, tx.tenant_id, extra_where=NOT_SUBMITTED_GUARD
            )
            if tx.execute(sql, params) == 0:
                raise self._resolve_missed_write(tx, definition, name, "delete")

            self.audit.log(tx, AuditAction.DELETE, doc_type, name, user)

        logger.debug("Deleted %s %s", doc_type, name)
        return {"status": "deleted", "name": name}

    def submit(self, doc_type: str, name: str, user: UserContext) -> dict[str, Any]:
        """Move a Draft document to Submitted and fire ``onSubmit``.

        Raises:
            NotFoundError: No such document.
            InvalidStateTransitionError: The document is not a draft.
        """
        return self._transition(
            doc_type,
            name,
            user,
            action=PermissionAction.SUBMIT,
            expected=DocStatus.DRAFT,
            target=DocStatus.SUBMITTED,
            event=HookEvent.ON_SUBMIT,
            audit_action=AuditAction.SUBMIT,
        )

    def cancel(self, doc_type: str, name: str, user: UserContext) -> dict[str, Any]:
        """Move a Submitted document to Cancelled and fire ``onCancel``.

        Raises:
            NotFoundError: No such document.
            InvalidStateTransitionError: The document is not submitted.
        """
        return self._transition(
            doc_type,
            name,
            user,
            action=PermissionAction.CANCEL,
            expected=DocStatus.SUBMITTED,
            target=DocStatus.CANCELLED,
            event=HookEvent.ON_CANCEL,
            audit_action=AuditAction.CANCEL,
        )

    def _transition(
        self,
        doc_type: str,
        name: str,
        user: UserContext,
        action: PermissionAction,
        expected: DocStatus,
        target: DocStatus,
        event: HookEvent,
        audit_action: AuditAction,
    ) -> dict[str, Any]:
        with self.db.tenant_transaction(user.tenant_id) as tx:
            definition = self._load_definition(tx, doc_type, action, user)

            sql, params = statements.set_docstatus(
                doc_type, name, tx.tenant_id, target.value, expected.value
            )
            try:
                affected = tx.execute(sql, params)
            except DBAPIError as exc:
                logger.exception("docstatus update failed for %s %s", doc_type, name)
                raise InternalError(
                    f"Failed to {action.value} {doc_type} {name}; "
                    f"check that {doc_type} has a docstatus column (re-sync the DocType)"
                ) from exc

            if affected == 0:
                row = self._find_row(tx, definition, name)
                if row is None:
                    raise NotFoundError(f"{doc_type} {name} not found")
                if target == DocStatus.SUBMITTED:
                    if row.get("docstatus") == DocStatus.SUBMITTED:
                        raise InvalidStateTransitionError(
                            "Document is already submitted", code="ALREADY_SUBMITTED"
                        )
                    raise InvalidStateTransitionError(
                        "Only draft documents can be submitted", code="NOT_DRAFT"
                    )
                raise InvalidStateTransitionError(
                    "Document must be submitted to cancel", code="NOT_SUBMITTED"
                )

            doc = self._hydrate(tx, definition, self._find_row(tx, definition, name))
            doc = self.hooks.trigger(doc_type, event, doc, user)
            self.audit.log(tx, audit_action, doc_type, name, user)

        logger.debug("%s %s -> docstatus %d", doc_type, name, target.value)
        return doc
