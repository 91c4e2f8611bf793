"""Payload validation against a DocType's declared fields.

Checks only the fields a DocType declares: required values, per-type
formats, Select choices and Link targets. Rejecting undeclared keys is
the document engine's job. All failures for a payload are collected and
raised together as one ValidationFailedError.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from metadoc.core.errors import NotFoundError, ValidationFailedError
from metadoc.metadata.registry import SchemaRegistry
from metadoc.metadata.types import DocFieldDefinition
from metadoc.persistence import statements
from metadoc.persistence.database import TenantTransaction
from metadoc.validation.types import (
    INVALID_CHECK,
    INVALID_DATE,
    INVALID_DATETIME,
    INVALID_INT,
    INVALID_NUMBER,
    INVALID_OPTION,
    INVALID_VALUE,
    LINK_MISMATCH,
    LINK_TARGET_INVALID,
    REQUIRED,
    ValidationError,
)

logger = logging.getLogger(__name__)


def is_empty(value: Any) -> bool:
    return value is None or value == ""


def _is_int(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return value.is_integer()
    if isinstance(value, Decimal):
        return value == value.to_integral_value()
    if isinstance(value, str):
        try:
            int(value.strip())
        except ValueError:
            return False
        return True
    return False


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float, Decimal)):
        return True
    if isinstance(value, str):
        try:
            return Decimal(value.strip()).is_finite()
        except InvalidOperation:
            return False
    return False


def _is_date(value: Any) -> bool:
    if isinstance(value, (date, datetime)):
        return True
    if isinstance(value, str):
        try:
            date.fromisoformat(value)
            return True
        except ValueError:
            pass
        return _is_datetime(value)
    return False


def _is_datetime(value: Any) -> bool:
    if isinstance(value, datetime):
        return True
    if isinstance(value, str):
        try:
            datetime.fromisoformat(value)
        except ValueError:
            return False
        return True
    return False


def _is_check(value: Any) -> bool:
    return isinstance(value, bool) or (isinstance(value, int) and value in (0, 1))


def check_field_format(field: DocFieldDefinition, value: Any) -> ValidationError | None:
    """Type-specific check for a non-empty value. Link targets are not covered."""
    label = field.label or field.name

    if isinstance(value, (dict, list)):
        return ValidationError(f"{label} must be a single value", INVALID_VALUE, field.name)
    if field.type == "Int" and not _is_int(value):
        return ValidationError(f"{label} must be an integer", INVALID_INT, field.name)
    if field.type in ("Float", "Currency") and not _is_number(value):
        return ValidationError(f"{label} must be a number", INVALID_NUMBER, field.name)
    if field.type == "Date" and not _is_date(value):
        return ValidationError(f"{label} must be a valid date", INVALID_DATE, field.name)
    if field.type == "Datetime" and not _is_datetime(value):
        return ValidationError(
            f"{label} must be a valid ISO datetime", INVALID_DATETIME, field.name
        )
    if field.type == "Check" and not _is_check(value):
        return ValidationError(f"{label} must be true or false", INVALID_CHECK, field.name)
    if field.type == "Select":
        options = field.select_options
        if options and str(value) not in options:
            return ValidationError(
                f"{label} must be one of: {', '.join(options)}", INVALID_OPTION, field.name
            )
    return None


class DocumentValidator:
    """Validates document payloads inside a tenant transaction."""

    def __init__(self, registry: SchemaRegistry):
        self.registry = registry

    def validate(self, doc_type: str, payload: dict[str, Any], tx: TenantTransaction) -> None:
        """Validate ``payload`` against the DocType's registered fields.

        Raises:
            NotFoundError: The DocType is not registered.
            ValidationFailedError: One or more field checks failed.
        """
        if not self.registry.doc_type_exists(doc_type, tx.connection):
            raise NotFoundError(f"DocType '{doc_type}' not found")
        fields = self.registry.get_fields(doc_type, tx.connection)
        self.validate_fields(fields, payload, tx)

    def validate_fields(
        self,
        fields: list[DocFieldDefinition],
        payload: dict[str, Any],
        tx: TenantTransaction,
    ) -> None:
        errors = self.collect_errors(fields, payload, tx)
        if errors:
            logger.debug("Validation failed: %s", [e.code for e in errors])
            raise ValidationFailedError(errors)

    def collect_errors(
        self,
        fields: list[DocFieldDefinition],
        payload: dict[str, Any],
        tx: TenantTransaction,
        link_fields: set[str] | None = None,
    ) -> list[ValidationError]:
        """Check every declared non-Table field of ``payload``.

        Link targets are only looked up for fields in ``link_fields`` (all
        Link fields when None).
        """
        errors: list[ValidationError] = []

        for field in fields:
            if field.is_table:
                continue

            value = payload.get(field.name)
            if is_empty(value):
                if field.required:
                    errors.append(
                        ValidationError(
                            f"{field.label or field.name} is required", REQUIRED, field.name
                        )
                    )
                continue

            error = check_field_format(field, value)
            check_link = link_fields is None or field.name in link_fields
            if error is None and check_link and field.type == "Link" and field.target:
                error = self._check_link(field, value, tx)
            if error is not None:
                errors.append(error)

        return errors

    def _check_link(
        self, field: DocFieldDefinition, value: Any, tx: TenantTransaction
    ) -> ValidationError | None:
        target = self.registry.get_doc_type(field.target, tx.connection)
        if target is None or target.is_single:
            return ValidationError(
                f"Invalid link target: {field.target}", LINK_TARGET_INVALID, field.name
            )

        sql, params = statements.exists_by_name(target.name, str(value), tx.tenant_id)
        if tx.fetch_one(sql, params) is None:
            return ValidationError(
                f"Link mismatch: {value} not found in {field.target}", LINK_MISMATCH, field.name
            )
        return None
