"""Parameterized SQL builders for document tables.

Identifiers are checked and quoted via ``metadoc.core.identifiers``;
values are always bound parameters (``:p0``, ``:p1``, ...). Every
statement is scoped with an explicit ``"tenantId" = :tenant_id`` predicate
in addition to the database's row-level security policy.
"""

from __future__ import annotations

from typing import Any

from metadoc.core.identifiers import quoted_column, quoted_table

_TENANT_PREDICATE = '"tenantId" = :tenant_id'


def _bind(values: dict[str, Any]) -> tuple[list[str], list[str], dict[str, Any]]:
    columns: list[str] = []
    placeholders: list[str] = []
    params: dict[str, Any] = {}
    for i, (column, value) in enumerate(values.items()):
        key = f"p{i}"
        columns.append(quoted_column(column))
        placeholders.append(f":{key}")
        params[key] = value
    return columns, placeholders, params


def insert(doc_type: str, values: dict[str, Any], returning: bool = True) -> tuple[str, dict[str, Any]]:
    """Build ``INSERT INTO "tab<DocType>" (...) VALUES (...) [RETURNING *]``.

    Falls back to ``DEFAULT VALUES`` when no columns are supplied.
    """
    table = quoted_table(doc_type)
    suffix = " RETURNING *" if returning else ""
    if not values:
        return f"INSERT INTO {table} DEFAULT VALUES{suffix}", {}

    columns, placeholders, params = _bind(values)
    sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({', '.join(placeholders)}){suffix}"
    return sql, params


def update_by_name(
    doc_type: str,
    values: dict[str, Any],
    name: str,
    tenant_id: str,
    extra_where: str = "",
) -> tuple[str, dict[str, Any]]:
    """Build ``UPDATE ... SET ..., "modified" = CURRENT_TIMESTAMP WHERE "name" = :name ... RETURNING *``.

    ``extra_where`` is a fixed SQL fragment supplied by the engine (never
    user input), e.g. a docstatus guard.
    """
    table = quoted_table(doc_type)
    columns, placeholders, params = _bind(values)
    assignments = [f"{c} = {p}" for c, p in zip(columns, placeholders)]
    assignments.append('"modified" = CURRENT_TIMESTAMP')
    params.update({"name": name, "tenant_id": tenant_id})
    where = f'"name" = :name AND {_TENANT_PREDICATE}'
    if extra_where:
        where += f" AND {extra_where}"
    return f"UPDATE {table} SET {', '.join(assignments)} WHERE {where} RETURNING *", params


def select_by_name(doc_type: str, name: str, tenant_id: str) -> tuple[str, dict[str, Any]]:
    table = quoted_table(doc_type)
    sql = f'SELECT * FROM {table} WHERE "name" = :name AND {_TENANT_PREDICATE} LIMIT 1'
    return sql, {"name": name, "tenant_id": tenant_id}


def select_page(doc_type: str, tenant_id: str, limit: int) -> tuple[str, dict[str, Any]]:
    table = quoted_table(doc_type)
    sql = f"SELECT * FROM {table} WHERE {_TENANT_PREDICATE} LIMIT {int(limit)}"
    return sql, {"tenant_id": tenant_id}


def delete_by_name(
    doc_type: str, name: str, tenant_id: str, extra_where: str = ""
) -> tuple[str, dict[str, Any]]:
    table = quoted_table(doc_type)
    where = f'"name" = :name AND {_TENANT_PREDICATE}'
    if extra_where:
        where += f" AND {extra_where}"
    return f"DELETE FROM {table} WHERE {where}", {"name": name, "tenant_id": tenant_id}


def select_children(
    child_doc_type: str, parent: str, parentfield: str, parenttype: str, tenant_id: str
) -> tuple[str, dict[str, Any]]:
    table = quoted_table(child_doc_type)
    sql = (
        f"SELECT * FROM {table}"
        ' WHERE "parent" = :parent AND "parentfield" = :parentfield AND "parenttype" = :parenttype'
        f" AND {_TENANT_PREDICATE}"
        ' ORDER BY "idx" ASC'
    )
    return sql, {
        "parent": parent,
        "parentfield": parentfield,
        "parenttype": parenttype,
        "tenant_id": tenant_id,
    }


def delete_children(
    child_doc_type: str, parent: str, parentfield: str, parenttype: str, tenant_id: str
) -> tuple[str, dict[str, Any]]:
    table = quoted_table(child_doc_type)
    sql = (
        f"DELETE FROM {table}"
        ' WHERE "parent" = :parent AND "parentfield" = :parentfield AND "parenttype" = :parenttype'
        f" AND {_TENANT_PREDICATE}"
    )
    return sql, {
        "parent": parent,
        "parentfield": parentfield,
        "parenttype": parenttype,
        "tenant_id": tenant_id,
    }


def exists_by_name(doc_type: str, name: Any, tenant_id: str) -> tuple[str, dict[str, Any]]:
    table = quoted_table(doc_type)
    sql = f'SELECT "name" FROM {table} WHERE "name" = :name AND {_TENANT_PREDICATE} LIMIT 1'
    return sql, {"name": name, "tenant_id": tenant_id}


def set_docstatus(
    doc_type: str, name: str, tenant_id: str, new_status: int, expected_status: int
) -> tuple[str, dict[str, Any]]:
    """Conditional status transition: only matches rows still in ``expected_status``.

    A NULL ``docstatus`` (rows written before the column existed) counts as Draft.
    """
    table = quoted_table(doc_type)
    sql = (
        f'UPDATE {table} SET "docstatus" = :new_status, "modified" = CURRENT_TIMESTAMP'
        f' WHERE "name" = :name AND {_TENANT_PREDICATE} AND COALESCE("docstatus", 0) = :expected_status'
    )
    return sql, {
        "name": name,
        "tenant_id": tenant_id,
        "new_status": new_status,
        "expected_status": expected_status,
    }
