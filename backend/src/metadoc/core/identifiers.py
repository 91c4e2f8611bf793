"""SQL identifier safety.

Table and column names cannot be bound as query parameters, so every
identifier the engine interpolates into SQL passes through this module.
Only ``[A-Za-z0-9_]+`` names no longer than PostgreSQL's identifier limit
are accepted; quoting is applied afterwards so mixed-case names keep
their casing (``Sales Order`` → ``"tabSalesOrder"``).
"""

import re

from metadoc.core.errors import InvalidIdentifierError

# PostgreSQL NAMEDATALEN - 1
MAX_IDENTIFIER_LENGTH = 63

TABLE_PREFIX = "tab"

_SAFE_IDENTIFIER = re.compile(r"^[A-Za-z0-9_]+$")
_WHITESPACE = re.compile(r"\s+")


def compact_doc_type_name(doc_type: str) -> str:
    """Strip all whitespace from a DocType name ("Sales Order" → "SalesOrder")."""
    return _WHITESPACE.sub("", doc_type or "")


def to_safe_table_name(doc_type: str) -> str:
    """Return the physical table name for a DocType.

    Raises:
        InvalidIdentifierError: If the compact name contains anything other
            than letters, digits and underscores, or the table name would
            exceed MAX_IDENTIFIER_LENGTH.
    """
    compact = compact_doc_type_name(doc_type)
    if not _SAFE_IDENTIFIER.match(compact):
        raise InvalidIdentifierError(
            doc_type, "DocType names may only contain letters, digits, underscores and spaces"
        )
    table_name = f"{TABLE_PREFIX}{compact}"
    if len(table_name) > MAX_IDENTIFIER_LENGTH:
        raise InvalidIdentifierError(
            doc_type, f"table name exceeds {MAX_IDENTIFIER_LENGTH} characters"
        )
    return table_name


def assert_safe_column_name(name: str) -> str:
    """Return ``name`` unchanged if it is a safe column identifier.

    Raises:
        InvalidIdentifierError: If the name is empty, contains characters
            outside ``[A-Za-z0-9_]`` or is longer than MAX_IDENTIFIER_LENGTH.
    """
    if not isinstance(name, str) or not _SAFE_IDENTIFIER.match(name):
        raise InvalidIdentifierError(
            str(name), "column names may only contain letters, digits and underscores"
        )
    if len(name) > MAX_IDENTIFIER_LENGTH:
        raise InvalidIdentifierError(
            name, f"column name exceeds {MAX_IDENTIFIER_LENGTH} characters"
        )
    return name


def quote(identifier: str) -> str:
    """Double-quote an identifier that has already been checked.

    Example: quote("parentId") → '"parentId"'
    """
    return f'"{identifier}"'


def quoted_table(doc_type: str) -> str:
    return quote(to_safe_table_name(doc_type))


def quoted_column(name: str) -> str:
    return quote(assert_safe_column_name(name))
