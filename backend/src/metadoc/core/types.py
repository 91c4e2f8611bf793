"""Field type registry with physical column mappings."""

from dataclasses import dataclass


@dataclass(frozen=True)
class FieldType:
    name: str
    column_type: str | None  # None: the field never produces a column


# Built-in DocField types
FIELD_TYPES: dict[str, FieldType] = {
    "Data": FieldType(name="Data", column_type="VARCHAR(255)"),
    "Link": FieldType(name="Link", column_type="VARCHAR(255)"),
    "Select": FieldType(name="Select", column_type="VARCHAR(255)"),
    "Password": FieldType(name="Password", column_type="VARCHAR(255)"),
    "Int": FieldType(name="Int", column_type="INTEGER"),
    "Float": FieldType(name="Float", column_type="DECIMAL(18, 6)"),
    "Currency": FieldType(name="Currency", column_type="DECIMAL(18, 6)"),
    "Check": FieldType(name="Check", column_type="BOOLEAN"),
    "Date": FieldType(name="Date", column_type="DATE"),
    "Datetime": FieldType(name="Datetime", column_type="TIMESTAMP"),
    "Text": FieldType(name="Text", column_type="TEXT"),
    "Small Text": FieldType(name="Small Text", column_type="TEXT"),
    "Long Text": FieldType(name="Long Text", column_type="TEXT"),
    # One-to-many declaration; rows live in the child DocType's table
    "Table": FieldType(name="Table", column_type=None),
}

TABLE_FIELD_TYPE = "Table"


def is_known_field_type(type_name: str) -> bool:
    return type_name in FIELD_TYPES


def get_column_type(type_name: str) -> str | None:
    """Get the SQL column type for a field type.

    Returns None for ``Table`` fields and for unknown types, neither of
    which produce a physical column.
    """
    field_type = FIELD_TYPES.get(type_name)
    return field_type.column_type if field_type else None


# Columns present on every non-Single document table, in creation order
STANDARD_COLUMNS: dict[str, str] = {
    "id": "VARCHAR(36) PRIMARY KEY",
    "tenantId": "VARCHAR(255)",
    "name": "VARCHAR(255)",
    "creation": "TIMESTAMP DEFAULT CURRENT_TIMESTAMP",
    "modified": "TIMESTAMP DEFAULT CURRENT_TIMESTAMP",
    "owner": "VARCHAR(255)",
    "docstatus": "INTEGER DEFAULT 0",
    "idx": "INTEGER DEFAULT 0",
}

# Extra columns carried by child (isChild) document tables
CHILD_LINK_COLUMNS: dict[str, str] = {
    "parent": "VARCHAR(255)",
    "parenttype": "VARCHAR(255)",
    "parentfield": "VARCHAR(255)",
    "parentId": "VARCHAR(36)",
}
