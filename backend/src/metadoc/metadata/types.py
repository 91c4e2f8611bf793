"""DocType definition types.

These dataclasses are the in-memory form of the schema registry rows.
``from_dict``/``to_dict`` use the camelCase keys of the wire and YAML form
(``isSingle``, ``isChild``, ...).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from metadoc.core.errors import BadRequestError
from metadoc.core.types import TABLE_FIELD_TYPE


class PermissionAction(Enum):
    """Actions a DocPerm grant can allow."""

    READ = "read"
    WRITE = "write"
    CREATE = "create"
    DELETE = "delete"
    SUBMIT = "submit"
    CANCEL = "cancel"
    AMEND = "amend"
    REPORT = "report"


class DocStatus(int, Enum):
    """Workflow state of a document."""

    DRAFT = 0
    SUBMITTED = 1
    CANCELLED = 2


@dataclass
class DocFieldDefinition:
    name: str
    type: str
    label: str = ""
    required: bool = False
    unique: bool = False
    hidden: bool = False
    readonly: bool = False
    options: str | None = None  # Select choices, or the child DocType for Table fields
    target: str | None = None  # Referenced DocType for Link fields
    idx: int = 0

    @property
    def is_table(self) -> bool:
        return self.type == TABLE_FIELD_TYPE

    @property
    def select_options(self) -> list[str]:
        """Newline-separated Select choices, blanks dropped."""
        if not self.options:
            return []
        return [o.strip() for o in self.options.split("\n") if o.strip()]

    @classmethod
    def from_dict(cls, data: dict[str, Any], idx: int = 0) -> DocFieldDefinition:
        return cls(
            name=_require(data, "name", "DocField"),
            type=data.get("type", "Data"),
            label=data.get("label") or data.get("name", ""),
            required=bool(data.get("required", False)),
            unique=bool(data.get("unique", False)),
            hidden=bool(data.get("hidden", False)),
            readonly=bool(data.get("readonly", False)),
            options=data.get("options"),
            target=data.get("target"),
            idx=data.get("idx", idx),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "label": self.label,
            "type": self.type,
            "required": self.required,
            "unique": self.unique,
            "hidden": self.hidden,
            "readonly": self.readonly,
            "options": self.options,
            "target": self.target,
            "idx": self.idx,
        }


@dataclass
class DocPermDefinition:
    """One role-scoped grant. ``read`` defaults to True, everything else to False."""

    role: str
    read: bool = True
    write: bool = False
    create: bool = False
    delete: bool = False
    submit: bool = False
    cancel: bool = False
    amend: bool = False
    report: bool = False
    idx: int = 0

    def allows(self, action: PermissionAction) -> bool:
        return getattr(self, action.value) is True

    @classmethod
    def from_dict(cls, data: dict[str, Any], idx: int = 0) -> DocPermDefinition:
        return cls(
            role=_require(data, "role", "DocPerm"),
            read=bool(data.get("read", True)),
            write=bool(data.get("write", False)),
            create=bool(data.get("create", False)),
            delete=bool(data.get("delete", False)),
            submit=bool(data.get("submit", False)),
            cancel=bool(data.get("cancel", False)),
            amend=bool(data.get("amend", False)),
            report=bool(data.get("report", False)),
            idx=data.get("idx", idx),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"role": self.role}
        for action in PermissionAction:
            result[action.value] = getattr(self, action.value)
        result["idx"] = self.idx
        return result


@dataclass
class DocTypeDefinition:
    """A declared record kind.

    Attributes:
        name: Unique human key, e.g. "Sales Order"
        module: Grouping label
        is_single: No physical table (key-value singleton)
        is_child: Only exists as rows of a parent's Table field
        fields: Declared fields in order
        permissions: Grants, or None when the definition leaves them untouched
    """

    name: str
    module: str = "Core"
    is_single: bool = False
    is_child: bool = False
    description: str | None = None
    fields: list[DocFieldDefinition] = field(default_factory=list)
    permissions: list[DocPermDefinition] | None = None

    @property
    def data_fields(self) -> list[DocFieldDefinition]:
        """Fields backed by a physical column (everything but Table fields)."""
        return [f for f in self.fields if not f.is_table]

    @property
    def table_fields(self) -> list[DocFieldDefinition]:
        return [f for f in self.fields if f.is_table]

    def get_field(self, name: str) -> DocFieldDefinition | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DocTypeDefinition:
        """Create a definition from the wire/YAML dict.

        Accepts either ``name`` or ``doctype`` as the DocType key.
        """
        name = data.get("name") or data.get("doctype")
        if not name:
            raise BadRequestError("DocType definition requires a 'name'")

        raw_perms = data.get("permissions")
        permissions = None
        if raw_perms is not None:
            permissions = [
                DocPermDefinition.from_dict(p, idx) for idx, p in enumerate(raw_perms)
            ]

        return cls(
            name=name,
            module=data.get("module", "Core"),
            is_single=bool(data.get("isSingle", False)),
            is_child=bool(data.get("isChild", False)),
            description=data.get("description"),
            fields=[
                DocFieldDefinition.from_dict(f, idx)
                for idx, f in enumerate(data.get("fields") or [])
            ],
            permissions=permissions,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "module": self.module,
            "isSingle": self.is_single,
            "isChild": self.is_child,
            "description": self.description,
            "fields": [f.to_dict() for f in self.fields],
            "permissions": [p.to_dict() for p in self.permissions or []],
        }


def _require(data: dict[str, Any], key: str, kind: str) -> Any:
    value = data.get(key)
    if not value:
        raise BadRequestError(f"{kind} definition requires a '{key}'")
    return value
