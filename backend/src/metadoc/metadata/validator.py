"""JSON Schema validation for DocType YAML files.

Usage:
    from metadoc.metadata.validator import validate_doctype_dir

    issues = validate_doctype_dir(Path("metadata/doctypes"))
    for issue in issues:
        print(issue)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError as SchemaError

from metadoc.validation.types import INVALID_DEFINITION, ValidationError

logger = logging.getLogger(__name__)

_SCHEMA_PATH = Path(__file__).parent / "schemas" / "doctype.schema.json"


@dataclass
class ValidationIssue:
    """A single validation finding for a DocType YAML file."""

    file: Path
    message: str
    path: str = ""  # location within the document, e.g. "fields[2]/type"
    severity: str = "error"  # "error" | "warning"

    def __str__(self) -> str:
        loc = f" at {self.path}" if self.path else ""
        return f"[{self.severity.upper()}] {self.file}{loc}: {self.message}"


def _load_schema() -> dict[str, Any]:
    with _SCHEMA_PATH.open() as fh:
        return json.load(fh)


def _json_path(error: SchemaError) -> str:
    parts = []
    for p in error.absolute_path:
        if isinstance(p, int):
            parts.append(f"[{p}]")
        else:
            parts.append(str(p))
    return "/".join(parts).replace("/[", "[")


def validate_doctype_file(
    yaml_path: Path, *, validator: Draft202012Validator | None = None
) -> list[ValidationIssue]:
    """Validate one YAML file against the DocType schema.

    Returns:
        Issues found (empty on success).
    """
    try:
        with yaml_path.open() as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        return [ValidationIssue(file=yaml_path, message=f"YAML parse error: {exc}")]

    if raw is None:
        return [ValidationIssue(file=yaml_path, message="File is empty")]

    if validator is None:
        validator = Draft202012Validator(_load_schema())

    return [
        ValidationIssue(file=yaml_path, message=error.message, path=_json_path(error))
        for error in sorted(validator.iter_errors(raw), key=_json_path)
    ]


def validate_doctype_dir(doctype_dir: Path) -> list[ValidationIssue]:
    """Validate every ``*.yaml`` file in ``doctype_dir``."""
    if not doctype_dir.is_dir():
        return [
            ValidationIssue(
                file=doctype_dir,
                message=f"DocType directory does not exist: {doctype_dir}",
            )
        ]

    validator = Draft202012Validator(_load_schema())
    issues: list[ValidationIssue] = []
    for yaml_file in sorted(doctype_dir.glob("*.yaml")):
        issues.extend(validate_doctype_file(yaml_file, validator=validator))
    return issues


def check_definition_data(data: dict[str, Any]) -> list[ValidationError]:
    """Schema errors for a definition in the API wire shape.

    The wire shape may key the DocType by ``name`` instead of ``doctype``.
    Name patterns are skipped here; identifier safety rejects unsafe names
    with its own error when the definition is synced.
    """
    raw = dict(data)
    if "doctype" not in raw and "name" in raw:
        raw["doctype"] = raw.pop("name")
    elif raw.get("name") == raw.get("doctype"):
        raw.pop("name", None)

    errors = sorted(Draft202012Validator(_load_schema()).iter_errors(raw), key=_json_path)
    return [
        ValidationError(error.message, INVALID_DEFINITION, _json_path(error) or None)
        for error in errors
        if error.validator != "pattern"
    ]
