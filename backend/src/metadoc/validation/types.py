"""Core types for payload validation."""

from dataclasses import dataclass
from typing import Any


# Machine-readable codes raised by the validation engine
REQUIRED = "REQUIRED"
INVALID_INT = "INVALID_INT"
INVALID_NUMBER = "INVALID_NUMBER"
INVALID_DATE = "INVALID_DATE"
INVALID_DATETIME = "INVALID_DATETIME"
INVALID_CHECK = "INVALID_CHECK"
INVALID_OPTION = "INVALID_OPTION"
INVALID_VALUE = "INVALID_VALUE"
LINK_TARGET_INVALID = "LINK_TARGET_INVALID"
LINK_MISMATCH = "LINK_MISMATCH"
UNKNOWN_FIELD = "UNKNOWN_FIELD"
INVALID_DEFINITION = "INVALID_DEFINITION"


@dataclass(frozen=True)
class ValidationError:
    """A single failed check.

    Attributes:
        message: Human-readable message
        code: Machine-readable error code (e.g., "LINK_MISMATCH")
        field: Field name this error relates to, or None for document-level errors
    """

    message: str
    code: str
    field: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "field": self.field,
        }
