"""Exception hierarchy for the document engine.

Every error carries an HTTP-style status code and a machine-readable code
so the API layer can translate it without knowing about individual cases:

- NotFoundError: DocType, document, or referenced row missing (404)
- PermissionDeniedError: role lacks the grant, or no grants exist (403)
- ValidationFailedError: payload failed field checks (422)
- BadRequestError: malformed identifiers, missing tenant context,
  illegal workflow transitions (400)
- InternalError: database/DDL failures surfaced with a hint (500)
"""

from __future__ import annotations

from typing import Any

from metadoc.validation.types import ValidationError


class MetadocError(Exception):
    """Base exception for all engine errors."""

    status_code = 500
    code = "ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class NotFoundError(MetadocError):
    status_code = 404
    code = "NOT_FOUND"


class PermissionDeniedError(MetadocError):
    status_code = 403
    code = "PERMISSION_DENIED"


class BadRequestError(MetadocError):
    status_code = 400
    code = "BAD_REQUEST"


class InvalidIdentifierError(BadRequestError):
    """Raised when a name cannot be used as a SQL identifier."""

    code = "INVALID_IDENTIFIER"

    def __init__(self, name: str, reason: str):
        super().__init__(f"Invalid identifier '{name}': {reason}")
        self.name = name


class MissingTenantError(BadRequestError):
    code = "MISSING_TENANT"

    def __init__(self, message: str = "Missing tenantId"):
        super().__init__(message)


class InvalidStateTransitionError(BadRequestError):
    """Raised for workflow moves the docstatus state machine forbids."""

    code = "INVALID_STATE_TRANSITION"


class InternalError(MetadocError):
    status_code = 500
    code = "INTERNAL"


class ValidationFailedError(MetadocError):
    """Raised when a payload fails validation.

    Attributes:
        errors: One entry per failed check, in field declaration order.
    """

    status_code = 422
    code = "VALIDATION_FAILED"

    def __init__(self, errors: list[ValidationError]):
        self.errors = list(errors)
        message = "; ".join(e.message for e in self.errors) or "Validation failed"
        super().__init__(message)

    @classmethod
    def single(cls, message: str, code: str, field: str | None = None) -> ValidationFailedError:
        return cls([ValidationError(message=message, code=code, field=field)])

    @property
    def error_codes(self) -> list[str]:
        return [e.code for e in self.errors]

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["errors"] = [e.to_dict() for e in self.errors]
        return result
