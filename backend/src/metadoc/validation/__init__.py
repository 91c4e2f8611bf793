"""Payload validation for documents.

``metadoc.core.errors`` depends on ``ValidationError`` from this package,
so only the plain types are re-exported here; import the engine from
``metadoc.validation.engine``.
"""

from metadoc.validation.types import ValidationError

__all__ = ["ValidationError"]
