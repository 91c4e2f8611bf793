"""Generic document operations and the audit trail."""

from metadoc.documents.audit import AuditAction, AuditLogger
from metadoc.documents.engine import DocumentEngine

__all__ = ["AuditAction", "AuditLogger", "DocumentEngine"]
