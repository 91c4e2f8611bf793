"""Persistence layer - database handle, tenant transactions, SQL builders."""

from metadoc.persistence.config import DatabaseConfig, create_database
from metadoc.persistence.database import Database, TenantTransaction

__all__ = ["Database", "DatabaseConfig", "TenantTransaction", "create_database"]
