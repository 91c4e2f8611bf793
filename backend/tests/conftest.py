"""Shared fixtures: a fresh SQLite database per test plus the engine stack."""

from pathlib import Path

import pytest

from metadoc.auth import DEFAULT_SUPER_ROLES, PermissionEvaluator, UserContext
from metadoc.documents import DocumentEngine
from metadoc.metadata.registry import SchemaRegistry
from metadoc.metadata.sync import SchemaSynchronizer
from metadoc.metadata.types import DocTypeDefinition
from metadoc.persistence import DatabaseConfig, create_database

REPO_ROOT = Path(__file__).resolve().parents[2]
METADATA_DIR = REPO_ROOT / "metadata"


@pytest.fixture
def db(tmp_path):
    database = create_database(DatabaseConfig(url=f"sqlite:///{tmp_path / 'test.db'}"))
    yield database
    database.dispose()


@pytest.fixture
def registry(db):
    reg = SchemaRegistry(db)
    reg.create_tables()
    return reg


@pytest.fixture
def synchronizer(db, registry):
    return SchemaSynchronizer(db, registry)


@pytest.fixture
def permissions(registry):
    return PermissionEvaluator(registry, super_roles=DEFAULT_SUPER_ROLES)


@pytest.fixture
def engine(db, registry, permissions):
    return DocumentEngine(db, registry, permissions=permissions, page_size=100)


@pytest.fixture
def admin():
    return UserContext(user_id="admin-user", tenant_id="tenant-a", roles=["admin"])


@pytest.fixture
def clerk():
    """A non-privileged user; only DocPerm grants apply."""
    return UserContext(user_id="clerk-user", tenant_id="tenant-a", roles=["Accounts User"])


def invoice_definition(**overrides) -> DocTypeDefinition:
    data = {
        "doctype": "Invoice",
        "module": "Accounts",
        "fields": [
            {"name": "amount", "type": "Float", "required": True},
            {"name": "status", "type": "Select", "required": True},
        ],
        "permissions": [
            {"role": "admin", "create": True, "read": True, "write": True},
        ],
    }
    data.update(overrides)
    return DocTypeDefinition.from_dict(data)


def order_line_definition() -> DocTypeDefinition:
    return DocTypeDefinition.from_dict({
        "doctype": "Order Line",
        "module": "Selling",
        "isChild": True,
        "fields": [
            {"name": "sku", "type": "Data", "required": True},
            {"name": "qty", "type": "Int", "required": True},
        ],
    })


def order_definition() -> DocTypeDefinition:
    return DocTypeDefinition.from_dict({
        "doctype": "Order",
        "module": "Selling",
        "fields": [
            {"name": "order_no", "type": "Data"},
            {"name": "lines", "type": "Table", "options": "Order Line"},
        ],
        "permissions": [{"role": "admin", "create": True, "write": True, "delete": True}],
    })


@pytest.fixture
def invoice(synchronizer):
    return synchronizer.sync_doc_type(invoice_definition())


@pytest.fixture
def order(synchronizer):
    synchronizer.sync_doc_type(order_line_definition())
    return synchronizer.sync_doc_type(order_definition())
