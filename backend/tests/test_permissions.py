"""Tests for role-based DocType permissions."""

import pytest

from conftest import invoice_definition
from metadoc.auth import DEFAULT_SUPER_ROLES, PermissionEvaluator, super_roles_from_env
from metadoc.core.errors import PermissionDeniedError
from metadoc.metadata.types import PermissionAction


@pytest.fixture
def graded(synchronizer):
    """Invoice with a read-only role and a role that may also create and submit."""
    return synchronizer.sync_doc_type(
        invoice_definition(
            permissions=[
                {"role": "Viewer"},
                {"role": "Accounts User", "create": True, "write": True, "submit": True},
            ]
        )
    )


class TestCheckPermission:
    def test_read_grant(self, permissions, graded):
        assert permissions.check_permission("Invoice", ["Viewer"], PermissionAction.READ)
        assert not permissions.check_permission("Invoice", ["Viewer"], PermissionAction.CREATE)

    def test_any_role_match(self, permissions, graded):
        roles = ["Viewer", "Accounts User"]
        assert permissions.check_permission("Invoice", roles, "create")
        assert permissions.check_permission("Invoice", roles, "submit")
        assert not permissions.check_permission("Invoice", roles, "cancel")

    def test_unknown_role_denied(self, permissions, graded):
        assert not permissions.check_permission("Invoice", ["Guest"], "read")

    def test_no_roles_denied(self, permissions, graded):
        assert not permissions.check_permission("Invoice", [], "read")
        assert not permissions.check_permission("Invoice", None, "read")

    @pytest.mark.parametrize("action", list(PermissionAction))
    def test_zero_grants_deny_everything(self, permissions, synchronizer, action):
        synchronizer.sync_doc_type(invoice_definition(permissions=[]))
        assert not permissions.check_permission("Invoice", ["Accounts User"], action)

    @pytest.mark.parametrize("role", sorted(DEFAULT_SUPER_ROLES))
    def test_super_roles_bypass(self, permissions, synchronizer, role):
        synchronizer.sync_doc_type(invoice_definition(permissions=[]))
        assert permissions.check_permission("Invoice", [role], "delete")

    def test_invalid_action(self, permissions, graded):
        with pytest.raises(ValueError):
            permissions.check_permission("Invoice", ["Viewer"], "publish")


class TestEnsurePermission:
    def test_raises_when_denied(self, permissions, graded):
        with pytest.raises(PermissionDeniedError, match="Not permitted to create Invoice") as exc_info:
            permissions.ensure_permission("Invoice", ["Viewer"], "create")
        assert exc_info.value.status_code == 403

    def test_passes_when_granted(self, permissions, graded):
        permissions.ensure_permission("Invoice", ["Accounts User"], PermissionAction.WRITE)


class TestSuperRoles:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("METADOC_SUPER_ROLES", raising=False)
        assert super_roles_from_env() == DEFAULT_SUPER_ROLES

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("METADOC_SUPER_ROLES", "Root, Owner ,")
        assert super_roles_from_env() == frozenset({"Root", "Owner"})

    def test_custom_super_roles(self, registry, synchronizer):
        synchronizer.sync_doc_type(invoice_definition(permissions=[]))
        evaluator = PermissionEvaluator(registry, super_roles=frozenset({"Root"}))
        assert evaluator.check_permission("Invoice", ["Root"], "read")
        assert not evaluator.check_permission("Invoice", ["admin"], "read")
