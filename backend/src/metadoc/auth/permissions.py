"""DocPerm-based permission evaluation.

A check passes when the caller holds a super role, or when at least one
DocPerm row for the DocType names one of the caller's roles with the
requested action flag set. A DocType with no DocPerm rows (or no
registry entry at all) denies every other caller.
"""

from __future__ import annotations

import logging
import os

from sqlalchemy.engine import Connection

from metadoc.core.errors import PermissionDeniedError
from metadoc.metadata.registry import SchemaRegistry
from metadoc.metadata.types import PermissionAction

logger = logging.getLogger(__name__)

DEFAULT_SUPER_ROLES = frozenset({"System Manager", "admin"})


def super_roles_from_env() -> frozenset[str]:
    """Read METADOC_SUPER_ROLES (comma separated), falling back to the defaults."""
    raw = os.environ.get("METADOC_SUPER_ROLES")
    if raw is None:
        return DEFAULT_SUPER_ROLES
    return frozenset(role.strip() for role in raw.split(",") if role.strip())


class PermissionEvaluator:
    """Answers "can these roles perform this action on this DocType"."""

    def __init__(self, registry: SchemaRegistry, super_roles: frozenset[str] | None = None):
        self.registry = registry
        self.super_roles = super_roles if super_roles is not None else super_roles_from_env()

    def is_super(self, roles: list[str] | None) -> bool:
        return any(role in self.super_roles for role in roles or [])

    def check_permission(
        self,
        doc_type: str,
        roles: list[str] | None,
        action: PermissionAction | str,
        conn: Connection | None = None,
    ) -> bool:
        action = PermissionAction(action)
        if self.is_super(roles):
            return True

        role_set = set(roles or [])
        if not role_set:
            return False

        for perm in self.registry.get_permissions(doc_type, conn):
            if perm.role in role_set and perm.allows(action):
                return True
        return False

    def ensure_permission(
        self,
        doc_type: str,
        roles: list[str] | None,
        action: PermissionAction | str,
        conn: Connection | None = None,
    ) -> None:
        """Raise unless ``check_permission`` passes.

        Raises:
            PermissionDeniedError: The roles hold no matching grant.
        """
        action = PermissionAction(action)
        if not self.check_permission(doc_type, roles, action, conn):
            logger.debug("Denied %s on %s for roles %s", action.value, doc_type, roles)
            raise PermissionDeniedError(
                f"Not permitted to {action.value} {doc_type}"
            )
