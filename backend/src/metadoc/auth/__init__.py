"""Authentication and permission checks for metadoc."""

from metadoc.auth.dependencies import require_authenticated, require_super_role
from metadoc.auth.jwt_service import (
    InvalidTokenError,
    JWTError,
    JWTService,
    TokenExpiredError,
)
from metadoc.auth.middleware import AuthMiddleware, get_user_context
from metadoc.auth.permissions import (
    DEFAULT_SUPER_ROLES,
    PermissionEvaluator,
    super_roles_from_env,
)
from metadoc.auth.types import TokenClaims, UserContext

__all__ = [
    "AuthMiddleware",
    "DEFAULT_SUPER_ROLES",
    "InvalidTokenError",
    "JWTError",
    "JWTService",
    "PermissionEvaluator",
    "TokenClaims",
    "TokenExpiredError",
    "UserContext",
    "get_user_context",
    "require_authenticated",
    "require_super_role",
    "super_roles_from_env",
]
