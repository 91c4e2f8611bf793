"""FastAPI dependencies for authentication."""

from fastapi import HTTPException, Request

from metadoc.auth.middleware import get_user_context
from metadoc.auth.types import UserContext


def require_authenticated(request: Request) -> UserContext:
    """Dependency that requires a valid bearer token.

    Raises:
        HTTPException 401 if not authenticated
    """
    user_context = get_user_context(request)
    if not user_context:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_context


def require_super_role(request: Request) -> UserContext:
    """Dependency for schema-changing endpoints.

    The set of super roles comes from the app's PermissionEvaluator.

    Raises:
        HTTPException 401 if not authenticated
        HTTPException 403 if the user holds no super role
    """
    user_context = require_authenticated(request)
    evaluator = request.app.state.permissions
    if not evaluator.is_super(user_context.roles):
        raise HTTPException(
            status_code=403,
            detail=f"Insufficient permissions. Required roles: {', '.join(sorted(evaluator.super_roles))}",
        )
    return user_context
