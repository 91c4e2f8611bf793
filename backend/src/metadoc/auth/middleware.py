"""Authentication middleware for FastAPI."""

from collections.abc import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from metadoc.auth.jwt_service import JWTError, JWTService
from metadoc.auth.types import UserContext


class AuthMiddleware(BaseHTTPMiddleware):
    """Extracts the bearer JWT and sets ``request.state.user_context``.

    The JWT service is looked up per request through ``get_jwt_service``
    because the app builds it during startup, after middleware is installed.
    Unauthenticated requests pass through with ``user_context = None``;
    rejecting them is up to the endpoint dependencies.
    """

    def __init__(self, app, get_jwt_service: Callable[[], JWTService | None]):
        super().__init__(app)
        self._get_jwt_service = get_jwt_service

    async def dispatch(self, request: Request, call_next) -> Response:
        request.state.user_context = None

        jwt_service = self._get_jwt_service()
        auth_header = request.headers.get("Authorization")
        if jwt_service and auth_header and auth_header.startswith("Bearer "):
            token = auth_header[7:]
            try:
                claims = jwt_service.decode_token(token)
                # Only accept access tokens
                if claims.type == "access":
                    request.state.user_context = claims.to_user_context()
            except JWTError:
                # Invalid token - leave user_context as None
                pass

        return await call_next(request)


def get_user_context(request: Request) -> UserContext | None:
    """Get the user context from the request state."""
    return getattr(request.state, "user_context", None)
