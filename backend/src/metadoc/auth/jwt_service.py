"""JWT token generation and validation service."""

import time

import jwt

from metadoc.auth.types import TokenClaims


class JWTError(Exception):
    """Base exception for JWT-related errors."""

    pass


class TokenExpiredError(JWTError):
    """Raised when a token has expired."""

    pass


class InvalidTokenError(JWTError):
    """Raised when a token is invalid or malformed."""

    pass


class JWTService:
    """Issues and validates HS256 access tokens carrying tenant and roles."""

    ACCESS_TOKEN_TTL = 15 * 60  # 15 minutes

    def __init__(self, secret_key: str, algorithm: str = "HS256"):
        self._secret_key = secret_key
        self._algorithm = algorithm

    def generate_access_token(
        self,
        user_id: str,
        tenant_id: str | None = None,
        roles: list[str] | None = None,
        ttl: int | None = None,
    ) -> str:
        """Sign an access token.

        Args:
            user_id: Becomes the ``sub`` claim
            tenant_id: Optional tenant ID to include in token
            roles: Role names for permission checks
            ttl: Lifetime in seconds (defaults to ACCESS_TOKEN_TTL)
        """
        now = int(time.time())
        claims = {
            "sub": user_id,
            "iat": now,
            "exp": now + (ttl if ttl is not None else self.ACCESS_TOKEN_TTL),
            "type": "access",
            "roles": list(roles or []),
        }
        if tenant_id:
            claims["tenant_id"] = tenant_id

        return jwt.encode(claims, self._secret_key, algorithm=self._algorithm)

    def decode_token(self, token: str) -> TokenClaims:
        """Decode and validate a JWT token.

        A single ``role`` claim is accepted in place of ``roles``.

        Raises:
            TokenExpiredError: If the token has expired
            InvalidTokenError: If the token is invalid or malformed
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpiredError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError(f"Invalid token: {e}")

        roles = payload.get("roles")
        if roles is None:
            roles = [payload["role"]] if payload.get("role") else []
        elif not isinstance(roles, list):
            raise InvalidTokenError("Invalid token: 'roles' must be a list")

        return TokenClaims(
            user_id=payload.get("sub", ""),
            tenant_id=payload.get("tenant_id"),
            roles=[str(r) for r in roles],
            exp=payload.get("exp", 0),
            iat=payload.get("iat", 0),
            type=payload.get("type", "access"),
        )
