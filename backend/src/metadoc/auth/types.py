"""Type definitions for authentication."""

from dataclasses import dataclass, field


@dataclass
class UserContext:
    """The acting user for a document operation.

    Attributes:
        user_id: The authenticated user's ID (stored as ``owner`` and in the audit log)
        tenant_id: Tenant the operation is scoped to; required by every operation
        roles: Role names matched against DocPerm grants
    """

    user_id: str
    tenant_id: str | None = None
    roles: list[str] = field(default_factory=list)


@dataclass
class TokenClaims:
    """Claims embedded in an access token.

    Attributes:
        user_id: The ``sub`` claim
        tenant_id: The active tenant ID
        roles: Roles granted within the tenant
        exp: Token expiration timestamp
        iat: Token issued-at timestamp
        type: Token type (only "access" tokens are accepted by the API)
    """

    user_id: str
    tenant_id: str | None = None
    roles: list[str] = field(default_factory=list)
    exp: int = 0
    iat: int = 0
    type: str = "access"

    def to_user_context(self) -> UserContext:
        return UserContext(user_id=self.user_id, tenant_id=self.tenant_id, roles=list(self.roles))
