"""Data models for authentication."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from src.vahire.services.database.models import UserRecord, UserRole


class AuthSource(str, Enum):
    """Which verification path produced an identity."""

    EXTERNAL = "external"
    LOCAL = "local"


class TokenKind(str, Enum):
    """Classification of an undecoded bearer token."""

    EXTERNAL = "external"
    LOCAL = "local"


@dataclass(frozen=True)
class TokenEnvelope:
    """
    Unverified structural decomposition of a JWT.

    Only used to pick a verifier; nothing in here is trusted.
    """

    kind: TokenKind
    header: dict[str, Any] = field(default_factory=dict)
    claims: dict[str, Any] = field(default_factory=dict)

    @property
    def algorithm(self) -> str | None:
        return self.header.get("alg")

    @property
    def kid(self) -> str | None:
        return self.header.get("kid")

    @property
    def issuer(self) -> str | None:
        issuer = self.claims.get("iss")
        return issuer if isinstance(issuer, str) else None


class Identity(BaseModel):
    """
    Verified identity attached to a request.

    Shape is the same whichever token type authenticated the request, so
    handlers never branch on ``auth_source`` to find the current user.

    Attributes:
        id: Auth0 subject (external) or user record primary key (local)
        external_id: Subject to use for lookups keyed by external identity;
            for local tokens this is synthesised from the primary key
        email: Email from token claims or from the user record
        role: Role from the user record; None until the record is loaded
        auth_source: Verification path that produced this identity
        record: Full user record, when it has been loaded
        claims: Verified external claims (not serialised)

    Example:
        >>> identity = Identity(id="auth0|123", external_id="auth0|123",
        ...                     auth_source=AuthSource.EXTERNAL)
    """

    id: str
    external_id: str
    email: str | None = None
    role: UserRole | None = None
    auth_source: AuthSource
    name: str | None = None
    picture: str | None = None
    record: UserRecord | None = None
    claims: dict[str, Any] = Field(default_factory=dict, exclude=True, repr=False)

    @property
    def is_external(self) -> bool:
        return self.auth_source == AuthSource.EXTERNAL

    def with_record(self, record: UserRecord) -> "Identity":
        """Return a copy enriched with a loaded user record."""
        return self.model_copy(
            update={
                "record": record,
                "role": record.role,
                "email": self.email or record.email,
            }
        )
