"""Authentication module for hybrid Auth0 / local JWT authentication."""

from src.vahire.services.auth.dependencies import (
    extract_token,
    get_auth_gate,
    get_current_identity,
    get_current_user_record,
    get_identity_with_record,
    require_admin,
    require_roles,
    set_auth_gate,
)
from src.vahire.services.auth.exceptions import (
    AuthError,
    AuthenticationError,
    AuthorizationError,
    IdentityStoreError,
    KeyFetchError,
    MalformedTokenError,
    MissingTokenError,
    SubjectNotFoundError,
    TokenVerificationError,
)
from src.vahire.services.auth.gate import AuthGate
from src.vahire.services.auth.jwks import JWKSCache
from src.vahire.services.auth.jwt_validator import ExternalTokenValidator
from src.vahire.services.auth.local_tokens import LocalTokenService
from src.vahire.services.auth.models import AuthSource, Identity

__all__ = [
    "extract_token",
    "get_auth_gate",
    "get_current_identity",
    "get_current_user_record",
    "get_identity_with_record",
    "require_admin",
    "require_roles",
    "set_auth_gate",
    "AuthError",
    "AuthenticationError",
    "AuthorizationError",
    "IdentityStoreError",
    "KeyFetchError",
    "MalformedTokenError",
    "MissingTokenError",
    "SubjectNotFoundError",
    "TokenVerificationError",
    "AuthGate",
    "JWKSCache",
    "ExternalTokenValidator",
    "LocalTokenService",
    "AuthSource",
    "Identity",
]
