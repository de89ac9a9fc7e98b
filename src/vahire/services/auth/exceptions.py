"""Custom exceptions for authentication and authorization.

Every failure raised while resolving a request's identity is one of these.
``status_code`` and ``message`` are what the client sees; ``reason`` and
``detail`` are for logs (``detail`` is only echoed outside production).
"""


class AuthError(Exception):
    """Base exception for all auth-related failures."""

    status_code = 500
    error = "Server Error"
    default_message = "Authentication processing failed"
    default_reason = "auth_error"

    def __init__(
        self,
        message: str | None = None,
        *,
        reason: str | None = None,
        detail: str | None = None,
    ):
        self.message = message or self.default_message
        self.reason = reason or self.default_reason
        self.detail = detail
        super().__init__(detail or self.message)

    def to_response(self, include_details: bool = False) -> dict[str, str]:
        """Render the client-facing error body."""
        body = {"error": self.error, "message": self.message}
        if include_details and self.detail:
            body["details"] = self.detail
        return body


class AuthenticationError(AuthError):
    """Raised when authentication fails (invalid credentials, expired tokens, etc.)."""

    status_code = 401
    error = "Unauthorized"
    default_message = "Invalid or expired token"
    default_reason = "authentication_failed"


class MissingTokenError(AuthenticationError):
    """Raised when the request carries no bearer token at all."""

    default_message = "No token provided"
    default_reason = "missing_token"


class MalformedTokenError(AuthenticationError):
    """Raised when a token cannot be decoded into header and claims."""

    default_message = "Invalid token format"
    default_reason = "malformed"


class TokenVerificationError(AuthenticationError):
    """Raised when signature, issuer, audience, expiry or claims checks fail."""

    default_reason = "signature_invalid"


class KeyFetchError(AuthenticationError):
    """Raised when the signing key for a token cannot be obtained."""

    default_reason = "key_fetch_failed"


class SubjectNotFoundError(AuthenticationError):
    """Raised when a valid local token references a user that no longer exists."""

    default_reason = "subject_not_found"


class AuthorizationError(AuthError):
    """Raised when an authenticated user lacks permission to access a resource."""

    status_code = 403
    error = "Forbidden"
    default_message = "Access denied: insufficient privileges"
    default_reason = "insufficient_role"


class IdentityStoreError(AuthError):
    """Raised when a required user record cannot be loaded from the store."""

    default_reason = "store_unavailable"
