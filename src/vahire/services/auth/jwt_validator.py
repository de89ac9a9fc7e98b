"""Auth0 JWT verification using JWKS for signature validation."""

import logging
from typing import Any, Protocol

from jose import JWTError, jwt
from jose.backends.base import Key
from jose.exceptions import ExpiredSignatureError, JOSEError, JWTClaimsError

from src.vahire.services.auth.exceptions import KeyFetchError, TokenVerificationError

logger = logging.getLogger(__name__)

# Claims copied into the identity and the user record; each must be a string when present
PROFILE_CLAIMS = ("sub", "email", "name", "given_name", "family_name", "picture")


class SigningKeyResolver(Protocol):
    """Anything that can look up a public key by key ID (JWKSCache, test fakes)."""

    async def get_signing_key(self, kid: str) -> Key: ...


def _reason_for(error: JWTError) -> str:
    """Map a python-jose error onto an internal failure reason for logging."""
    if isinstance(error, ExpiredSignatureError):
        return "expired"
    message = str(error).lower()
    if isinstance(error, JWTClaimsError):
        if "issuer" in message:
            return "issuer_mismatch"
        if "audience" in message:
            return "audience_mismatch"
        return "claims_invalid"
    if "audience" in message:
        return "audience_mismatch"
    if "missing required key" in message:
        return "claims_invalid"
    return "signature_invalid"


class ExternalTokenValidator:
    """
    Verifies Auth0-issued JWTs locally without network calls per request.

    Uses cached JWKS to verify JWT signatures cryptographically. Validates
    signature, expiration, issuer, and audience claims. Only the configured
    asymmetric algorithm is accepted; the ``alg`` header of the token is
    never trusted beyond matching that allow-list.

    Attributes:
        key_resolver: Source of signing keys (normally a JWKSCache)
        issuer: Expected issuer (iss claim), e.g. "https://tenant.auth0.com/"
        audience: Expected audience (aud claim), the Auth0 API identifier
        algorithm: The one accepted signing algorithm (default: RS256)
        leeway: Clock skew tolerance in seconds (default: 10)

    Example:
        >>> validator = ExternalTokenValidator(jwks_cache, "https://tenant.auth0.com/", "https://api")
        >>> claims = await validator.verify_token(jwt_token)
        >>> user_id = claims["sub"]
    """

    def __init__(
        self,
        key_resolver: SigningKeyResolver,
        issuer: str,
        audience: str,
        algorithm: str = "RS256",
        leeway: int = 10,
    ):
        self.key_resolver = key_resolver
        self.issuer = issuer
        self.audience = audience
        self.algorithm = algorithm
        self.leeway = leeway

    async def verify_token(self, token: str) -> dict[str, Any]:
        """
        Verify an Auth0 JWT and return its claims.

        Performs the following validations:
        1. Header algorithm matches the allow-listed algorithm
        2. Header carries a key ID (kid) and the key can be fetched
        3. Signature is valid for that key
        4. Expiration (exp, required), issuer (iss) and audience (aud)
        5. Subject (sub) is present and profile claims are strings

        Args:
            token: JWT token string (without "Bearer " prefix)

        Returns:
            Dictionary of verified claims (sub, email, name, picture, exp, ...)

        Raises:
            TokenVerificationError: On any failure; ``reason`` tells which check failed
        """
        try:
            unverified_header = jwt.get_unverified_header(token)
        except JOSEError as e:
            raise self._fail("malformed", str(e)) from e

        alg = unverified_header.get("alg")
        if alg != self.algorithm:
            raise self._fail("algorithm_not_allowed", f"Token algorithm {alg!r} is not allowed")

        kid = unverified_header.get("kid")
        if not kid:
            raise self._fail("claims_invalid", "JWT header missing 'kid' (key ID)")

        try:
            signing_key = await self.key_resolver.get_signing_key(kid)
        except KeyFetchError as e:
            raise self._fail("key_fetch_failed", e.detail or e.reason) from e
        except Exception as e:
            logger.error(
                f"Unexpected error fetching signing key {kid}: {e}",
                exc_info=True,
                extra={"error_type": "jwks_resolver_error", "kid": kid},
            )
            raise self._fail("key_fetch_failed", str(e)) from e

        try:
            claims = jwt.decode(
                token,
                signing_key,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                options={
                    "verify_signature": True,
                    "verify_exp": True,
                    "verify_nbf": True,
                    "verify_iat": True,
                    "verify_aud": True,
                    "verify_iss": True,
                    "require_exp": True,
                    "leeway": self.leeway,
                },
            )
        except JWTError as e:
            raise self._fail(_reason_for(e), str(e)) from e
        except JOSEError as e:
            raise self._fail("signature_invalid", str(e)) from e

        if not claims.get("sub"):
            raise self._fail("claims_invalid", "Token is missing the 'sub' claim")

        for name in PROFILE_CLAIMS:
            value = claims.get(name)
            if value is not None and not isinstance(value, str):
                raise self._fail(
                    "claims_invalid", f"Claim '{name}' must be a string, got {type(value).__name__}"
                )

        logger.debug(
            "Auth0 JWT verified successfully",
            extra={"user_id": claims.get("sub"), "kid": kid, "exp": claims.get("exp")},
        )
        return claims

    def _fail(self, reason: str, detail: str) -> TokenVerificationError:
        logger.warning(
            f"Auth0 JWT verification failed ({reason}): {detail}",
            extra={"error_type": "jwt_verification_failed", "reason": reason},
        )
        return TokenVerificationError(reason=reason, detail=detail)
