"""Self-issued (local) JWTs signed with the shared application secret."""

import logging
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError

from src.vahire.services.auth.exceptions import TokenVerificationError

logger = logging.getLogger(__name__)


class LocalTokenService:
    """
    Issues and verifies local tokens for email/password accounts.

    Tokens carry the user record's primary key as ``sub`` (and as ``userId``
    for clients that read the older claim name). They carry no role: the
    role always comes from the user record.

    Example:
        >>> tokens = LocalTokenService(settings.jwt_secret)
        >>> token = tokens.issue_token("665f1c2e9b1d8c0012ab34cd")
        >>> tokens.verify_token(token)
        '665f1c2e9b1d8c0012ab34cd'
    """

    def __init__(
        self,
        secret: str,
        expires_minutes: int = 60,
        algorithm: str = "HS256",
        leeway: int = 0,
    ):
        if not secret:
            raise ValueError("Local token secret must not be empty")
        self._secret = secret
        self.expires_minutes = expires_minutes
        self.algorithm = algorithm
        self.leeway = leeway

    def issue_token(self, user_id: str) -> str:
        """Sign a token for the given user record ID."""
        now = datetime.now(timezone.utc)
        claims = {
            "sub": user_id,
            "userId": user_id,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(minutes=self.expires_minutes)).timestamp()),
        }
        return jwt.encode(claims, self._secret, algorithm=self.algorithm)

    def verify_token(self, token: str) -> str:
        """
        Verify signature and expiry, and return the subject (user record ID).

        Raises:
            TokenVerificationError: If the signature is invalid, the token has
                expired, or no subject is present
        """
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"verify_aud": False, "require_exp": True, "leeway": self.leeway},
            )
        except ExpiredSignatureError as e:
            raise self._fail("expired", str(e)) from e
        except JWTError as e:
            raise self._fail("signature_invalid", str(e)) from e

        subject = claims.get("sub") or claims.get("userId")
        if not subject or not isinstance(subject, str):
            raise self._fail("claims_invalid", "Token does not identify a user")
        return subject

    def _fail(self, reason: str, detail: str) -> TokenVerificationError:
        logger.warning(
            f"Local JWT verification failed ({reason}): {detail}",
            extra={"error_type": "jwt_verification_failed", "reason": reason},
        )
        return TokenVerificationError(reason=reason, detail=detail)
