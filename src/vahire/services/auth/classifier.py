"""Pre-verification classification of bearer tokens."""

import logging

from jose import jwt
from jose.exceptions import JOSEError

from src.vahire.services.auth.exceptions import MalformedTokenError
from src.vahire.services.auth.models import TokenEnvelope, TokenKind

logger = logging.getLogger(__name__)


def classify_token(
    token: str, external_domain: str, external_algorithm: str = "RS256"
) -> TokenEnvelope:
    """
    Decode a token without verifying it and decide which verifier handles it.

    A token is routed to the external (Auth0) verifier when its header
    declares the provider's asymmetric algorithm and its ``iss`` claim
    contains the provider domain. Anything else that decodes is treated as
    a local token; the verifier, not this function, makes the trust decision.

    Args:
        token: Raw JWT string (without "Bearer " prefix)
        external_domain: Auth0 tenant domain, e.g. "vahire.eu.auth0.com"
        external_algorithm: Algorithm Auth0 signs with

    Returns:
        TokenEnvelope with the unverified header, claims and kind

    Raises:
        MalformedTokenError: If the token is not a decodable JWT

    Example:
        >>> envelope = classify_token(token, "vahire.eu.auth0.com")
        >>> envelope.kind
        <TokenKind.EXTERNAL: 'external'>
    """
    try:
        header = jwt.get_unverified_header(token)
        claims = jwt.get_unverified_claims(token)
    except (JOSEError, ValueError, TypeError, AttributeError) as e:
        logger.warning(
            f"Token could not be decoded: {e}",
            extra={"error_type": "malformed_token"},
        )
        raise MalformedTokenError(reason="malformed", detail=str(e)) from e

    if not isinstance(header, dict) or not isinstance(claims, dict):
        raise MalformedTokenError(reason="malformed", detail="Token header or payload is not an object")

    issuer = claims.get("iss")
    is_external = (
        header.get("alg") == external_algorithm
        and isinstance(issuer, str)
        and bool(external_domain)
        and external_domain in issuer
    )
    kind = TokenKind.EXTERNAL if is_external else TokenKind.LOCAL

    logger.debug(
        f"Token classified as {kind.value}",
        extra={"token_kind": kind.value, "alg": header.get("alg"), "kid": header.get("kid")},
    )
    return TokenEnvelope(kind=kind, header=header, claims=claims)
