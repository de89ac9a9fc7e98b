"""Hybrid authentication gate: one entry point for Auth0 and local tokens."""

import logging
from collections.abc import Iterable

from src.vahire.services.auth.classifier import classify_token
from src.vahire.services.auth.exceptions import (
    AuthorizationError,
    IdentityStoreError,
    SubjectNotFoundError,
)
from src.vahire.services.auth.jwt_validator import ExternalTokenValidator
from src.vahire.services.auth.local_tokens import LocalTokenService
from src.vahire.services.auth.models import AuthSource, Identity, TokenKind
from src.vahire.services.auth.normalizer import (
    identity_from_external_claims,
    identity_from_local_record,
)
from src.vahire.services.auth.provisioning import provision_external_user
from src.vahire.services.database.exceptions import DataStoreError
from src.vahire.services.database.models import UserRecord, UserRole
from src.vahire.services.database.users import UserStore

logger = logging.getLogger(__name__)

ADMIN_DENIED_MESSAGE = "Access denied: Administrator privileges required"


class AuthGate:
    """
    Resolves a bearer token into an ``Identity`` and enforces roles.

    Order per request is fixed: classify, verify, normalize, then
    optionally load the user record and compare roles. Role checks always
    run on a verified identity, so a 403 implies authentication succeeded.

    Attributes:
        external_validator: Verifier for Auth0 (RS256) tokens
        local_tokens: Verifier for self-issued (HS256) tokens
        user_store: User record store
        external_domain: Auth0 domain used to classify tokens

    Example:
        >>> gate = AuthGate(validator, LocalTokenService(secret), store, "tenant.auth0.com")
        >>> identity = await gate.authenticate(token)
        >>> identity = await gate.authorize(identity, [UserRole.ADMIN])
    """

    def __init__(
        self,
        external_validator: ExternalTokenValidator,
        local_tokens: LocalTokenService,
        user_store: UserStore,
        external_domain: str,
    ):
        self.external_validator = external_validator
        self.local_tokens = local_tokens
        self.user_store = user_store
        self.external_domain = external_domain

    async def authenticate(self, token: str) -> Identity:
        """
        Verify a token and return the normalized identity.

        Args:
            token: Raw bearer token

        Returns:
            Identity; for local tokens the user record is already attached

        Raises:
            MalformedTokenError: If the token cannot be decoded
            TokenVerificationError: If the matching verifier rejects it
            SubjectNotFoundError: If a local token's user no longer exists
            IdentityStoreError: If the user store fails on the local path
        """
        envelope = classify_token(
            token, self.external_domain, external_algorithm=self.external_validator.algorithm
        )

        if envelope.kind == TokenKind.EXTERNAL:
            claims = await self.external_validator.verify_token(token)
            return identity_from_external_claims(claims)

        user_id = self.local_tokens.verify_token(token)
        try:
            record = await self.user_store.find_by_id(user_id)
        except DataStoreError as e:
            logger.error(
                f"User lookup failed for local token subject {user_id}: {e}",
                extra={"error_type": "user_store_unavailable", "user_id": user_id},
            )
            raise IdentityStoreError(detail=str(e)) from e

        if record is None:
            logger.warning(
                f"Local token references missing user {user_id}",
                extra={"error_type": "subject_not_found", "user_id": user_id},
            )
            raise SubjectNotFoundError(detail=f"User {user_id} not found")

        return identity_from_local_record(record)

    async def load_record(self, identity: Identity) -> UserRecord:
        """
        Load (or for first Auth0 logins, provision) the identity's user record.

        Raises:
            SubjectNotFoundError: If a local identity's record has disappeared
            IdentityStoreError: If the store is unavailable
        """
        if identity.record is not None:
            return identity.record

        try:
            if identity.auth_source == AuthSource.EXTERNAL:
                record = await self.user_store.find_by_external_subject(identity.external_id)
                if record is None:
                    claims = identity.claims or {"sub": identity.external_id, "email": identity.email}
                    record = await provision_external_user(self.user_store, claims)
            else:
                record = await self.user_store.find_by_id(identity.id)
        except DataStoreError as e:
            logger.error(
                f"Failed to load user record for {identity.id}: {e}",
                extra={"error_type": "user_store_unavailable", "auth_source": identity.auth_source.value},
            )
            raise IdentityStoreError(detail=str(e)) from e

        if record is None:
            raise SubjectNotFoundError(detail=f"User {identity.id} not found")
        return record

    async def load_record_best_effort(self, identity: Identity) -> Identity:
        """Attach the user record if it can be loaded; otherwise return the identity as is."""
        if identity.record is not None:
            return identity
        try:
            record = await self.load_record(identity)
        except IdentityStoreError as e:
            logger.warning(
                f"Proceeding without user record for {identity.id}: {e.detail}",
                extra={"error_type": "user_record_unavailable"},
            )
            return identity
        return identity.with_record(record)

    async def authorize(self, identity: Identity, roles: Iterable[UserRole]) -> Identity:
        """
        Require the identity's user record to hold one of ``roles``.

        Returns:
            The identity with its record and role populated

        Raises:
            AuthorizationError: If the role is not allowed (403)
            IdentityStoreError: If the record cannot be loaded (500)
        """
        allowed = set(roles)
        if identity.record is None:
            identity = identity.with_record(await self.load_record(identity))

        if identity.role not in allowed:
            logger.warning(
                f"Access denied for {identity.id}: role {identity.role} not in {sorted(r.value for r in allowed)}",
                extra={"error_type": "insufficient_role", "user_id": identity.id},
            )
            message = ADMIN_DENIED_MESSAGE if allowed == {UserRole.ADMIN} else None
            raise AuthorizationError(message)

        return identity
