"""Just-in-time user provisioning for Auth0 identities."""

import logging
from datetime import datetime, timezone
from typing import Any

from src.vahire.services.analytics.posthog import PostHogService
from src.vahire.services.auth.models import AuthSource
from src.vahire.services.database.exceptions import DataStoreError, DuplicateRecordError
from src.vahire.services.database.models import SocialProvider, UserRecord, UserRole
from src.vahire.services.database.users import UserStore

logger = logging.getLogger(__name__)

# Auth0 connection prefixes that map to a friendlier provider name
PROVIDER_ALIASES = {
    "google-oauth2": "google",
    "windowslive": "microsoft",
    "linkedin": "linkedin",
    "github": "github",
}


def parse_provider(subject: str) -> tuple[str, str] | None:
    """
    Split an Auth0 subject into (provider, provider user ID).

    Database connections ("auth0|...") are not social bindings and give None.

    Example:
        >>> parse_provider("google-oauth2|1234567890")
        ('google', '1234567890')
        >>> parse_provider("auth0|abc") is None
        True
    """
    provider, separator, provider_user_id = subject.partition("|")
    if not separator or not provider or provider == "auth0":
        return None
    return PROVIDER_ALIASES.get(provider, provider), provider_user_id


def _profile_snippet(claims: dict[str, Any]) -> dict[str, Any]:
    return {
        key: claims[key] for key in ("name", "picture", "email") if claims.get(key) is not None
    }


def _merge_binding(
    providers: list[SocialProvider], claims: dict[str, Any], refresh_profile: bool = False
) -> list[SocialProvider] | None:
    """Return the provider list with this login's binding added, or None if unchanged."""
    binding = parse_provider(claims["sub"])
    if binding is None:
        return None

    provider, provider_user_id = binding
    snippet = _profile_snippet(claims)
    merged = [p.model_copy() for p in providers]
    for existing in merged:
        if existing.provider == provider and existing.id == provider_user_id:
            if not refresh_profile or existing.profile == snippet:
                return None
            existing.profile = snippet
            return merged

    merged.append(SocialProvider(provider=provider, id=provider_user_id, profile=snippet))
    return merged


def _new_user_fields(claims: dict[str, Any]) -> dict[str, Any]:
    name_parts = (claims.get("name") or "").split()
    binding = parse_provider(claims["sub"])
    providers = []
    if binding is not None:
        providers.append(
            SocialProvider(provider=binding[0], id=binding[1], profile=_profile_snippet(claims))
        )
    return {
        "email": claims.get("email"),
        "firstname": claims.get("given_name") or (name_parts[0] if name_parts else "User"),
        "lastname": claims.get("family_name") or " ".join(name_parts[1:]),
        "auth0_id": claims["sub"],
        "profile_image": claims.get("picture"),
        "social_providers": providers,
        "role": UserRole.USER,
        "is_profile_complete": False,
    }


async def _link_external_identity(
    store: UserStore, record: UserRecord, claims: dict[str, Any]
) -> UserRecord:
    """Bind an Auth0 identity to a record that was found by email."""
    subject = claims["sub"]
    patch: dict[str, Any] = {}
    if not record.auth0_id:
        patch["auth0_id"] = subject
    providers = _merge_binding(record.social_providers, claims)
    if providers is not None:
        patch["social_providers"] = providers
    if not patch:
        return record

    try:
        updated = await store.update_user(record.id, patch)
    except DuplicateRecordError:
        # The subject got bound to a record concurrently
        existing = await store.find_by_external_subject(subject)
        if existing is None:
            raise
        return existing

    logger.info(
        f"Linked Auth0 identity {subject} to existing user {record.id}",
        extra={"user_id": record.id, "auth0_id": subject},
    )
    return updated or record


async def provision_external_user(store: UserStore, claims: dict[str, Any]) -> UserRecord:
    """
    Find or create the user record for a verified Auth0 identity.

    Lookup order: by Auth0 subject, then by email (linking the identity to a
    pre-existing local account), then create. Safe to call concurrently for
    the same identity: the unique ``auth0_id`` index makes all but one
    insert fail, and the losers return the winner's record.

    Args:
        store: User record store
        claims: Verified Auth0 claims (must contain ``sub``)

    Returns:
        The user record bound to ``claims["sub"]``

    Raises:
        DataStoreError: If the store is unavailable
    """
    subject = claims["sub"]
    email = claims.get("email")

    record = await store.find_by_external_subject(subject)
    if record is not None:
        return record

    if email:
        record = await store.find_by_email(email)
        if record is not None:
            return await _link_external_identity(store, record, claims)

    try:
        record = await store.create_user(_new_user_fields(claims))
    except DuplicateRecordError:
        logger.info(
            f"Concurrent provisioning detected for {subject}, re-reading",
            extra={"auth0_id": subject},
        )
        record = await store.find_by_external_subject(subject)
        if record is None and email:
            record = await store.find_by_email(email)
            if record is not None:
                return await _link_external_identity(store, record, claims)
        if record is None:
            raise DataStoreError(f"User for {subject} neither insertable nor readable")
        return record

    logger.info(
        f"Provisioned user {record.id} for Auth0 identity {subject}",
        extra={"user_id": record.id, "auth0_id": subject},
    )
    PostHogService(auth_source=AuthSource.EXTERNAL.value).capture(
        distinct_id=subject,
        event="user_provisioned",
        properties={"user_id": record.id, "provider": (parse_provider(subject) or ("auth0",))[0]},
    )
    return record


async def sync_external_login(store: UserStore, claims: dict[str, Any]) -> UserRecord:
    """
    Provision and enrich the user record on an explicit Auth0 login.

    Refreshes the provider binding's cached profile, fills missing names
    and profile image from the claims, and stamps ``last_login``.
    """
    record = await provision_external_user(store, claims)

    patch: dict[str, Any] = {"last_login": datetime.now(timezone.utc)}
    providers = _merge_binding(record.social_providers, claims, refresh_profile=True)
    if providers is not None:
        patch["social_providers"] = providers
    if not record.firstname and claims.get("given_name"):
        patch["firstname"] = claims["given_name"]
    if not record.lastname and claims.get("family_name"):
        patch["lastname"] = claims["family_name"]
    if not record.profile_image and claims.get("picture"):
        patch["profile_image"] = claims["picture"]

    updated = await store.update_user(record.id, patch)
    return updated or record
