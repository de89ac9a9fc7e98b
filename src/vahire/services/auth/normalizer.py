"""Build the request identity from whichever verifier succeeded."""

from typing import Any

from src.vahire.services.auth.models import AuthSource, Identity
from src.vahire.services.database.models import UserRecord


def identity_from_external_claims(claims: dict[str, Any]) -> Identity:
    """
    Identity for a verified Auth0 token.

    The role is left unset: it lives on the user record, which is only
    loaded when a handler or role check needs it.
    """
    subject = str(claims["sub"])
    return Identity(
        id=subject,
        external_id=subject,
        email=claims.get("email") or None,
        auth_source=AuthSource.EXTERNAL,
        name=claims.get("name"),
        picture=claims.get("picture"),
        claims=claims,
    )


def identity_from_local_record(record: UserRecord) -> Identity:
    """
    Identity for a verified local token whose user record has been loaded.

    ``external_id`` mirrors the primary key so handlers written against the
    Auth0 subject convention work unchanged for local accounts.
    """
    name = " ".join(part for part in (record.firstname, record.lastname) if part) or None
    return Identity(
        id=record.id,
        external_id=record.id,
        email=record.email,
        role=record.role,
        auth_source=AuthSource.LOCAL,
        name=name,
        picture=record.profile_image,
        record=record,
    )
