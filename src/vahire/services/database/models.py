"""Pydantic models for database entities."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class UserRole(str, Enum):
    """Roles a user record can hold."""

    USER = "user"
    ADMIN = "admin"
    PROFESSIONAL = "professional"
    RECRUITER = "recruiter"


class UserStatus(str, Enum):
    """Account status managed by administrators."""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    BANNED = "banned"


class SocialProvider(BaseModel):
    """External identity binding (e.g. google, linkedin) linked to a user."""

    provider: str
    id: str
    profile: dict[str, Any] = Field(default_factory=dict)


class UserProfile(BaseModel):
    """Freelancer profile fields filled during profile completion."""

    title: str | None = None
    skills: list[str] = Field(default_factory=list)
    experience: str | None = None
    portfolio: str | None = None
    bio: str | None = None


class UserRecord(BaseModel):
    """
    Persistent user record.

    A record may be a pure external-identity account (``auth0_id`` set, no
    ``password_hash``), a local account (``password_hash`` set), or both.

    Attributes:
        id: Primary key (string form of the MongoDB ObjectId)
        auth0_id: External subject identifier, unique when present
        role: Role used for access decisions, independent of the login path
    """

    id: str
    email: str | None = None
    firstname: str | None = None
    lastname: str | None = None
    password_hash: str | None = None
    role: UserRole = UserRole.USER
    auth0_id: str | None = None
    social_providers: list[SocialProvider] = Field(default_factory=list)
    profile: UserProfile = Field(default_factory=UserProfile)
    profile_image: str | None = None
    is_profile_complete: bool = False
    receive_emails: bool = False
    status: UserStatus = UserStatus.ACTIVE
    ban_reason: str | None = None
    banned_at: datetime | None = None
    created_at: datetime | None = None
    last_login: datetime | None = None

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "UserRecord":
        """Build a record from a raw MongoDB document."""
        data = dict(document)
        data["id"] = str(data.pop("_id"))
        return cls.model_validate(data)


class UserSummary(BaseModel):
    """Public view of a user record (never includes the password hash)."""

    id: str
    email: str | None = None
    firstname: str | None = None
    lastname: str | None = None
    role: UserRole
    profile_image: str | None = None
    profile: UserProfile | None = None
    social_providers: list[str] = Field(default_factory=list)
    is_profile_complete: bool = False
    status: UserStatus = UserStatus.ACTIVE

    @classmethod
    def from_record(cls, record: UserRecord) -> "UserSummary":
        return cls(
            id=record.id,
            email=record.email,
            firstname=record.firstname,
            lastname=record.lastname,
            role=record.role,
            profile_image=record.profile_image,
            profile=record.profile,
            social_providers=[p.provider for p in record.social_providers],
            is_profile_complete=record.is_profile_complete,
            status=record.status,
        )
