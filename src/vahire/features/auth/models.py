"""Pydantic models for the authentication endpoints."""

from pydantic import BaseModel, Field, field_validator

from src.vahire.services.database.models import UserRole, UserSummary

# Roles a user may pick at registration; admin is granted by administrators only
SELF_ASSIGNABLE_ROLES = {UserRole.USER, UserRole.PROFESSIONAL, UserRole.RECRUITER}


class RegisterRequest(BaseModel):
    """Local account registration."""

    email: str = Field(min_length=3, max_length=254)
    password: str = Field(min_length=6, max_length=72)
    password_confirm: str = Field(alias="passwordConfirm")
    firstname: str = Field(min_length=1, max_length=100)
    lastname: str = Field(min_length=1, max_length=100)
    role: UserRole = UserRole.USER
    title: str | None = None
    receive_emails: bool = Field(default=False, alias="receiveEmails")

    model_config = {"populate_by_name": True}

    @field_validator("email")
    @classmethod
    def email_must_look_valid(cls, value: str) -> str:
        if "@" not in value or value.startswith("@") or value.endswith("@"):
            raise ValueError("Invalid email address")
        return value.strip().lower()

    @field_validator("role")
    @classmethod
    def role_must_be_self_assignable(cls, value: UserRole) -> UserRole:
        if value not in SELF_ASSIGNABLE_ROLES:
            raise ValueError("Role must be one of: user, professional, recruiter")
        return value


class RegisterResponse(BaseModel):
    message: str
    user_id: str


class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    """Local login result: a self-issued token and the user's role."""

    token: str
    role: UserRole


class UserEnvelope(BaseModel):
    user: UserSummary


class CompleteProfileRequest(BaseModel):
    """Profile fields; omitted fields keep their current value."""

    title: str | None = None
    skills: list[str] | None = None
    experience: str | None = None
    portfolio: str | None = None
    bio: str | None = None
    receive_emails: bool | None = Field(default=None, alias="receiveEmails")

    model_config = {"populate_by_name": True}


class CompleteProfileResponse(BaseModel):
    message: str
    user: UserSummary


class Auth0ConfigResponse(BaseModel):
    """Public Auth0 configuration metadata for frontends and debugging."""

    domain: str
    audience: str
    client_id: str = Field(serialization_alias="clientId")
    issuer: str
    jwks_uri: str = Field(serialization_alias="jwksUri")
    algorithms: list[str]
    client_secret_configured: bool = Field(serialization_alias="clientSecretConfigured")
