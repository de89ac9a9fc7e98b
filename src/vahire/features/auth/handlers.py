"""API handlers for registration, login and Auth0 account endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, status

from src.vahire.config import settings
from src.vahire.features.auth.models import (
    Auth0ConfigResponse,
    CompleteProfileRequest,
    CompleteProfileResponse,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
    UserEnvelope,
)
from src.vahire.services.auth.dependencies import (
    get_auth_gate,
    get_current_identity,
    get_current_user_record,
)
from src.vahire.services.auth.gate import AuthGate
from src.vahire.services.auth.models import Identity
from src.vahire.services.auth.passwords import hash_password, verify_password
from src.vahire.services.auth.provisioning import sync_external_login
from src.vahire.services.database.exceptions import DataStoreError, DuplicateRecordError
from src.vahire.services.database.models import UserRecord, UserStatus, UserSummary
from src.vahire.services.rate_limiter import auth_rate_limit, default_rate_limit, write_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
@auth_rate_limit
async def register(
    request: Request,
    body: RegisterRequest,
    gate: AuthGate = Depends(get_auth_gate),
) -> RegisterResponse:
    """
    Register a local (email/password) account.

    Raises:
        HTTPException: 400 if passwords differ or the email is taken
        HTTPException: 500 if the user store fails
    """
    if body.password != body.password_confirm:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Passwords do not match")

    try:
        if await gate.user_store.find_by_email(body.email) is not None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already exists")

        record = await gate.user_store.create_user(
            {
                "email": body.email,
                "firstname": body.firstname,
                "lastname": body.lastname,
                "password_hash": hash_password(body.password),
                "role": body.role,
                "profile": {"title": body.title},
                "receive_emails": body.receive_emails,
            }
        )
    except HTTPException:
        raise
    except DuplicateRecordError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already exists")
    except DataStoreError as e:
        logger.error(f"Registration failed for {body.email}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Registration failed. Please try again.",
        ) from e

    logger.info(f"Registered local user {record.id}", extra={"user_id": record.id})
    return RegisterResponse(message="User registered successfully", user_id=record.id)


@router.post("/login", response_model=LoginResponse)
@auth_rate_limit
async def login(
    request: Request,
    body: LoginRequest,
    gate: AuthGate = Depends(get_auth_gate),
) -> LoginResponse:
    """
    Log in with email and password and receive a local token.

    Raises:
        HTTPException: 400 on unknown email or wrong password (same message for both)
        HTTPException: 403 if the account is banned or suspended
    """
    try:
        record = await gate.user_store.find_by_email(body.email)
        if record is None or not verify_password(body.password, record.password_hash):
            logger.warning("Local login failed: invalid credentials")
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid credentials")

        if record.status != UserStatus.ACTIVE:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Account {record.status.value}",
            )

        token = gate.local_tokens.issue_token(record.id)
        await gate.user_store.update_user(record.id, {"last_login": datetime.now(timezone.utc)})
    except HTTPException:
        raise
    except DataStoreError as e:
        logger.error(f"Login failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Login failed. Please try again.",
        ) from e

    logger.info(f"Local login for user {record.id}", extra={"user_id": record.id})
    return LoginResponse(token=token, role=record.role)


@router.get("/auth0-callback", response_model=UserEnvelope)
@write_rate_limit
async def auth0_callback(
    request: Request,
    identity: Identity = Depends(get_current_identity),
    gate: AuthGate = Depends(get_auth_gate),
) -> UserEnvelope:
    """
    Create or update the user record after an Auth0 login (Google, LinkedIn, ...).

    Links the Auth0 identity to an existing account with the same email when
    there is one; otherwise provisions a new account with an incomplete profile.
    """
    if not identity.is_external:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Auth0 token required")

    try:
        record = await sync_external_login(gate.user_store, identity.claims)
    except DataStoreError as e:
        logger.error(f"Auth0 login sync failed for {identity.id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process Auth0 login. Please try again.",
        ) from e

    return UserEnvelope(user=UserSummary.from_record(record))


@router.post("/complete-profile", response_model=CompleteProfileResponse)
@write_rate_limit
async def complete_profile(
    request: Request,
    body: CompleteProfileRequest,
    record: UserRecord = Depends(get_current_user_record),
    gate: AuthGate = Depends(get_auth_gate),
) -> CompleteProfileResponse:
    """Fill in the freelancer profile and mark it complete."""
    updates = body.model_dump(exclude_none=True, exclude={"receive_emails"})
    profile = record.profile.model_copy(update=updates)

    patch = {"profile": profile, "is_profile_complete": True}
    if body.receive_emails is not None:
        patch["receive_emails"] = body.receive_emails

    try:
        updated = await gate.user_store.update_user(record.id, patch)
    except DataStoreError as e:
        logger.error(f"Error completing profile for user {record.id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update profile. Please try again.",
        ) from e

    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    return CompleteProfileResponse(
        message="Profile completed successfully", user=UserSummary.from_record(updated)
    )


@router.get("/profile", response_model=UserEnvelope)
@default_rate_limit
async def get_profile(
    request: Request,
    record: UserRecord = Depends(get_current_user_record),
) -> UserEnvelope:
    """Get the current user's profile, whichever token type authenticated the request."""
    return UserEnvelope(user=UserSummary.from_record(record))


@router.get("/auth0-config", response_model=Auth0ConfigResponse)
async def get_auth0_config() -> Auth0ConfigResponse:
    """Public Auth0 configuration metadata."""
    return Auth0ConfigResponse(
        domain=settings.auth0_domain,
        audience=settings.auth0_audience,
        client_id=settings.auth0_client_id,
        issuer=settings.auth0_issuer,
        jwks_uri=settings.auth0_jwks_url,
        algorithms=["RS256"],
        client_secret_configured=bool(settings.auth0_client_secret),
    )
