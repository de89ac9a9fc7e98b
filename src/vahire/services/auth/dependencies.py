"""FastAPI dependencies for hybrid (Auth0 + local) authentication."""

import logging
from datetime import datetime, timezone

from fastapi import Depends, Request
from fastapi.security import APIKeyQuery, HTTPAuthorizationCredentials, HTTPBearer

from src.vahire.services import PostHogService
from src.vahire.services.auth.exceptions import AuthError, MissingTokenError
from src.vahire.services.auth.gate import AuthGate
from src.vahire.services.auth.models import Identity
from src.vahire.services.database.models import UserRecord, UserRole

# auto_error=False: a missing token is reported through AuthError, not FastAPI's 403
bearer_scheme = HTTPBearer(auto_error=False)
token_query = APIKeyQuery(name="token", auto_error=False)
logger = logging.getLogger(__name__)

# Global auth gate instance (initialized in main.py startup)
_auth_gate: AuthGate | None = None


def set_auth_gate(gate: AuthGate | None) -> None:
    """
    Set the global auth gate instance.

    Called during application startup to initialize the gate.

    Args:
        gate: AuthGate instance (None to reset)
    """
    global _auth_gate
    _auth_gate = gate


def get_auth_gate() -> AuthGate:
    """
    Get the global auth gate instance.

    Raises:
        RuntimeError: If the gate has not been initialized
    """
    if _auth_gate is None:
        raise RuntimeError(
            "Auth gate not initialized. Ensure application startup calls set_auth_gate()."
        )
    return _auth_gate


def extract_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    query_token: str | None = Depends(token_query),
) -> str | None:
    """
    Bearer token from the Authorization header, else the ``token`` query parameter.

    The query parameter fallback serves clients that cannot set headers
    (documentation viewers, download links).
    """
    if credentials is not None and credentials.credentials.strip():
        return credentials.credentials.strip()
    return query_token or None


def _record_failure(error: AuthError, distinct_id: str = "anonymous") -> None:
    logger.warning(
        f"Auth failed ({error.reason}): {error.detail or error.message}",
        extra={"error_type": error.reason, "status_code": error.status_code},
    )
    PostHogService().capture(
        distinct_id=distinct_id,
        event="authentication_failed",
        properties={"error": error.reason, "status_code": error.status_code},
    )


async def get_current_identity(
    request: Request,
    token: str | None = Depends(extract_token),
    gate: AuthGate = Depends(get_auth_gate),
) -> Identity:
    """
    Authenticate the request with either an Auth0 or a local token.

    Args:
        request: Incoming request
        token: Bearer token from header or query
        gate: Auth gate

    Returns:
        Verified identity, also stored on ``request.state.identity``

    Raises:
        AuthError: 401 for any credential problem, 500 if the user store
            fails while resolving a local token

    Example:
        @router.get("/me")
        async def me(identity: Identity = Depends(get_current_identity)):
            return {"id": identity.id, "source": identity.auth_source}
    """
    if not token:
        error = MissingTokenError()
        _record_failure(error)
        raise error

    try:
        identity = await gate.authenticate(token)
    except AuthError as e:
        _record_failure(e)
        raise
    except Exception as e:
        logger.error(f"Authentication processing failed: {e}", exc_info=True)
        raise AuthError(detail=str(e)) from e

    request.state.identity = identity
    logger.info(f"User authenticated: {identity.id} ({identity.auth_source.value})")
    PostHogService(auth_source=identity.auth_source.value).capture(
        distinct_id=identity.id,
        event="user_authenticated",
        properties={"timestamp": datetime.now(timezone.utc).isoformat()},
    )
    return identity


async def get_identity_with_record(
    request: Request,
    identity: Identity = Depends(get_current_identity),
    gate: AuthGate = Depends(get_auth_gate),
) -> Identity:
    """Authenticate and attach the full user record when it can be loaded (best-effort)."""
    identity = await gate.load_record_best_effort(identity)
    request.state.identity = identity
    return identity


async def get_current_user_record(
    identity: Identity = Depends(get_current_identity),
    gate: AuthGate = Depends(get_auth_gate),
) -> UserRecord:
    """Authenticate and load the user record; fails (401/500) if it cannot be loaded."""
    try:
        return await gate.load_record(identity)
    except AuthError as e:
        _record_failure(e, identity.id)
        raise


def require_roles(*roles: UserRole):
    """
    Build a dependency that requires the current user to hold one of ``roles``.

    Identity resolution always runs first; a denied role yields 403, never 401.

    Example:
        @router.get("/pipeline", dependencies=[Depends(require_roles(UserRole.RECRUITER))])
        async def pipeline(): ...
    """

    async def dependency(
        request: Request,
        identity: Identity = Depends(get_current_identity),
        gate: AuthGate = Depends(get_auth_gate),
    ) -> Identity:
        try:
            identity = await gate.authorize(identity, roles)
        except AuthError as e:
            _record_failure(e, identity.id)
            raise
        request.state.identity = identity
        return identity

    return dependency


require_admin = require_roles(UserRole.ADMIN)
