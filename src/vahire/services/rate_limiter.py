"""Rate limiting service for API endpoints."""

import logging

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from src.vahire.config import settings
from src.vahire.services.auth.models import Identity

logger = logging.getLogger(__name__)


def get_user_id_or_ip(request: Request) -> str:
    """
    Extract the authenticated user ID or fall back to IP address.

    This function is used as the key_func for rate limiting:
    - Authenticated requests: Rate limited per identity
    - Unauthenticated requests (login, register): Rate limited per IP address

    Args:
        request: FastAPI request object

    Returns:
        Identity key or IP address
    """
    identity: Identity | None = getattr(request.state, "identity", None)

    if identity and identity.id:
        return f"user:{identity.id}"

    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=get_user_id_or_ip,
    default_limits=[],
    storage_uri="memory://",
    enabled=settings.rate_limit_enabled,
)


class RateLimitTiers:
    """
    Rate limit tiers for different endpoint categories.

    Authenticated endpoints are keyed per identity; the auth tier is keyed
    per IP because callers are not authenticated yet.
    """

    # Standard authenticated endpoints (most GET operations)
    DEFAULT = ["100 per minute", "1000 per hour"]

    # State-changing operations (POST/PUT)
    WRITE = ["30 per minute", "200 per hour"]

    # Credential endpoints (login, register): brute-force protection
    AUTH = ["5 per minute", "20 per hour"]


# Note: These decorators require the endpoint to have a 'request: Request' parameter
default_rate_limit = limiter.limit(";".join(RateLimitTiers.DEFAULT))
write_rate_limit = limiter.limit(";".join(RateLimitTiers.WRITE))
auth_rate_limit = limiter.limit(";".join(RateLimitTiers.AUTH))
