"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.vahire.config import settings
from src.vahire.features.admin import router as admin_router
from src.vahire.features.auth import router as auth_router
from src.vahire.services.auth import (
    AuthError,
    AuthGate,
    ExternalTokenValidator,
    JWKSCache,
    LocalTokenService,
    set_auth_gate,
)
from src.vahire.services.database import DataStoreError, get_user_store
from src.vahire.services.database.connection import close_mongo_client
from src.vahire.services.rate_limiter import limiter

logging.basicConfig(
    level=logging.DEBUG if settings.debug else settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

# Global JWKS cache instance for cleanup
_jwks_cache: JWKSCache | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle (startup and shutdown)."""
    global _jwks_cache

    # Startup
    logger.info("Initializing hybrid authentication gate")
    _jwks_cache = JWKSCache(
        jwks_url=settings.auth0_jwks_url,
        cache_ttl=settings.jwks_cache_ttl_seconds,
        requests_per_minute=settings.jwks_requests_per_minute,
    )
    try:
        await _jwks_cache.refresh_keys()
    except AuthError as e:
        # Keys are fetched lazily on the first Auth0 request instead
        logger.warning(
            f"Initial JWKS fetch failed: {e.detail}",
            extra={"error_type": "jwks_prefetch_failed", "jwks_url": settings.auth0_jwks_url},
        )

    user_store = get_user_store()
    try:
        await user_store.ensure_indexes()
    except DataStoreError as e:
        logger.error(
            f"Could not ensure user indexes: {e}",
            extra={"error_type": "mongodb_index_failed"},
        )

    gate = AuthGate(
        external_validator=ExternalTokenValidator(
            key_resolver=_jwks_cache,
            issuer=settings.auth0_issuer,
            audience=settings.auth0_audience,
            leeway=settings.jwt_leeway_seconds,
        ),
        local_tokens=LocalTokenService(
            settings.jwt_secret, expires_minutes=settings.jwt_expires_minutes
        ),
        user_store=user_store,
        external_domain=settings.auth0_domain,
    )
    set_auth_gate(gate)
    logger.info(
        "Auth gate initialized successfully",
        extra={
            "jwks_url": settings.auth0_jwks_url,
            "issuer": settings.auth0_issuer,
            "cache_ttl": settings.jwks_cache_ttl_seconds,
        },
    )

    yield

    # Shutdown
    set_auth_gate(None)
    if _jwks_cache is not None:
        await _jwks_cache.close()
    close_mongo_client()
    logger.info("Auth gate cleanup completed")


app = FastAPI(
    title="VaHire API",
    description="API for the VaHire freelance and hiring marketplace",
    version="1.0.0",
    debug=settings.debug,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render auth failures as ``{error, message, details?}`` (details outside production only)."""
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response(include_details=settings.expose_error_details),
        headers=headers,
    )


origins = settings.cors_origins.split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(auth_router, prefix=settings.api_v1_prefix)
app.include_router(admin_router, prefix=settings.api_v1_prefix)


class HealthCheckResponse(BaseModel):
    """Health check response."""

    status: str


@app.get("/health", response_model=HealthCheckResponse)
async def health_check() -> HealthCheckResponse:
    """Health check endpoint."""
    return HealthCheckResponse(status="healthy")
