"""Application configuration using Pydantic Settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # System Configuration
    api_v1_prefix: str = "/api"
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:5173"
    rate_limit_enabled: bool = True

    # Auth0 Configuration
    auth0_domain: str = "vahire.eu.auth0.com"
    auth0_audience: str = "https://api.vahire.com"
    auth0_client_id: str = ""
    auth0_client_secret: str = ""

    # JWT Verification Configuration
    jwks_cache_ttl_seconds: int = 3600  # 1 hour
    jwks_requests_per_minute: int = 5
    jwt_leeway_seconds: int = 10  # Clock skew tolerance

    # Local (self-issued) tokens
    jwt_secret: str = "change-me"
    jwt_expires_minutes: int = 60

    # MongoDB Configuration
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "vahire"
    mongodb_timeout_ms: int = 5000

    # PostHog Configuration
    posthog_api_key: str | None = None
    posthog_host: str = "https://app.posthog.com"

    @property
    def auth0_issuer(self) -> str:
        """Issuer claim Auth0 puts on every token it signs."""
        return f"https://{self.auth0_domain}/"

    @property
    def auth0_jwks_url(self) -> str:
        """Auth0 JWKS endpoint."""
        return f"https://{self.auth0_domain}/.well-known/jwks.json"

    @property
    def expose_error_details(self) -> bool:
        """Whether failure responses may carry the internal error detail."""
        return self.environment != "production"


settings = Settings()
