"""JWKS (JSON Web Key Set) fetching and caching for Auth0 token verification."""

import asyncio
import logging
from datetime import datetime, timezone

import httpx
from jose import jwk
from jose.backends.base import Key
from jose.exceptions import JOSEError
from limits import RateLimitItemPerMinute
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter

from src.vahire.services.auth.exceptions import KeyFetchError

logger = logging.getLogger(__name__)


class JWKSCache:
    """
    Manages JWKS fetching and caching with automatic refresh.

    Keys are cached in-memory by key ID with a TTL. An unknown key ID
    triggers one refresh (key rotation). Upstream fetches are serialised by
    a lock and capped at ``requests_per_minute`` by a moving-window rate
    limiter, so a flood of tokens with made-up key IDs cannot hammer the
    provider's endpoint.

    Attributes:
        jwks_url: URL to fetch JWKS from (typically /.well-known/jwks.json)
        cache_ttl: Cache time-to-live in seconds (default: 3600 = 1 hour)
        requests_per_minute: Maximum upstream fetches per minute (default: 5)
        _keys: Cached JWKS keys dictionary (kid -> key)
        _last_refresh: Timestamp of last successful JWKS fetch
        _http_client: HTTP client for fetching JWKS

    Example:
        >>> cache = JWKSCache("https://tenant.auth0.com/.well-known/jwks.json")
        >>> await cache.refresh_keys()
        >>> signing_key = await cache.get_signing_key("key-id-123")
    """

    def __init__(
        self,
        jwks_url: str,
        cache_ttl: int = 3600,
        requests_per_minute: int = 5,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize JWKS cache.

        Args:
            jwks_url: URL to fetch JWKS from
            cache_ttl: Cache TTL in seconds (default: 1 hour)
            requests_per_minute: Maximum upstream fetches per minute (default: 5)
            http_client: Optional pre-configured HTTP client
        """
        self.jwks_url = jwks_url
        self.cache_ttl = cache_ttl
        self.requests_per_minute = requests_per_minute
        self._keys: dict[str, Key] = {}
        self._last_refresh: datetime | None = None
        self._refresh_lock = asyncio.Lock()
        self._rate_limit = RateLimitItemPerMinute(requests_per_minute)
        self._rate_limiter = MovingWindowRateLimiter(MemoryStorage())
        self._http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(10.0, read=30.0, connect=10.0, write=10.0)
        )

    @property
    def cached_key_ids(self) -> list[str]:
        return list(self._keys.keys())

    async def get_signing_key(self, kid: str) -> Key:
        """
        Get signing key by key ID (kid).

        Refreshes JWKS if the cache TTL has passed or the key ID is unknown.
        When a TTL refresh fails but keys are cached, the stale keys keep
        serving until a refresh succeeds.

        Args:
            kid: Key ID from JWT header

        Returns:
            Public key for signature verification

        Raises:
            KeyFetchError: If the key cannot be fetched or is not in the key set
        """
        refreshed = False
        if self._needs_refresh():
            async with self._refresh_lock:
                if self._needs_refresh():
                    try:
                        await self._fetch_keys()
                        refreshed = True
                    except KeyFetchError:
                        if not self._keys:
                            raise
                        logger.warning(
                            "JWKS refresh failed, serving stale keys",
                            extra={"error_type": "jwks_stale", "cached_kids": self.cached_key_ids},
                        )

        key = self._keys.get(kid)
        if key is not None:
            return key

        # Unknown key ID: refresh once (key rotation case), unless this call just fetched
        if not refreshed:
            logger.warning(
                f"Key ID '{kid}' not found in cache, refreshing JWKS",
                extra={"kid": kid, "cached_kids": self.cached_key_ids},
            )
            async with self._refresh_lock:
                # Another request may have refreshed while this one waited
                key = self._keys.get(kid)
                if key is None:
                    await self._fetch_keys()
                    key = self._keys.get(kid)

        if key is None:
            raise KeyFetchError(
                reason="unknown_kid",
                detail=f"Key ID '{kid}' not found in JWKS. Available keys: {self.cached_key_ids}",
            )
        return key

    async def refresh_keys(self) -> None:
        """
        Fetch JWKS from Auth0 and update cache.

        Raises:
            KeyFetchError: If the fetch is rate limited, fails, or returns an invalid key set

        Example:
            >>> await cache.refresh_keys()
            >>> # Cache now contains latest keys from Auth0
        """
        async with self._refresh_lock:
            await self._fetch_keys()

    async def _fetch_keys(self) -> None:
        """Fetch and parse the key set. Caller must hold ``_refresh_lock``."""
        if not self._rate_limiter.hit(self._rate_limit, "jwks", self.jwks_url):
            logger.warning(
                f"JWKS fetch rate limit reached ({self.requests_per_minute}/minute)",
                extra={"error_type": "jwks_rate_limited", "jwks_url": self.jwks_url},
            )
            raise KeyFetchError(reason="rate_limited", detail="JWKS fetch rate limit exceeded")

        try:
            logger.info(f"Fetching JWKS from {self.jwks_url}")
            response = await self._http_client.get(self.jwks_url)
            response.raise_for_status()
            payload = response.json()
            if not isinstance(payload, dict) or not isinstance(payload.get("keys", []), list):
                raise ValueError("expected an object with a 'keys' array")
            keys_list = payload.get("keys", [])
        except httpx.HTTPError as e:
            logger.error(
                f"Failed to fetch JWKS from {self.jwks_url}: {e}",
                extra={"error_type": "jwks_fetch_failed"},
            )
            raise KeyFetchError(reason="key_fetch_failed", detail=str(e)) from e
        except (ValueError, AttributeError) as e:
            logger.error(
                f"Failed to parse JWKS: {e}",
                extra={"error_type": "jwks_parse_failed"},
            )
            raise KeyFetchError(reason="key_fetch_failed", detail=f"Invalid JWKS: {e}") from e

        if not keys_list:
            logger.warning(
                "JWKS response contains no keys. Token verification will fail "
                "until keys are available.",
                extra={"jwks_url": self.jwks_url},
            )

        new_keys: dict[str, Key] = {}
        for key_data in keys_list:
            if not isinstance(key_data, dict):
                logger.warning(f"JWKS entry is not an object ({type(key_data).__name__}), skipping")
                continue

            kid = key_data.get("kid")
            if not kid:
                logger.warning("JWKS key missing 'kid', skipping")
                continue

            kty = key_data.get("kty")
            if kty == "EC":
                algorithm = "ES256"
            elif kty == "RSA":
                algorithm = "RS256"
            else:
                algorithm = key_data.get("alg", "RS256")

            try:
                new_keys[kid] = jwk.construct(key_data, algorithm=algorithm)
            except (JOSEError, AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning(
                    f"Skipping unusable JWKS key {kid}: {e}",
                    extra={"kid": kid, "kty": kty},
                )
                continue

            logger.debug(
                f"Loaded key {kid} (type: {kty}, algorithm: {algorithm})",
                extra={"kid": kid, "kty": kty, "alg": algorithm},
            )

        # Atomic update
        self._keys = new_keys
        self._last_refresh = datetime.now(timezone.utc)

        logger.info(
            "JWKS cache refreshed successfully",
            extra={
                "key_count": len(new_keys),
                "key_ids": list(new_keys.keys()),
                "ttl_seconds": self.cache_ttl,
            },
        )

    def _needs_refresh(self) -> bool:
        """
        Check if cache needs refresh based on TTL.

        Returns:
            True if cache is stale or never initialized
        """
        if self._last_refresh is None:
            return True

        age = (datetime.now(timezone.utc) - self._last_refresh).total_seconds()
        return age >= self.cache_ttl

    async def close(self) -> None:
        """
        Close HTTP client and cleanup resources.

        Should be called during application shutdown.
        """
        await self._http_client.aclose()
        logger.info("JWKS cache closed")
