"""MongoDB connection management."""

from functools import lru_cache

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from src.vahire.config import settings


@lru_cache(maxsize=1)
def get_mongo_client() -> AsyncIOMotorClient:
    """
    Get MongoDB client instance (singleton pattern).

    Returns:
        Configured motor client; connections are opened lazily on first use

    Example:
        >>> client = get_mongo_client()
        >>> await client.admin.command("ping")
    """
    return AsyncIOMotorClient(
        settings.mongodb_uri,
        serverSelectionTimeoutMS=settings.mongodb_timeout_ms,
        tz_aware=True,
    )


def get_database() -> AsyncIOMotorDatabase:
    """Get the application database."""
    return get_mongo_client()[settings.mongodb_database]


def close_mongo_client() -> None:
    """Close the cached client and forget it. Called on application shutdown."""
    if get_mongo_client.cache_info().currsize:
        get_mongo_client().close()
        get_mongo_client.cache_clear()
