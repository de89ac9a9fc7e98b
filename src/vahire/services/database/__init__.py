"""Database connection and models."""

from src.vahire.services.database.connection import get_database, get_mongo_client
from src.vahire.services.database.exceptions import DataStoreError, DuplicateRecordError
from src.vahire.services.database.models import UserRecord, UserRole, UserStatus
from src.vahire.services.database.users import MongoUserStore, UserStore, get_user_store

__all__ = [
    "get_database",
    "get_mongo_client",
    "get_user_store",
    "MongoUserStore",
    "UserStore",
    "UserRecord",
    "UserRole",
    "UserStatus",
    "DataStoreError",
    "DuplicateRecordError",
]
