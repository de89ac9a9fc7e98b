"""User record store backed by a MongoDB collection."""

import functools
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from src.vahire.services.database.connection import get_database
from src.vahire.services.database.exceptions import DataStoreError, DuplicateRecordError
from src.vahire.services.database.models import UserRecord, UserRole, UserStatus

logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"


class UserStore(Protocol):
    """Operations the auth layer needs from the user record store."""

    async def find_by_external_subject(self, external_id: str) -> UserRecord | None: ...

    async def find_by_id(self, user_id: str) -> UserRecord | None: ...

    async def find_by_email(self, email: str) -> UserRecord | None: ...

    async def create_user(self, fields: dict[str, Any]) -> UserRecord: ...

    async def update_user(self, user_id: str, patch: dict[str, Any]) -> UserRecord | None: ...

    async def list_users(self, limit: int = 50, offset: int = 0) -> list[UserRecord]: ...


def normalize_email(email: str | None) -> str | None:
    """Lower-case and strip an email address; empty values become None."""
    if not email:
        return None
    return email.strip().lower() or None


def _to_mongo(value: Any) -> Any:
    """Convert enums and pydantic models into BSON-encodable values."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, BaseModel):
        return _to_mongo(value.model_dump())
    if isinstance(value, dict):
        return {k: _to_mongo(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_mongo(v) for v in value]
    return value


def _translate_errors(func):
    """Map pymongo failures onto the store's exception types."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except DuplicateKeyError as e:
            raise DuplicateRecordError(str(e)) from e
        except PyMongoError as e:
            logger.error(
                f"MongoDB operation {func.__name__} failed: {e}",
                extra={"error_type": "mongodb_operation_failed", "operation": func.__name__},
            )
            raise DataStoreError(f"{func.__name__} failed: {e}") from e

    return wrapper


class MongoUserStore:
    """
    User record store on top of a motor collection.

    Uniqueness of ``email`` and ``auth0_id`` is enforced by indexes (see
    ``ensure_indexes``); concurrent inserts of the same identity surface as
    ``DuplicateRecordError`` so callers can re-read the winning record.

    Example:
        >>> store = MongoUserStore(get_database()["users"])
        >>> await store.ensure_indexes()
        >>> user = await store.find_by_email("jane@example.com")
    """

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    @_translate_errors
    async def ensure_indexes(self) -> None:
        """Create the unique indexes the auth layer relies on."""
        await self.collection.create_index(
            [("email", ASCENDING)],
            unique=True,
            partialFilterExpression={"email": {"$type": "string"}},
            name="email_unique",
        )
        await self.collection.create_index(
            [("auth0_id", ASCENDING)],
            unique=True,
            partialFilterExpression={"auth0_id": {"$type": "string"}},
            name="auth0_id_unique",
        )
        logger.info("User collection indexes ensured")

    @_translate_errors
    async def find_by_external_subject(self, external_id: str) -> UserRecord | None:
        document = await self.collection.find_one({"auth0_id": external_id})
        return UserRecord.from_document(document) if document else None

    @_translate_errors
    async def find_by_id(self, user_id: str) -> UserRecord | None:
        if not ObjectId.is_valid(user_id):
            return None
        document = await self.collection.find_one({"_id": ObjectId(user_id)})
        return UserRecord.from_document(document) if document else None

    @_translate_errors
    async def find_by_email(self, email: str) -> UserRecord | None:
        normalized = normalize_email(email)
        if normalized is None:
            return None
        document = await self.collection.find_one({"email": normalized})
        return UserRecord.from_document(document) if document else None

    @_translate_errors
    async def create_user(self, fields: dict[str, Any]) -> UserRecord:
        """
        Insert a new user record.

        Args:
            fields: Record fields (without ``id``); unset defaults are filled in

        Returns:
            The stored record

        Raises:
            DuplicateRecordError: If the email or auth0_id is already taken
            DataStoreError: If the insert fails for any other reason
        """
        document: dict[str, Any] = {
            "role": UserRole.USER.value,
            "social_providers": [],
            "profile": {},
            "is_profile_complete": False,
            "receive_emails": False,
            "status": UserStatus.ACTIVE.value,
            "created_at": datetime.now(timezone.utc),
        }
        document.update(_to_mongo(fields))
        document["email"] = normalize_email(document.get("email"))
        # Identity keys are stored absent, never null
        for key in ("email", "auth0_id"):
            if document.get(key) is None:
                document.pop(key, None)

        result = await self.collection.insert_one(document)
        document["_id"] = result.inserted_id
        logger.info(
            f"Created user {result.inserted_id}",
            extra={"user_id": str(result.inserted_id), "auth0_id": document.get("auth0_id")},
        )
        return UserRecord.from_document(document)

    @_translate_errors
    async def update_user(self, user_id: str, patch: dict[str, Any]) -> UserRecord | None:
        """Apply a ``$set`` patch and return the updated record (None if missing)."""
        if not ObjectId.is_valid(user_id):
            return None
        patch = _to_mongo(patch)
        if "email" in patch:
            patch["email"] = normalize_email(patch["email"])
        document = await self.collection.find_one_and_update(
            {"_id": ObjectId(user_id)},
            {"$set": patch},
            return_document=ReturnDocument.AFTER,
        )
        return UserRecord.from_document(document) if document else None

    @_translate_errors
    async def list_users(self, limit: int = 50, offset: int = 0) -> list[UserRecord]:
        cursor = (
            self.collection.find({}, {"password_hash": 0})
            .sort("created_at", DESCENDING)
            .skip(offset)
            .limit(limit)
        )
        documents = await cursor.to_list(length=limit)
        return [UserRecord.from_document(document) for document in documents]


def get_user_store() -> MongoUserStore:
    """Get a user store bound to the application database."""
    return MongoUserStore(get_database()[USERS_COLLECTION])
