"""Pytest configuration and shared fixtures."""

import asyncio
import time
from collections.abc import Callable
from typing import Any

import pytest
from bson import ObjectId
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient
from jose import jwk, jwt
from jose.backends.base import Key

from src.vahire.main import app
from src.vahire.services.auth.dependencies import set_auth_gate
from src.vahire.services.auth.exceptions import KeyFetchError
from src.vahire.services.auth.gate import AuthGate
from src.vahire.services.auth.jwt_validator import ExternalTokenValidator
from src.vahire.services.auth.local_tokens import LocalTokenService
from src.vahire.services.auth.passwords import hash_password
from src.vahire.services.database.exceptions import DuplicateRecordError
from src.vahire.services.database.models import UserRecord, UserRole
from src.vahire.services.database.users import normalize_email
from src.vahire.services.rate_limiter import limiter

AUTH0_DOMAIN = "vahire-test.eu.auth0.com"
AUTH0_ISSUER = f"https://{AUTH0_DOMAIN}/"
AUTH0_AUDIENCE = "https://api.vahire.test"
LOCAL_SECRET = "test-local-secret"
TEST_KID = "test-key-1"
TEST_PASSWORD = "s3cret-pass"


class InMemoryUserStore:
    """
    Dict-backed user store with the same uniqueness rules as the Mongo indexes.

    Every operation yields to the event loop once, so concurrent callers
    interleave the way they would against a real database.
    """

    def __init__(self) -> None:
        self.records: dict[str, UserRecord] = {}
        self.fail_with: Exception | None = None
        self.create_calls = 0

    def add(self, **fields: Any) -> UserRecord:
        fields.setdefault("id", str(ObjectId()))
        fields["email"] = normalize_email(fields.get("email"))
        record = UserRecord.model_validate(fields)
        self.records[record.id] = record
        return record

    async def _enter(self) -> None:
        await asyncio.sleep(0)
        if self.fail_with is not None:
            raise self.fail_with

    def _check_unique(self, record: UserRecord) -> None:
        for other in self.records.values():
            if other.id == record.id:
                continue
            if record.email and other.email == record.email:
                raise DuplicateRecordError(f"duplicate email {record.email}")
            if record.auth0_id and other.auth0_id == record.auth0_id:
                raise DuplicateRecordError(f"duplicate auth0_id {record.auth0_id}")

    async def find_by_external_subject(self, external_id: str) -> UserRecord | None:
        await self._enter()
        return next((r for r in self.records.values() if r.auth0_id == external_id), None)

    async def find_by_id(self, user_id: str) -> UserRecord | None:
        await self._enter()
        return self.records.get(user_id)

    async def find_by_email(self, email: str) -> UserRecord | None:
        await self._enter()
        normalized = normalize_email(email)
        return next((r for r in self.records.values() if r.email == normalized), None)

    async def create_user(self, fields: dict[str, Any]) -> UserRecord:
        await self._enter()
        self.create_calls += 1
        data = dict(fields)
        data["id"] = str(ObjectId())
        data["email"] = normalize_email(data.get("email"))
        record = UserRecord.model_validate(data)
        self._check_unique(record)
        self.records[record.id] = record
        return record

    async def update_user(self, user_id: str, patch: dict[str, Any]) -> UserRecord | None:
        await self._enter()
        current = self.records.get(user_id)
        if current is None:
            return None
        updated = UserRecord.model_validate({**current.model_dump(), **patch})
        self._check_unique(updated)
        self.records[user_id] = updated
        return updated

    async def list_users(self, limit: int = 50, offset: int = 0) -> list[UserRecord]:
        await self._enter()
        return list(self.records.values())[offset : offset + limit]


class FakeKeyResolver:
    """Key resolver returning fixed keys, or a configured error."""

    def __init__(self, keys: dict[str, Key]) -> None:
        self.keys = keys
        self.error: Exception | None = None
        self.calls: list[str] = []

    async def get_signing_key(self, kid: str) -> Key:
        self.calls.append(kid)
        if self.error is not None:
            raise self.error
        if kid not in self.keys:
            raise KeyFetchError(reason="unknown_kid", detail=f"Key ID '{kid}' not found in JWKS")
        return self.keys[kid]


def _private_pem(private_key: rsa.RSAPrivateKey) -> str:
    return private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()


def _public_pem(private_key: rsa.RSAPrivateKey) -> str:
    return (
        private_key.public_key()
        .public_bytes(serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo)
        .decode()
    )


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    """RSA key standing in for the Auth0 tenant's signing key."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_rsa_private_key() -> rsa.RSAPrivateKey:
    """RSA key that is not part of the tenant's key set."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def signing_pem(rsa_private_key) -> str:
    return _private_pem(rsa_private_key)


@pytest.fixture(scope="session")
def foreign_signing_pem(other_rsa_private_key) -> str:
    return _private_pem(other_rsa_private_key)


@pytest.fixture(scope="session")
def public_jwk(rsa_private_key) -> dict[str, Any]:
    """Public half of the signing key in JWKS form."""
    key_dict = jwk.construct(_public_pem(rsa_private_key), "RS256").to_dict()
    return {**key_dict, "kid": TEST_KID, "use": "sig"}


@pytest.fixture
def key_resolver(public_jwk) -> FakeKeyResolver:
    return FakeKeyResolver({TEST_KID: jwk.construct(public_jwk, "RS256")})


@pytest.fixture
def make_external_token(signing_pem) -> Callable[..., str]:
    """
    Build Auth0-shaped RS256 tokens.

    Keyword overrides replace claims; an override of None removes the claim.
    """

    def factory(
        *,
        expires_in: int = 3600,
        kid: str | None = TEST_KID,
        key: str | None = None,
        algorithm: str = "RS256",
        **overrides: Any,
    ) -> str:
        now = int(time.time())
        claims: dict[str, Any] = {
            "sub": "google-oauth2|1234567890",
            "email": "jane.doe@example.com",
            "name": "Jane Doe",
            "given_name": "Jane",
            "family_name": "Doe",
            "picture": "https://cdn.example.com/jane.png",
            "iss": AUTH0_ISSUER,
            "aud": AUTH0_AUDIENCE,
            "iat": min(now, now + expires_in) - 60,
            "exp": now + expires_in,
        }
        for name, value in overrides.items():
            if value is None:
                claims.pop(name, None)
            else:
                claims[name] = value
        headers = {"kid": kid} if kid else None
        return jwt.encode(claims, key or signing_pem, algorithm=algorithm, headers=headers)

    return factory


@pytest.fixture
def local_tokens() -> LocalTokenService:
    return LocalTokenService(LOCAL_SECRET, expires_minutes=60)


@pytest.fixture
def user_store() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture
def external_validator(key_resolver) -> ExternalTokenValidator:
    return ExternalTokenValidator(
        key_resolver=key_resolver, issuer=AUTH0_ISSUER, audience=AUTH0_AUDIENCE, leeway=0
    )


@pytest.fixture
def auth_gate(external_validator, local_tokens, user_store) -> AuthGate:
    return AuthGate(
        external_validator=external_validator,
        local_tokens=local_tokens,
        user_store=user_store,
        external_domain=AUTH0_DOMAIN,
    )


@pytest.fixture
def local_user(user_store) -> UserRecord:
    """A local (email/password) account with role user."""
    return user_store.add(
        email="sam.local@example.com",
        firstname="Sam",
        lastname="Local",
        password_hash=hash_password(TEST_PASSWORD),
        role=UserRole.USER,
    )


@pytest.fixture
def local_admin(user_store) -> UserRecord:
    """A local account with role admin."""
    return user_store.add(
        email="ada.admin@example.com",
        firstname="Ada",
        lastname="Admin",
        password_hash=hash_password(TEST_PASSWORD),
        role=UserRole.ADMIN,
    )


@pytest.fixture
def client(auth_gate) -> TestClient:
    """
    Provide FastAPI test client wired to the in-memory auth gate.

    Lifespan does not run (no ``with`` block), so no JWKS or MongoDB access happens.
    Rate limit counters start empty for every test.
    """
    set_auth_gate(auth_gate)
    limiter.reset()
    yield TestClient(app)
    set_auth_gate(None)
