"""Tests for the hybrid authentication gate."""

import pytest

from src.vahire.services.auth.exceptions import (
    AuthorizationError,
    IdentityStoreError,
    MalformedTokenError,
    SubjectNotFoundError,
    TokenVerificationError,
)
from src.vahire.services.auth.gate import ADMIN_DENIED_MESSAGE
from src.vahire.services.auth.models import AuthSource
from src.vahire.services.database.exceptions import DataStoreError
from src.vahire.services.database.models import UserRole


@pytest.mark.asyncio
class TestAuthenticate:
    async def test_external_token_yields_external_identity(self, auth_gate, make_external_token):
        identity = await auth_gate.authenticate(make_external_token())

        assert identity.auth_source == AuthSource.EXTERNAL
        assert identity.external_id == "google-oauth2|1234567890"
        assert identity.record is None

    async def test_external_token_does_not_touch_store(
        self, auth_gate, user_store, make_external_token
    ):
        user_store.fail_with = DataStoreError("down")

        identity = await auth_gate.authenticate(make_external_token())

        assert identity.id == "google-oauth2|1234567890"

    async def test_local_token_yields_identity_with_record(
        self, auth_gate, local_tokens, local_user
    ):
        identity = await auth_gate.authenticate(local_tokens.issue_token(local_user.id))

        assert identity.auth_source == AuthSource.LOCAL
        assert identity.id == local_user.id
        assert identity.role == UserRole.USER
        assert identity.record == local_user

    async def test_local_token_for_deleted_user_rejected(self, auth_gate, local_tokens, user_store, local_user):
        token = local_tokens.issue_token(local_user.id)
        del user_store.records[local_user.id]

        with pytest.raises(SubjectNotFoundError) as exc_info:
            await auth_gate.authenticate(token)

        assert exc_info.value.status_code == 401

    async def test_local_path_store_failure_is_server_error(
        self, auth_gate, local_tokens, user_store, local_user
    ):
        token = local_tokens.issue_token(local_user.id)
        user_store.fail_with = DataStoreError("connection refused")

        with pytest.raises(IdentityStoreError) as exc_info:
            await auth_gate.authenticate(token)

        assert exc_info.value.status_code == 500

    async def test_malformed_token_rejected(self, auth_gate):
        with pytest.raises(MalformedTokenError):
            await auth_gate.authenticate("definitely.not.ajwt")

    async def test_external_token_with_bad_signature_never_falls_back_to_local(
        self, auth_gate, make_external_token, foreign_signing_pem
    ):
        with pytest.raises(TokenVerificationError):
            await auth_gate.authenticate(make_external_token(key=foreign_signing_pem))


@pytest.mark.asyncio
class TestLoadRecord:
    async def test_external_identity_provisioned_on_first_load(
        self, auth_gate, user_store, make_external_token
    ):
        identity = await auth_gate.authenticate(make_external_token())

        record = await auth_gate.load_record(identity)

        assert record.auth0_id == identity.external_id
        assert record.email == "jane.doe@example.com"
        assert len(user_store.records) == 1

    async def test_external_identity_finds_existing_record(
        self, auth_gate, user_store, make_external_token
    ):
        existing = user_store.add(
            email="jane.doe@example.com", auth0_id="google-oauth2|1234567890", role=UserRole.RECRUITER
        )
        identity = await auth_gate.authenticate(make_external_token())

        record = await auth_gate.load_record(identity)

        assert record.id == existing.id
        assert user_store.create_calls == 0

    async def test_store_failure_raises_identity_store_error(
        self, auth_gate, user_store, make_external_token
    ):
        identity = await auth_gate.authenticate(make_external_token())
        user_store.fail_with = DataStoreError("down")

        with pytest.raises(IdentityStoreError):
            await auth_gate.load_record(identity)

    async def test_best_effort_returns_identity_without_record(
        self, auth_gate, user_store, make_external_token
    ):
        identity = await auth_gate.authenticate(make_external_token())
        user_store.fail_with = DataStoreError("down")

        result = await auth_gate.load_record_best_effort(identity)

        assert result.record is None
        assert result.id == identity.id

    async def test_best_effort_attaches_record(self, auth_gate, make_external_token):
        identity = await auth_gate.authenticate(make_external_token())

        result = await auth_gate.load_record_best_effort(identity)

        assert result.record is not None
        assert result.role == UserRole.USER


@pytest.mark.asyncio
class TestAuthorize:
    async def test_user_denied_admin_role(self, auth_gate, local_tokens, local_user):
        identity = await auth_gate.authenticate(local_tokens.issue_token(local_user.id))

        with pytest.raises(AuthorizationError) as exc_info:
            await auth_gate.authorize(identity, [UserRole.ADMIN])

        assert exc_info.value.status_code == 403
        assert exc_info.value.message == ADMIN_DENIED_MESSAGE

    async def test_admin_allowed(self, auth_gate, local_tokens, local_admin):
        identity = await auth_gate.authenticate(local_tokens.issue_token(local_admin.id))

        authorized = await auth_gate.authorize(identity, [UserRole.ADMIN])

        assert authorized.role == UserRole.ADMIN

    async def test_generic_message_for_multiple_roles(self, auth_gate, local_tokens, local_user):
        identity = await auth_gate.authenticate(local_tokens.issue_token(local_user.id))

        with pytest.raises(AuthorizationError) as exc_info:
            await auth_gate.authorize(identity, [UserRole.ADMIN, UserRole.RECRUITER])

        assert exc_info.value.message == "Access denied: insufficient privileges"

    async def test_external_admin_authorized_from_record_role(
        self, auth_gate, user_store, make_external_token
    ):
        user_store.add(
            email="jane.doe@example.com", auth0_id="google-oauth2|1234567890", role=UserRole.ADMIN
        )
        identity = await auth_gate.authenticate(make_external_token())

        authorized = await auth_gate.authorize(identity, [UserRole.ADMIN])

        assert authorized.role == UserRole.ADMIN
        assert authorized.record is not None

    async def test_role_claim_in_token_is_ignored(self, auth_gate, make_external_token):
        identity = await auth_gate.authenticate(make_external_token(role="admin"))

        with pytest.raises(AuthorizationError):
            await auth_gate.authorize(identity, [UserRole.ADMIN])
