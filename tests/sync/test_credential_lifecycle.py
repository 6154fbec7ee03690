"""Tests for CredentialLifecycleManager."""

from datetime import datetime, timedelta, timezone

import pytest

from src.sellersync.api.exceptions import (
    InvalidCredentialsError,
    NetworkError,
    ReauthorizationRequiredError,
    TokenRefreshFailedError,
)
from src.sellersync.sync.domain.entities import ProviderKind, TokenGrant
from src.sellersync.sync.use_cases.credential_lifecycle import (
    CredentialLifecycleManager,
    token_id,
)


@pytest.fixture
def lifecycle(cipher, credential_repo, fetcher):
    return CredentialLifecycleManager(cipher, credential_repo, fetcher)


class TestTokenState:
    def test_missing_access_expiry_counts_as_expired(self, lifecycle, make_credential):
        credential = make_credential()
        credential.access_token_expires_at = None

        assert lifecycle.is_access_token_expired(credential) is True

    def test_missing_refresh_expiry_never_expires(self, lifecycle, make_credential):
        credential = make_credential(refresh_expires_in=None)

        assert lifecycle.is_refresh_token_expired(credential) is False

    def test_needs_refresh_looks_ahead(self, lifecycle, make_credential):
        credential = make_credential(access_expires_in=timedelta(minutes=5))

        assert lifecycle.needs_refresh(credential) is False
        assert lifecycle.needs_refresh(credential, timedelta(minutes=10)) is True

    def test_needs_refresh_false_without_refresh_token(self, lifecycle, make_credential):
        credential = make_credential(access_expires_in=timedelta(minutes=-5), refresh_expires_in=None)

        assert lifecycle.needs_refresh(credential) is False

    def test_token_id_is_short_hash(self):
        assert len(token_id("secret")) == 8
        assert token_id("secret") != "secret"[:8]


class TestEnsureValidAccessToken:
    async def test_valid_token_is_decrypted_without_refresh(
        self, lifecycle, fetcher, unit_of_work, make_credential
    ):
        credential = make_credential()

        token = await lifecycle.ensure_valid_access_token(credential)

        assert token == "old-access"
        assert fetcher.refresh_calls == []
        assert unit_of_work.has_pending is False

    async def test_expired_access_token_refreshes_exactly_once(
        self, lifecycle, fetcher, credential_repo, unit_of_work, make_credential
    ):
        credential = credential_repo.seed(make_credential(access_expires_in=timedelta(minutes=-1)))
        before = datetime.now(timezone.utc)

        token = await lifecycle.ensure_valid_access_token(credential)

        assert token == "new-access"
        assert fetcher.refresh_calls == ["old-refresh"]
        # New state is registered before returning
        assert unit_of_work.has_pending is True
        assert credential.encrypted_access_token == "enc:new-access"
        assert credential.encrypted_refresh_token == "enc:new-refresh"
        assert credential.access_token_expires_at >= before + timedelta(seconds=7200)

        await unit_of_work.commit()
        stored = credential_repo.stored("user-1", ProviderKind.EBAY)
        assert stored.encrypted_access_token == "enc:new-access"
        assert stored.version == 1

    async def test_refresh_without_rotation_keeps_refresh_token(
        self, lifecycle, fetcher, make_credential
    ):
        credential = make_credential(access_expires_in=timedelta(minutes=-1))
        original_refresh_expiry = credential.refresh_token_expires_at
        fetcher.grant = TokenGrant(access_token="new-access", expires_in=3600)

        await lifecycle.ensure_valid_access_token(credential)

        assert credential.encrypted_refresh_token == "enc:old-refresh"
        assert credential.refresh_token_expires_at == original_refresh_expiry

    async def test_expired_refresh_token_requires_reauthorization(
        self, lifecycle, fetcher, unit_of_work, make_credential
    ):
        credential = make_credential(
            access_expires_in=timedelta(minutes=-1),
            refresh_expires_in=timedelta(seconds=-1),
        )

        with pytest.raises(ReauthorizationRequiredError):
            await lifecycle.ensure_valid_access_token(credential)

        assert fetcher.refresh_calls == []
        assert credential.is_connected is False
        assert unit_of_work.has_pending is True

    async def test_rejected_refresh_token_requires_reauthorization(
        self, lifecycle, fetcher, make_credential
    ):
        credential = make_credential(access_expires_in=timedelta(minutes=-1))
        fetcher.refresh_error = InvalidCredentialsError("invalid_grant")

        with pytest.raises(ReauthorizationRequiredError) as exc_info:
            await lifecycle.ensure_valid_access_token(credential)

        assert isinstance(exc_info.value.cause, InvalidCredentialsError)
        assert credential.is_connected is False
        assert credential.requires_reauthorization() is True

    async def test_transient_refresh_failure_keeps_connection(
        self, lifecycle, fetcher, unit_of_work, make_credential
    ):
        credential = make_credential(access_expires_in=timedelta(minutes=-1))
        fetcher.refresh_error = NetworkError("connection reset")

        with pytest.raises(TokenRefreshFailedError):
            await lifecycle.ensure_valid_access_token(credential)

        assert credential.is_connected is True
        assert unit_of_work.has_pending is False

    async def test_missing_refresh_token_requires_reauthorization(
        self, lifecycle, fetcher, make_credential
    ):
        credential = make_credential(access_expires_in=timedelta(minutes=-1), refresh_expires_in=None)

        with pytest.raises(ReauthorizationRequiredError):
            await lifecycle.ensure_valid_access_token(credential)

        assert fetcher.refresh_calls == []
