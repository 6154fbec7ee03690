"""Tests for the scheduled batch job over connected accounts."""

from datetime import timedelta

import pytest

from src.sellersync.api.exceptions import NetworkError
from src.sellersync.sync.domain.entities import ProviderKind
from src.sellersync.sync.use_cases.credential_lifecycle import CredentialLifecycleManager
from src.sellersync.sync.use_cases.reconcile_orders import OrderReconciler
from src.sellersync.sync.use_cases.sync_connected_accounts import SyncConnectedAccountsUseCase
from src.sellersync.sync.use_cases.sync_records import SyncRecordsUseCase


@pytest.fixture
def batch(fetcher, order_repo, inventory, credential_repo, cipher, unit_of_work, sync_config):
    sync_use_case = SyncRecordsUseCase(
        fetcher=fetcher,
        reconciler=OrderReconciler(order_repo, inventory),
        credential_repo=credential_repo,
        lifecycle=CredentialLifecycleManager(cipher, credential_repo, fetcher),
        unit_of_work=unit_of_work,
        config=sync_config,
    )
    return SyncConnectedAccountsUseCase(sync_use_case, credential_repo, unit_of_work)


class TestBatchSync:
    async def test_syncs_every_connected_account(self, batch, fetcher, order_repo, credential_repo, make_credential, make_order):
        credential_repo.seed(make_credential(user_id="user-1"))
        credential_repo.seed(make_credential(user_id="user-2"))
        fetcher.records = [make_order("A")]

        summary = await batch.execute()

        assert summary.accounts == 2
        assert summary.succeeded == 2
        assert summary.to_dict()["created"] == 2
        assert len(order_repo.live("user-1")) == 1
        assert len(order_repo.live("user-2")) == 1

    async def test_one_failing_account_does_not_stop_the_batch(
        self, batch, fetcher, credential_repo, make_credential
    ):
        credential_repo.seed(make_credential(user_id="user-1"))
        credential_repo.seed(make_credential(user_id="user-2", refresh_expires_in=timedelta(seconds=-1)))

        summary = await batch.execute()

        assert summary.accounts == 2
        assert summary.succeeded == 1
        assert summary.failed == 1
        assert summary.reauthorization_required == 1
        assert credential_repo.stored("user-2", ProviderKind.EBAY).is_connected is False

    async def test_disconnected_accounts_are_ignored(self, batch, fetcher, credential_repo, make_credential):
        credential = make_credential()
        credential.disconnect()
        credential_repo.seed(credential)

        summary = await batch.execute()

        assert summary.accounts == 0
        assert fetcher.fetch_calls == []


class TestRefreshExpiringTokens:
    async def test_refreshes_only_tokens_inside_the_window(self, batch, fetcher, credential_repo, make_credential):
        credential_repo.seed(make_credential(user_id="soon", access_expires_in=timedelta(minutes=5)))
        credential_repo.seed(make_credential(user_id="later", access_expires_in=timedelta(hours=2)))

        summary = await batch.refresh_expiring_tokens()

        assert (summary.checked, summary.refreshed) == (2, 1)
        assert fetcher.refresh_calls == ["old-refresh"]
        assert credential_repo.stored("soon", ProviderKind.EBAY).encrypted_access_token == "enc:new-access"
        assert credential_repo.stored("later", ProviderKind.EBAY).encrypted_access_token == "enc:old-access"

    async def test_expired_refresh_token_marks_reauthorization(self, batch, fetcher, credential_repo, make_credential):
        credential_repo.seed(
            make_credential(access_expires_in=timedelta(minutes=5), refresh_expires_in=timedelta(seconds=-1))
        )

        summary = await batch.refresh_expiring_tokens()

        assert summary.reauthorization_required == 1
        assert fetcher.refresh_calls == []
        assert credential_repo.stored("user-1", ProviderKind.EBAY).is_connected is False

    async def test_transient_failure_is_counted_and_rolled_back(
        self, batch, fetcher, credential_repo, unit_of_work, make_credential
    ):
        credential_repo.seed(make_credential(access_expires_in=timedelta(minutes=-1)))
        fetcher.refresh_error = NetworkError("connection reset")

        summary = await batch.refresh_expiring_tokens()

        assert summary.failed == 1
        assert unit_of_work.rollback_count == 1
        assert credential_repo.stored("user-1", ProviderKind.EBAY).is_connected is True
