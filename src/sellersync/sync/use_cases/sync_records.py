"""Sync Records Use Case - Orchestrates one provider sync for one user.

This use case implements the sync state machine. It depends on ports
(interfaces) for all external operations, making it fully testable without
infrastructure.

Workflow:
1. Load the credential; not connected -> single error, no writes
2. Refresh token expired -> disconnect, persist, single error
3. Obtain a valid access token (refresh if needed), commit so a refresh
   survives a later failure
4. Derive the date window (caller values or trailing window)
5. Fetch records from the provider
6. Reconcile each record independently, committing after each one
7. Record sync telemetry on the credential, commit
8. Return the SyncResult

The use case never raises for provider, persistence or record errors:
every failure ends up in SyncResult.errors. Task cancellation is not
an error and propagates; records committed before it stay committed.
"""

import logging
from datetime import datetime
from typing import Any

from ...api.exceptions import (
    ConcurrencyConflictError,
    FetchFailedError,
    NotConnectedError,
    ReauthorizationRequiredError,
    RecordReconciliationError,
    error_message,
)
from ..config import SyncConfig
from ..domain.entities import Credential, SyncResult, UnmappedRecord, utc_now
from ..domain.ports import (
    ICredentialRepository,
    IExternalRecordFetcher,
    IRecordReconciler,
    IUnitOfWork,
)
from .credential_lifecycle import CredentialLifecycleManager

logger = logging.getLogger(__name__)


class SyncRecordsUseCase:
    """Orchestrates the fetch-and-reconcile workflow for one provider.

    Example:
        use_case = SyncRecordsUseCase(
            fetcher=EbayOrderFetcher(client),
            reconciler=OrderReconciler(order_repo, inventory_repo),
            credential_repo=PostgresCredentialRepository(pool, uow),
            lifecycle=CredentialLifecycleManager(cipher, credential_repo, fetcher),
            unit_of_work=uow,
        )
        result = await use_case.execute(user_id="user-1")
    """

    def __init__(
        self,
        fetcher: IExternalRecordFetcher,
        reconciler: IRecordReconciler,
        credential_repo: ICredentialRepository,
        lifecycle: CredentialLifecycleManager,
        unit_of_work: IUnitOfWork,
        config: SyncConfig | None = None,
    ):
        """Initialize the use case with its dependencies.

        Args:
            fetcher: Port for the provider API
            reconciler: Per-record create/update/skip logic for this provider
            credential_repo: Port for credential persistence
            lifecycle: Token validity and refresh logic
            unit_of_work: Transaction boundary shared with the repositories
            config: Window settings (defaults read from the environment)
        """
        self.fetcher = fetcher
        self.reconciler = reconciler
        self.credential_repo = credential_repo
        self.lifecycle = lifecycle
        self.unit_of_work = unit_of_work
        self.config = config or SyncConfig()
        self.provider = fetcher.provider

    async def execute(
        self,
        user_id: str,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> SyncResult:
        """Run one sync for the user.

        Args:
            user_id: Owner of the credential and the synced records
            start_date: Window start (default: end minus the configured window)
            end_date: Window end (default: now)

        Returns:
            SyncResult with counters and error messages
        """
        result = SyncResult(provider=self.provider, user_id=user_id)
        name = self.provider.display_name
        credential: Credential | None = None

        logger.info(f"Starting {name} sync for user {user_id}")

        try:
            # Step 1: Load credential
            credential = await self.credential_repo.get(user_id, self.provider)
            if credential is None or not credential.is_connected:
                result.add_error(NotConnectedError(name).message)
                result.requires_reauthorization = (
                    credential is not None and credential.requires_reauthorization()
                )
                return self._finish(result)

            # Step 2: Refresh token expiry
            if self.lifecycle.is_refresh_token_expired(credential):
                try:
                    await self.lifecycle.require_reauthorization(credential)
                except ReauthorizationRequiredError as e:
                    return await self._reauthorization_required(result, e)

            # Step 3: Valid access token, durable before the fetch
            try:
                access_token = await self.lifecycle.ensure_valid_access_token(credential)
            except ReauthorizationRequiredError as e:
                return await self._reauthorization_required(result, e)
            except Exception as e:
                return await self._fail(result, credential, error_message(e))
            await self.unit_of_work.commit()

            # Step 4: Date window
            end = end_date or utc_now()
            start = start_date or (end - self.config.window)

            # Step 5: Fetch
            try:
                records = await self.fetcher.fetch_records(
                    access_token,
                    credential.account_id,
                    start,
                    end,
                )
            except Exception as e:
                error = FetchFailedError(
                    f"Failed to fetch {name} {self.provider.record_noun}s: {error_message(e)}",
                    cause=e,
                )
                return await self._fail(result, credential, error.message)

            result.fetched = len(records)
            logger.info(
                f"Fetched {len(records)} {name} {self.provider.record_noun}s "
                f"for user {user_id} ({start.date()} to {end.date()})"
            )

            # Step 6: Reconcile each record on its own
            for record in records:
                await self._reconcile_one(record, user_id, result)

            # Step 7: Telemetry
            credential.record_successful_sync()
            await self.credential_repo.update(credential)
            await self.unit_of_work.commit()

        except ConcurrencyConflictError as e:
            # Another run wrote the credential; do not overwrite its telemetry
            self.unit_of_work.rollback()
            logger.error(f"{name} sync for user {user_id} lost a concurrent update: {e}")
            result.add_error(f"Sync failed: {e.message}")

        except Exception as e:
            self.unit_of_work.rollback()
            message = f"Sync failed: {error_message(e)}"
            if credential is None:
                logger.error(f"{name} sync for user {user_id} failed: {e}")
                result.add_error(message)
            else:
                return await self._fail(result, credential, message)

        return self._finish(result)

    async def _reconcile_one(self, record: Any, user_id: str, result: SyncResult) -> None:
        """Reconcile and commit a single record; failures stay local to it."""
        external_id = getattr(record, "external_id", None) or "unknown"
        try:
            if isinstance(record, UnmappedRecord):
                raise RecordReconciliationError(record.error, external_id=record.external_id)
            outcome = await self.reconciler.reconcile(record, user_id)
            await self.unit_of_work.commit()
        except Exception as e:
            self.unit_of_work.rollback()
            error_msg = f"Error processing {self.provider.record_noun} {external_id}: {error_message(e)}"
            logger.warning(error_msg)
            result.add_error(error_msg)
            return
        result.record(outcome)

    async def _reauthorization_required(
        self,
        result: SyncResult,
        error: ReauthorizationRequiredError,
    ) -> SyncResult:
        await self.unit_of_work.commit()
        result.requires_reauthorization = True
        result.add_error(error.message)
        return self._finish(result)

    async def _fail(self, result: SyncResult, credential: Credential, message: str) -> SyncResult:
        """End the run with one fatal error recorded on the credential."""
        logger.error(f"{self.provider.display_name} sync for user {credential.user_id} failed: {message}")
        result.add_error(message)
        credential.record_sync_error(message)
        try:
            await self.credential_repo.update(credential)
            await self.unit_of_work.commit()
        except Exception as e:
            self.unit_of_work.rollback()
            logger.error(f"Could not record sync error for user {credential.user_id}: {e}")
        return self._finish(result)

    def _finish(self, result: SyncResult) -> SyncResult:
        result.completed_at = utc_now()
        logger.info(
            f"{self.provider.display_name} sync for user {result.user_id} completed in "
            f"{result.duration_seconds:.2f}s: {result.fetched} fetched, "
            f"{result.created} created, {result.updated} updated, "
            f"{result.skipped} skipped, {result.linked} linked, "
            f"{len(result.errors)} errors"
        )
        return result
