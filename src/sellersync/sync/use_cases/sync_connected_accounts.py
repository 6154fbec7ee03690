"""Scheduled sync job - runs one provider sync for every connected account.

Used by scheduler.py. Each account is synced on its own: one user's
failure is recorded in the summary and the job moves on to the next.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from ...api.exceptions import ReauthorizationRequiredError
from ..domain.entities import ProviderKind, SyncResult
from ..domain.ports import ICredentialRepository, IUnitOfWork
from .sync_records import SyncRecordsUseCase

logger = logging.getLogger(__name__)


@dataclass
class BatchSyncSummary:
    """Aggregate of one scheduled run over all connected accounts."""

    provider: ProviderKind
    results: list[SyncResult] = field(default_factory=list)

    @property
    def accounts(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return self.accounts - self.succeeded

    @property
    def reauthorization_required(self) -> int:
        return sum(1 for r in self.results if r.requires_reauthorization)

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider.value,
            "accounts": self.accounts,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "reauthorization_required": self.reauthorization_required,
            "created": sum(r.created for r in self.results),
            "updated": sum(r.updated for r in self.results),
            "linked": sum(r.linked for r in self.results),
        }


@dataclass
class TokenRefreshSummary:
    checked: int = 0
    refreshed: int = 0
    reauthorization_required: int = 0
    failed: int = 0


class SyncConnectedAccountsUseCase:
    """Batch job over every connected credential of one provider."""

    def __init__(
        self,
        sync_use_case: SyncRecordsUseCase,
        credential_repo: ICredentialRepository,
        unit_of_work: IUnitOfWork,
    ):
        self.sync_use_case = sync_use_case
        self.credential_repo = credential_repo
        self.unit_of_work = unit_of_work
        self.provider = sync_use_case.provider

    async def execute(self) -> BatchSyncSummary:
        summary = BatchSyncSummary(provider=self.provider)
        credentials = await self.credential_repo.get_connected(self.provider)
        name = self.provider.display_name

        logger.info(f"Scheduled {name} sync: {len(credentials)} connected accounts")

        for credential in credentials:
            result = await self.sync_use_case.execute(credential.user_id)
            summary.results.append(result)
            if not result.success:
                logger.warning(
                    f"{name} sync for user {credential.user_id} finished with "
                    f"{len(result.errors)} errors"
                )

        logger.info(
            f"Scheduled {name} sync done: {summary.succeeded}/{summary.accounts} succeeded, "
            f"{summary.reauthorization_required} need reauthorization"
        )
        return summary

    async def refresh_expiring_tokens(self, ahead: timedelta | None = None) -> TokenRefreshSummary:
        """Refresh access tokens that expire within `ahead`.

        Credentials whose refresh token already expired are marked as
        requiring reauthorization. Each credential is committed separately.
        """
        lifecycle = self.sync_use_case.lifecycle
        ahead = ahead if ahead is not None else self.sync_use_case.config.refresh_ahead
        summary = TokenRefreshSummary()

        for credential in await self.credential_repo.get_connected(self.provider):
            summary.checked += 1
            try:
                try:
                    if lifecycle.is_refresh_token_expired(credential):
                        await lifecycle.require_reauthorization(credential)
                    if not lifecycle.needs_refresh(credential, ahead):
                        continue
                    await lifecycle.refresh(credential)
                    refreshed = True
                except ReauthorizationRequiredError:
                    refreshed = False
                await self.unit_of_work.commit()
                if refreshed:
                    summary.refreshed += 1
                else:
                    summary.reauthorization_required += 1
            except Exception as e:
                self.unit_of_work.rollback()
                summary.failed += 1
                logger.error(
                    f"Token refresh failed for {self.provider.display_name} user "
                    f"{credential.user_id}: {e}"
                )

        logger.info(
            f"{self.provider.display_name} token refresh: {summary.refreshed} refreshed, "
            f"{summary.reauthorization_required} need reauthorization, {summary.failed} failed "
            f"({summary.checked} checked)"
        )
        return summary
