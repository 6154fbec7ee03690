"""Disconnect and connection-status use cases."""

import logging

from ..domain.entities import ConnectionStatus, ProviderKind
from ..domain.ports import ICredentialRepository, IUnitOfWork

logger = logging.getLogger(__name__)


class DisconnectAccountUseCase:
    """Drops a user's tokens for one provider, keeping sync history."""

    def __init__(
        self,
        provider: ProviderKind,
        credential_repo: ICredentialRepository,
        unit_of_work: IUnitOfWork,
    ):
        self.provider = provider
        self.credential_repo = credential_repo
        self.unit_of_work = unit_of_work

    async def execute(self, user_id: str) -> bool:
        """Disconnect the account.

        Returns:
            False if nothing was connected, True if a connection was removed
        """
        credential = await self.credential_repo.get(user_id, self.provider)
        if credential is None or not credential.is_connected:
            return False

        credential.disconnect()
        await self.credential_repo.update(credential)
        await self.unit_of_work.commit()

        logger.info(f"Disconnected {self.provider.display_name} account for user {user_id}")
        return True


class GetConnectionStatusUseCase:
    """Read-only view of a user's connection to one provider."""

    def __init__(self, provider: ProviderKind, credential_repo: ICredentialRepository):
        self.provider = provider
        self.credential_repo = credential_repo

    async def execute(self, user_id: str) -> ConnectionStatus:
        credential = await self.credential_repo.get(user_id, self.provider)
        return ConnectionStatus.from_credential(credential, self.provider)
