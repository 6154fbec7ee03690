"""PostgreSQL repository adapter for provider credentials.

Updates are guarded by the row version (optimistic concurrency): the
UPDATE only matches the version that was read, and a miss raises
ConcurrencyConflictError when the unit of work commits.
"""

import logging
from typing import TYPE_CHECKING, Any, Optional

from ...api.database import database_connection
from ...api.exceptions import ConcurrencyConflictError
from ..domain.entities import Credential, ProviderKind
from ..domain.ports import ICredentialRepository, IUnitOfWork
from .postgres_unit_of_work import rows_affected

if TYPE_CHECKING:
    import asyncpg

logger = logging.getLogger(__name__)

_COLUMNS = """
    id, user_id, provider,
    encrypted_access_token, encrypted_refresh_token,
    access_token_expires_at, refresh_token_expires_at,
    is_connected, account_id, account_name, scopes, connected_at,
    last_synced_at, last_sync_error,
    created_at, updated_at, version
"""


class PostgresCredentialRepository(ICredentialRepository):
    """PostgreSQL implementation of ICredentialRepository."""

    def __init__(self, pool: "asyncpg.Pool", unit_of_work: IUnitOfWork):
        """Initialize the repository.

        Args:
            pool: asyncpg connection pool for reads
            unit_of_work: Unit of work that writes are registered with
        """
        self.pool = pool
        self.unit_of_work = unit_of_work

    async def get(self, user_id: str, provider: ProviderKind) -> Optional[Credential]:
        async with database_connection(self.pool) as conn:
            row = await conn.fetchrow(
                f"SELECT {_COLUMNS} FROM provider_credentials "
                "WHERE user_id = $1 AND provider = $2",
                user_id,
                provider.value,
            )
        return self._row_to_entity(row) if row else None

    async def get_connected(self, provider: ProviderKind) -> list[Credential]:
        async with database_connection(self.pool) as conn:
            rows = await conn.fetch(
                f"SELECT {_COLUMNS} FROM provider_credentials "
                "WHERE provider = $1 AND is_connected "
                "ORDER BY last_synced_at NULLS FIRST",
                provider.value,
            )
        return [self._row_to_entity(row) for row in rows]

    async def add(self, credential: Credential) -> None:
        async def write(conn):
            await conn.execute(
                f"""
                INSERT INTO provider_credentials ({_COLUMNS})
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10,
                        $11, $12, $13, $14, $15, $16, $17)
                """,
                *self._entity_to_record(credential),
            )

        self.unit_of_work.register(("credential", credential.id, "insert"), write)

    async def update(self, credential: Credential) -> None:
        expected_version = credential.version

        async def write(conn):
            status = await conn.execute(
                """
                UPDATE provider_credentials SET
                    encrypted_access_token = $3,
                    encrypted_refresh_token = $4,
                    access_token_expires_at = $5,
                    refresh_token_expires_at = $6,
                    is_connected = $7,
                    account_id = $8,
                    account_name = $9,
                    scopes = $10,
                    connected_at = $11,
                    last_synced_at = $12,
                    last_sync_error = $13,
                    updated_at = $14,
                    version = version + 1
                WHERE id = $1 AND version = $2
                """,
                credential.id,
                expected_version,
                credential.encrypted_access_token,
                credential.encrypted_refresh_token,
                credential.access_token_expires_at,
                credential.refresh_token_expires_at,
                credential.is_connected,
                credential.account_id,
                credential.account_name,
                credential.scopes,
                credential.connected_at,
                credential.last_synced_at,
                credential.last_sync_error,
                credential.updated_at,
            )
            if rows_affected(status) == 0:
                raise ConcurrencyConflictError(
                    "Credential",
                    credential.id,
                    expected_version=expected_version,
                )

            def bump_version():
                credential.version = expected_version + 1

            return bump_version

        if self.unit_of_work.is_pending(("credential", credential.id, "insert")):
            # The pending insert reads the entity at commit time
            return
        self.unit_of_work.register(("credential", credential.id), write)

    @staticmethod
    def _entity_to_record(credential: Credential) -> tuple[Any, ...]:
        return (
            credential.id,
            credential.user_id,
            credential.provider.value,
            credential.encrypted_access_token,
            credential.encrypted_refresh_token,
            credential.access_token_expires_at,
            credential.refresh_token_expires_at,
            credential.is_connected,
            credential.account_id,
            credential.account_name,
            credential.scopes,
            credential.connected_at,
            credential.last_synced_at,
            credential.last_sync_error,
            credential.created_at,
            credential.updated_at,
            credential.version,
        )

    @staticmethod
    def _row_to_entity(row) -> Credential:
        return Credential(
            id=row["id"],
            user_id=row["user_id"],
            provider=ProviderKind(row["provider"]),
            encrypted_access_token=row["encrypted_access_token"],
            encrypted_refresh_token=row["encrypted_refresh_token"],
            access_token_expires_at=row["access_token_expires_at"],
            refresh_token_expires_at=row["refresh_token_expires_at"],
            is_connected=row["is_connected"],
            account_id=row["account_id"],
            account_name=row["account_name"],
            scopes=row["scopes"],
            connected_at=row["connected_at"],
            last_synced_at=row["last_synced_at"],
            last_sync_error=row["last_sync_error"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            version=row["version"],
        )
