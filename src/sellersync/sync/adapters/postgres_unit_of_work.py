"""PostgreSQL unit of work.

Repositories register writes here instead of executing them. commit()
runs everything registered since the last commit inside one
database_transaction, so a record and its side effects (inventory item
marked sold, invoice payments) land together or not at all.
"""

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from ...api.database import database_transaction
from ..domain.ports import IUnitOfWork

if TYPE_CHECKING:
    import asyncpg

logger = logging.getLogger(__name__)

# A write runs on the transaction's connection and may return a callback
# that is invoked only after the transaction committed.
Write = Callable[[Any], Awaitable[Optional[Callable[[], None]]]]


def rows_affected(status: str) -> int:
    """Row count from an asyncpg command status such as 'UPDATE 1'."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0


class PostgresUnitOfWork(IUnitOfWork):
    """Collects keyed writes and applies them atomically."""

    def __init__(self, pool: "asyncpg.Pool"):
        self.pool = pool
        self._pending: dict[tuple, Write] = {}

    def register(self, key: tuple, write: Write) -> None:
        self._pending[key] = write

    def is_pending(self, key: tuple) -> bool:
        return key in self._pending

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    async def commit(self) -> None:
        if not self._pending:
            return

        writes = list(self._pending.values())
        callbacks: list[Callable[[], None]] = []
        try:
            async with database_transaction(self.pool) as conn:
                for write in writes:
                    callback = await write(conn)
                    if callback is not None:
                        callbacks.append(callback)
        finally:
            self._pending.clear()

        for callback in callbacks:
            callback()
        logger.debug(f"Committed {len(writes)} writes")

    def rollback(self) -> None:
        if self._pending:
            logger.debug(f"Discarding {len(self._pending)} pending writes")
        self._pending.clear()
