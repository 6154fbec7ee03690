#!/usr/bin/env python3
"""PostgreSQL access for the SellerSync repositories.

Repositories read through database_connection. All writes of one sync step
go through the unit of work, which applies them inside a single
database_transaction. Driver errors leave this module as DatabaseError
subclasses; task cancellation rolls back and propagates as is.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import asyncpg

from .exceptions import (
    ConnectionPoolError,
    DatabaseError,
    IntegrityError,
    SellerSyncError,
    TransactionError,
)

logger = logging.getLogger(__name__)

ACQUIRE_TIMEOUT_SECONDS = 30.0

# (driver exception, message marker, constraint kind)
_CONSTRAINT_VIOLATIONS = (
    (asyncpg.UniqueViolationError, "duplicate", "unique"),
    (asyncpg.ForeignKeyViolationError, "foreign key", "foreign_key"),
    (asyncpg.NotNullViolationError, "not-null", "not_null"),
)


async def _acquire(pool):
    if pool is None:
        raise ConnectionPoolError("Database connection pool is not initialized")
    try:
        return await asyncio.wait_for(pool.acquire(), timeout=ACQUIRE_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        raise ConnectionPoolError(
            "Timeout acquiring database connection",
            details={"timeout_seconds": ACQUIRE_TIMEOUT_SECONDS},
        )
    except Exception as e:
        raise ConnectionPoolError(f"Failed to acquire database connection: {e}", cause=e)


@asynccontextmanager
async def database_transaction(pool) -> AsyncIterator[Any]:
    """Yield a pooled connection inside a read-committed transaction.

    Commits when the body finishes, rolls back on any exception or
    cancellation. A failed rollback is logged and the original error wins.
    """
    conn = await _acquire(pool)
    try:
        transaction = conn.transaction()
        try:
            await transaction.start()
        except Exception as e:
            raise TransactionError(f"Failed to start transaction: {e}", cause=e)

        try:
            yield conn
            await transaction.commit()
        except BaseException as e:
            try:
                await transaction.rollback()
            except Exception as rollback_error:
                logger.error(f"Rollback failed: {rollback_error}")
            if not isinstance(e, Exception):
                raise
            raise _convert_db_exception(e)
    finally:
        await pool.release(conn)


@asynccontextmanager
async def database_connection(pool) -> AsyncIterator[Any]:
    """Yield a pooled connection for reads and pgcrypto calls."""
    conn = await _acquire(pool)
    try:
        yield conn
    finally:
        await pool.release(conn)


def _convert_db_exception(e: Exception) -> Exception:
    """Map a driver error onto the DatabaseError hierarchy.

    asyncpg raises typed errors; other drivers and wrapped errors are
    recognized by their message. SellerSync errors, including
    ConcurrencyConflictError from the unit of work, pass through.
    """
    if isinstance(e, SellerSyncError):
        return e

    message = str(e).lower()

    for error_type, marker, constraint in _CONSTRAINT_VIOLATIONS:
        if isinstance(e, error_type) or marker in message:
            return IntegrityError(f"Constraint violation: {e}", constraint=constraint, cause=e)

    if isinstance(e, asyncpg.DeadlockDetectedError) or "deadlock" in message:
        return TransactionError(f"Deadlock detected: {e}", operation="transaction", cause=e)

    if isinstance(e, (asyncio.TimeoutError, asyncpg.QueryCanceledError)) or "timed out" in message:
        return TransactionError(f"Database operation timed out: {e}", operation="query", cause=e)

    return DatabaseError(f"Database operation failed: {e}", cause=e)


async def create_pool(database_url: str, min_size: int = 2, max_size: int = 10):
    """Open the asyncpg pool used by the scheduler.

    Raises:
        ConnectionPoolError: If the database is unreachable
    """
    try:
        pool = await asyncpg.create_pool(
            database_url,
            min_size=min_size,
            max_size=max_size,
            command_timeout=60.0,
        )
    except Exception as e:
        raise ConnectionPoolError(f"Failed to create database pool: {e}", cause=e)
    logger.info(f"Database pool created (min={min_size}, max={max_size})")
    return pool


async def close_pool(pool, timeout: float = 10.0):
    if pool is None:
        return
    try:
        await asyncio.wait_for(pool.close(), timeout=timeout)
        logger.info("Database pool closed")
    except asyncio.TimeoutError:
        logger.warning(f"Pool close timed out after {timeout}s, terminating")
        pool.terminate()


__all__ = [
    "database_transaction",
    "database_connection",
    "create_pool",
    "close_pool",
]
