#!/usr/bin/env python3
"""Exception Hierarchy for SellerSync.

This module provides a structured exception hierarchy for handling errors
across the provider clients, the credential lifecycle, persistence and the
sync orchestrator.

Design Principles:
    - All exceptions inherit from SellerSyncError base class
    - Exceptions preserve context (original error, timestamps, details)
    - Exceptions are categorized by recoverability
    - Each exception includes actionable information

Exception Hierarchy:
    SellerSyncError (base)
    ├── ConfigurationError (unrecoverable - fix config)
    ├── AuthenticationError (may be recoverable)
    │   ├── TokenFetchError
    │   ├── TokenExpiredError
    │   └── InvalidCredentialsError
    ├── APIError (may be recoverable - retry)
    │   ├── RateLimitError
    │   ├── NotFoundError
    │   ├── ValidationError
    │   └── ServerError
    ├── NetworkError (recoverable - retry)
    │   ├── ConnectionError
    │   └── TimeoutError
    ├── DatabaseError (may be recoverable)
    │   ├── ConnectionPoolError
    │   ├── TransactionError
    │   ├── IntegrityError
    │   └── ConcurrencyConflictError
    └── SyncError (sync run outcomes)
        ├── NotConnectedError
        ├── ReauthorizationRequiredError
        ├── TokenRefreshFailedError
        ├── FetchFailedError
        ├── RecordReconciliationError
        └── AccountConnectionError
"""
from datetime import datetime, timezone
from typing import Any, Optional

# ============================================
# Base Exception
# ============================================

class SellerSyncError(Exception):
    """Base exception for all SellerSync errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "REAUTHORIZATION_REQUIRED")
        details: Additional context as a dictionary
        timestamp: When the error occurred
        cause: The original exception that caused this error
        recoverable: Whether this error might be recoverable with retry
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        recoverable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__.upper()
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)
        self.cause = cause
        self.recoverable = recoverable

        if cause:
            self.__cause__ = cause

    def __str__(self) -> str:
        parts = [self.message]
        if self.code:
            parts.insert(0, f"[{self.code}]")
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"({detail_str})")
        return " ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"details={self.details!r}, "
            f"recoverable={self.recoverable})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "recoverable": self.recoverable,
            "cause": str(self.cause) if self.cause else None,
        }


# ============================================
# Configuration Errors (Unrecoverable)
# ============================================

class ConfigurationError(SellerSyncError):
    """Raised when configuration is missing or invalid."""

    def __init__(
        self,
        message: str,
        missing_keys: Optional[list[str]] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if missing_keys:
            details["missing_keys"] = missing_keys
        super().__init__(
            message,
            code="CONFIGURATION_ERROR",
            details=details,
            recoverable=False,
            **kwargs,
        )


# ============================================
# Authentication Errors
# ============================================

class AuthenticationError(SellerSyncError):
    """Base class for authentication-related errors."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("recoverable", True)
        super().__init__(message, **kwargs)


class TokenFetchError(AuthenticationError):
    """Raised when a token cannot be obtained from the OAuth server."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        attempts: int = 1,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if status_code:
            details["status_code"] = status_code
        details["attempts"] = attempts
        super().__init__(
            message,
            code="TOKEN_FETCH_ERROR",
            details=details,
            **kwargs,
        )


class TokenExpiredError(AuthenticationError):
    """Raised when the provider rejects an access token (HTTP 401)."""

    def __init__(self, message: str = "Access token has expired", **kwargs):
        super().__init__(message, code="TOKEN_EXPIRED", **kwargs)


class InvalidCredentialsError(AuthenticationError):
    """Raised when the provider rejects the client credentials or the grant."""

    def __init__(
        self,
        message: str = "Invalid client credentials",
        **kwargs,
    ):
        super().__init__(
            message,
            code="INVALID_CREDENTIALS",
            recoverable=False,  # Needs a new authorization
            **kwargs,
        )


# ============================================
# API Errors
# ============================================

class APIError(SellerSyncError):
    """Base class for provider API response errors.

    Attributes:
        status_code: HTTP status code
        endpoint: API endpoint that was called
        response_body: Raw response body (may be truncated)
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        endpoint: Optional[str] = None,
        response_body: Optional[str] = None,
        method: str = "GET",
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        details["status_code"] = status_code
        if endpoint:
            details["endpoint"] = endpoint
        if method:
            details["method"] = method
        if response_body:
            details["response_body"] = response_body[:500]

        kwargs.setdefault("recoverable", status_code in (429, 500, 502, 503, 504))
        kwargs.setdefault("code", f"API_ERROR_{status_code}")

        super().__init__(
            message,
            details=details,
            **kwargs,
        )
        self.status_code = status_code
        self.endpoint = endpoint
        self.response_body = response_body
        self.method = method


class RateLimitError(APIError):
    """Raised when the provider rate limit is exceeded (HTTP 429).

    Attributes:
        retry_after: Seconds to wait before retrying (from Retry-After header)
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: Optional[int] = None,
        **kwargs,
    ):
        kwargs.setdefault("status_code", 429)
        details = kwargs.pop("details", {})
        if retry_after:
            details["retry_after_seconds"] = retry_after
        super().__init__(
            message,
            code="RATE_LIMIT_EXCEEDED",
            details=details,
            **kwargs,
        )
        self.retry_after = retry_after or 60


class NotFoundError(APIError):
    """Raised when a requested resource is not found (HTTP 404 or local lookup)."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        **kwargs,
    ):
        message = f"{resource_type} not found"
        if resource_id:
            message = f"{resource_type} '{resource_id}' not found"

        kwargs.setdefault("status_code", 404)
        details = kwargs.pop("details", {})
        details["resource_type"] = resource_type
        if resource_id:
            details["resource_id"] = resource_id

        super().__init__(
            message,
            code="NOT_FOUND",
            details=details,
            recoverable=False,
            **kwargs,
        )


class ValidationError(APIError):
    """Raised when the provider rejects a request (HTTP 400/422)."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        **kwargs,
    ):
        kwargs.setdefault("status_code", 400)
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field

        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details=details,
            recoverable=False,
            **kwargs,
        )


class ServerError(APIError):
    """Raised when the provider returns a 5xx error."""

    def __init__(
        self,
        message: str = "Server error",
        **kwargs,
    ):
        kwargs.setdefault("status_code", 500)
        super().__init__(
            message,
            code="SERVER_ERROR",
            recoverable=True,
            **kwargs,
        )


# ============================================
# Network Errors (Usually Recoverable)
# ============================================

class NetworkError(SellerSyncError):
    """Base class for network-related errors."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("recoverable", True)
        super().__init__(message, **kwargs)


class ConnectionError(NetworkError):
    """Raised when connection to a provider fails."""

    def __init__(
        self,
        message: str = "Failed to connect to server",
        host: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if host:
            details["host"] = host
        super().__init__(
            message,
            code="CONNECTION_ERROR",
            details=details,
            **kwargs,
        )


class TimeoutError(NetworkError):
    """Raised when a request times out."""

    def __init__(
        self,
        message: str = "Request timed out",
        timeout_seconds: Optional[float] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if timeout_seconds:
            details["timeout_seconds"] = timeout_seconds
        super().__init__(
            message,
            code="TIMEOUT_ERROR",
            details=details,
            **kwargs,
        )


# ============================================
# Database Errors
# ============================================

class DatabaseError(SellerSyncError):
    """Base class for database-related errors."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("recoverable", True)
        super().__init__(message, **kwargs)


class ConnectionPoolError(DatabaseError):
    """Raised when database connection pool is exhausted or unavailable."""

    def __init__(
        self,
        message: str = "Database connection pool error",
        **kwargs,
    ):
        super().__init__(message, code="CONNECTION_POOL_ERROR", **kwargs)


class TransactionError(DatabaseError):
    """Raised when a database transaction fails."""

    def __init__(
        self,
        message: str = "Database transaction failed",
        operation: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if operation:
            details["operation"] = operation
        super().__init__(
            message,
            code="TRANSACTION_ERROR",
            details=details,
            **kwargs,
        )


class IntegrityError(DatabaseError):
    """Raised when a database integrity constraint is violated."""

    def __init__(
        self,
        message: str = "Database integrity error",
        constraint: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if constraint:
            details["constraint"] = constraint
        super().__init__(
            message,
            code="INTEGRITY_ERROR",
            details=details,
            recoverable=False,
            **kwargs,
        )


class ConcurrencyConflictError(DatabaseError):
    """Raised when an optimistic concurrency check fails.

    Another writer changed the row after it was read, so this write
    was rejected instead of overwriting theirs.

    Attributes:
        entity: Kind of row that was being written
        entity_id: Identifier of the row
        expected_version: Version the writer read
    """

    def __init__(
        self,
        entity: str,
        entity_id: Any,
        expected_version: Optional[int] = None,
        **kwargs,
    ):
        message = f"{entity} '{entity_id}' was modified concurrently"
        details = kwargs.pop("details", {})
        details["entity"] = entity
        details["entity_id"] = str(entity_id)
        if expected_version is not None:
            details["expected_version"] = expected_version
        super().__init__(
            message,
            code="CONCURRENCY_CONFLICT",
            details=details,
            recoverable=False,
            **kwargs,
        )
        self.entity = entity
        self.entity_id = entity_id
        self.expected_version = expected_version


# ============================================
# Sync Errors
# ============================================

class SyncError(SellerSyncError):
    """Base class for synchronization errors."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, **kwargs)


class NotConnectedError(SyncError):
    """Raised when a user has no connected credential for a provider."""

    def __init__(self, provider_name: str, **kwargs):
        super().__init__(
            f"{provider_name} account is not connected.",
            code="NOT_CONNECTED",
            recoverable=False,
            **kwargs,
        )
        self.provider_name = provider_name


class ReauthorizationRequiredError(SyncError):
    """Raised when the refresh token has expired or was revoked.

    The user must repeat the authorization exchange; retrying is pointless.
    """

    def __init__(self, provider_name: str, **kwargs):
        super().__init__(
            f"{provider_name} authorization has expired. Please reconnect your account.",
            code="REAUTHORIZATION_REQUIRED",
            recoverable=False,
            **kwargs,
        )
        self.provider_name = provider_name


class TokenRefreshFailedError(SyncError):
    """Raised when the token refresh call fails for a transient reason."""

    def __init__(self, message: str = "Failed to refresh access token", **kwargs):
        super().__init__(
            message,
            code="TOKEN_REFRESH_FAILED",
            recoverable=True,
            **kwargs,
        )


class FetchFailedError(SyncError):
    """Raised when records cannot be fetched from the provider."""

    def __init__(self, message: str = "Failed to fetch records", **kwargs):
        super().__init__(
            message,
            code="FETCH_FAILED",
            recoverable=True,
            **kwargs,
        )


class RecordReconciliationError(SyncError):
    """Raised when a single fetched record cannot be reconciled.

    Attributes:
        external_id: Provider identifier of the offending record
    """

    def __init__(self, message: str, external_id: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if external_id:
            details["external_id"] = external_id
        super().__init__(
            message,
            code="RECORD_RECONCILIATION_FAILED",
            details=details,
            recoverable=False,
            **kwargs,
        )
        self.external_id = external_id


class AccountConnectionError(SyncError):
    """Raised when connecting an account to a provider fails."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            code="ACCOUNT_CONNECTION_FAILED",
            recoverable=False,
            **kwargs,
        )


def error_message(e: BaseException) -> str:
    """Plain message of an exception, without the [CODE] prefix."""
    return getattr(e, "message", None) or str(e)


# ============================================
# Exports
# ============================================

__all__ = [
    # Base
    "SellerSyncError",
    # Configuration
    "ConfigurationError",
    # Authentication
    "AuthenticationError",
    "TokenFetchError",
    "TokenExpiredError",
    "InvalidCredentialsError",
    # API
    "APIError",
    "RateLimitError",
    "NotFoundError",
    "ValidationError",
    "ServerError",
    # Network
    "NetworkError",
    "ConnectionError",
    "TimeoutError",
    # Database
    "DatabaseError",
    "ConnectionPoolError",
    "TransactionError",
    "IntegrityError",
    "ConcurrencyConflictError",
    # Sync
    "SyncError",
    "NotConnectedError",
    "ReauthorizationRequiredError",
    "TokenRefreshFailedError",
    "FetchFailedError",
    "RecordReconciliationError",
    "AccountConnectionError",
    # Helpers
    "error_message",
]
