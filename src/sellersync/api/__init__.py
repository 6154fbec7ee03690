"""Provider API and database modules.

This package provides the HTTP clients for the external providers and
the PostgreSQL helpers shared by the repository adapters.

Classes:
    ProviderClient: Generic HTTP client with retry and error mapping
    EbayClient: eBay OAuth token endpoints and Fulfillment API orders
    WaveClient: Wave GraphQL API (businesses, invoices)
    PaginationConfig: Page size and safety cap for paginated fetches

Exceptions:
    SellerSyncError: Base exception for all SellerSync errors
    ConfigurationError: Missing or invalid configuration
    AuthenticationError: Authentication failures
    TokenFetchError: Token acquisition failures
    APIError: API request failures
    RateLimitError: Rate limit exceeded
    NetworkError: Network connectivity issues
    DatabaseError: Database operation failures
    ConcurrencyConflictError: Versioned row changed underneath
    SyncError: Synchronization failures
"""
from .client import PaginationConfig, ProviderClient
from .database import (
    close_pool,
    create_pool,
    database_connection,
    database_transaction,
)
from .ebay_client import EBAY_ORDERS_PAGINATION, EBAY_SCOPES, EbayClient
from .exceptions import (
    AccountConnectionError,
    APIError,
    AuthenticationError,
    ConcurrencyConflictError,
    ConfigurationError,
    ConnectionError,
    ConnectionPoolError,
    DatabaseError,
    FetchFailedError,
    IntegrityError,
    InvalidCredentialsError,
    NetworkError,
    NotConnectedError,
    NotFoundError,
    RateLimitError,
    ReauthorizationRequiredError,
    RecordReconciliationError,
    SellerSyncError,
    ServerError,
    SyncError,
    TimeoutError,
    TokenExpiredError,
    TokenFetchError,
    TokenRefreshFailedError,
    TransactionError,
    ValidationError,
)
from .wave_client import WAVE_GRAPHQL_URL, WAVE_INVOICES_PAGINATION, WaveClient

__all__ = [
    # Clients
    "ProviderClient",
    "PaginationConfig",
    "EbayClient",
    "EBAY_ORDERS_PAGINATION",
    "EBAY_SCOPES",
    "WaveClient",
    "WAVE_GRAPHQL_URL",
    "WAVE_INVOICES_PAGINATION",
    # Database
    "create_pool",
    "close_pool",
    "database_connection",
    "database_transaction",
    # Exceptions
    "SellerSyncError",
    "ConfigurationError",
    "AuthenticationError",
    "TokenFetchError",
    "TokenExpiredError",
    "InvalidCredentialsError",
    "APIError",
    "RateLimitError",
    "NotFoundError",
    "ValidationError",
    "ServerError",
    "NetworkError",
    "ConnectionError",
    "TimeoutError",
    "DatabaseError",
    "ConnectionPoolError",
    "TransactionError",
    "IntegrityError",
    "ConcurrencyConflictError",
    "SyncError",
    "NotConnectedError",
    "ReauthorizationRequiredError",
    "TokenRefreshFailedError",
    "FetchFailedError",
    "RecordReconciliationError",
    "AccountConnectionError",
]
