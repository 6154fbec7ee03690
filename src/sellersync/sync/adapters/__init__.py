"""Adapters layer - Infrastructure implementations for sync operations.

This layer contains concrete implementations of the ports defined in the domain layer:
- EbayOrderFetcher: eBay API implementation of IMarketplaceFetcher
- WaveInvoiceFetcher: Wave API implementation of IInvoicingFetcher
- EbayOrderMapper / WaveInvoiceMapper: provider payload to fetched record mapping
- PgcryptoTokenCipher: pgcrypto implementation of ITokenCipher
- PostgresUnitOfWork: PostgreSQL implementation of IUnitOfWork
- PostgresCredentialRepository: PostgreSQL implementation of ICredentialRepository
- PostgresOrderRepository: PostgreSQL implementation of IOrderRepository
- PostgresInvoiceRepository: PostgreSQL implementation of IInvoiceRepository
- PostgresInventoryRepository: PostgreSQL implementation of IInventoryLookup
"""

from .ebay_api_adapter import EbayOrderFetcher
from .field_mapper import EbayOrderMapper, WaveInvoiceMapper
from .pgcrypto_cipher import PgcryptoTokenCipher
from .postgres_credential_repo import PostgresCredentialRepository
from .postgres_invoice_repo import PostgresInvoiceRepository
from .postgres_order_repo import PostgresInventoryRepository, PostgresOrderRepository
from .postgres_unit_of_work import PostgresUnitOfWork
from .wave_api_adapter import WaveInvoiceFetcher

__all__ = [
    # Provider adapters
    "EbayOrderFetcher",
    "EbayOrderMapper",
    "WaveInvoiceFetcher",
    "WaveInvoiceMapper",
    # Persistence adapters
    "PostgresUnitOfWork",
    "PostgresCredentialRepository",
    "PostgresOrderRepository",
    "PostgresInvoiceRepository",
    "PostgresInventoryRepository",
    # Security
    "PgcryptoTokenCipher",
]
