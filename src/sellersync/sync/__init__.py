"""Sync module - Clean Architecture implementation of marketplace and invoicing sync.

Pulls eBay orders and Wave invoices into local storage, keeps provider
tokens usable, and reconciles fetched records idempotently.

Architecture:
    domain/     - Pure domain entities and port interfaces
    use_cases/  - Business logic orchestration
    adapters/   - Infrastructure implementations (PostgreSQL, eBay, Wave)
"""

from .config import SyncConfig
from .domain.entities import (
    ConnectionStatus,
    Credential,
    Invoice,
    InvoicePayment,
    MarketplaceOrder,
    ProviderKind,
    SyncResult,
)
from .domain.money import Money
from .domain.ports import (
    ICredentialRepository,
    IExternalRecordFetcher,
    IInventoryLookup,
    IInvoiceRepository,
    IOrderRepository,
    ITokenCipher,
    IUnitOfWork,
)

__all__ = [
    # Configuration
    "SyncConfig",
    # Entities
    "Money",
    "Credential",
    "ConnectionStatus",
    "ProviderKind",
    "MarketplaceOrder",
    "Invoice",
    "InvoicePayment",
    # Result Entities
    "SyncResult",
    # Ports
    "IUnitOfWork",
    "ICredentialRepository",
    "IOrderRepository",
    "IInvoiceRepository",
    "IInventoryLookup",
    "ITokenCipher",
    "IExternalRecordFetcher",
]
