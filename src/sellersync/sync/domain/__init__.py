"""Domain layer - Pure domain entities and port interfaces.

This layer contains:
- Money: currency-safe value object
- Entities: credentials, local records, fetched records, results
- Status tables: provider status strings to internal enums
- Ports: Abstract interfaces defining contracts for adapters

No infrastructure dependencies allowed in this layer.
"""

from .entities import (
    NON_EXPIRING,
    AccountIdentity,
    ConnectionStatus,
    Credential,
    ExternalInvoice,
    ExternalInvoiceItem,
    ExternalLineItem,
    ExternalOrder,
    ExternalPayment,
    FulfillmentStatus,
    InventoryItem,
    InventoryStatus,
    Invoice,
    InvoicePayment,
    InvoiceStatus,
    MarketplaceOrder,
    OrderStatus,
    PaymentStatus,
    ProviderKind,
    ReconcileAction,
    ReconcileOutcome,
    SyncResult,
    TokenGrant,
    UnmappedRecord,
)
from .money import CurrencyMismatchError, Money
from .ports import (
    ICredentialRepository,
    IExternalRecordFetcher,
    IInventoryLookup,
    IInvoiceRepository,
    IInvoicingFetcher,
    IMarketplaceFetcher,
    IOrderRepository,
    IRecordReconciler,
    ITokenCipher,
    IUnitOfWork,
)
from .status_mapping import (
    FULFILLMENT_STATUSES,
    INVOICE_STATUSES,
    ORDER_STATUSES,
    PAYMENT_STATUSES,
    StatusTable,
)

__all__ = [
    # Value objects
    "Money",
    "CurrencyMismatchError",
    # Credential
    "Credential",
    "ConnectionStatus",
    "ProviderKind",
    "NON_EXPIRING",
    "TokenGrant",
    "AccountIdentity",
    # Local records
    "MarketplaceOrder",
    "Invoice",
    "InvoicePayment",
    "InventoryItem",
    # Fetched records
    "ExternalOrder",
    "ExternalLineItem",
    "ExternalInvoice",
    "ExternalInvoiceItem",
    "ExternalPayment",
    "UnmappedRecord",
    # Statuses
    "OrderStatus",
    "PaymentStatus",
    "FulfillmentStatus",
    "InvoiceStatus",
    "InventoryStatus",
    "StatusTable",
    "ORDER_STATUSES",
    "PAYMENT_STATUSES",
    "FULFILLMENT_STATUSES",
    "INVOICE_STATUSES",
    # Results
    "ReconcileAction",
    "ReconcileOutcome",
    "SyncResult",
    # Ports
    "IUnitOfWork",
    "ICredentialRepository",
    "IOrderRepository",
    "IInvoiceRepository",
    "IInventoryLookup",
    "ITokenCipher",
    "IExternalRecordFetcher",
    "IMarketplaceFetcher",
    "IInvoicingFetcher",
    "IRecordReconciler",
]
