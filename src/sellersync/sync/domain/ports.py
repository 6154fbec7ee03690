"""Port interfaces for sync operations.

Ports define the contracts between the domain/use cases and the infrastructure.
These are abstract base classes that adapters must implement.

Following the Hexagonal Architecture (Ports and Adapters) pattern:
- Ports are interfaces defined in the domain layer
- Adapters implement these ports in the adapters layer
- Use cases depend only on ports, not concrete implementations

Writes go through the unit of work: repository add()/update() only register
the change, IUnitOfWork.commit() applies everything registered since the
last commit in one transaction.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from .entities import (
    AccountIdentity,
    Credential,
    ExternalInvoice,
    ExternalOrder,
    InventoryItem,
    Invoice,
    InvoicePayment,
    MarketplaceOrder,
    ProviderKind,
    ReconcileOutcome,
    TokenGrant,
    UnmappedRecord,
)


# ============================================
# Persistence Ports
# ============================================


class IUnitOfWork(ABC):
    """Port for the transactional boundary around registered writes."""

    @abstractmethod
    def register(self, key: tuple, write: Any) -> None:
        """Register a pending write.

        Registering the same key again replaces the earlier write, so an
        entity updated twice before a commit is written once.

        Args:
            key: Identity of the written row, e.g. ("credential", id)
            write: Adapter-specific write callable applied on commit
        """
        ...

    @abstractmethod
    async def commit(self) -> None:
        """Apply all pending writes atomically, then clear them.

        Raises:
            ConcurrencyConflictError: If a versioned row changed underneath
        """
        ...

    @abstractmethod
    def rollback(self) -> None:
        """Discard all pending writes."""
        ...

    @abstractmethod
    def is_pending(self, key: tuple) -> bool:
        """True if a write is registered under this key."""
        ...

    @property
    @abstractmethod
    def has_pending(self) -> bool:
        """True if writes are waiting for a commit."""
        ...


class ICredentialRepository(ABC):
    """Port for credential persistence."""

    @abstractmethod
    async def get(self, user_id: str, provider: ProviderKind) -> Optional[Credential]:
        """Load the credential for a user/provider pair (connected or not)."""
        ...

    @abstractmethod
    async def get_connected(self, provider: ProviderKind) -> list[Credential]:
        """Load every connected credential of a provider."""
        ...

    @abstractmethod
    async def add(self, credential: Credential) -> None:
        """Register a new credential for insertion."""
        ...

    @abstractmethod
    async def update(self, credential: Credential) -> None:
        """Register a credential update guarded by its version."""
        ...


class IOrderRepository(ABC):
    """Port for marketplace order persistence."""

    @abstractmethod
    async def get_by_id(self, order_id: UUID) -> Optional[MarketplaceOrder]:
        ...

    @abstractmethod
    async def get_by_external_id(self, external_id: str, user_id: str) -> Optional[MarketplaceOrder]:
        """Find a live (not soft-deleted) order by provider id."""
        ...

    @abstractmethod
    async def get_by_legacy_id(self, legacy_id: str, user_id: str) -> Optional[MarketplaceOrder]:
        """Find a live order by the provider's legacy identifier."""
        ...

    @abstractmethod
    async def add(self, order: MarketplaceOrder) -> None:
        ...

    @abstractmethod
    async def update(self, order: MarketplaceOrder) -> None:
        ...

    @abstractmethod
    async def was_tombstoned(self, external_id: str, user_id: str) -> bool:
        """True if an order with this provider id was soft-deleted locally."""
        ...


class IInvoiceRepository(ABC):
    """Port for invoice and invoice payment persistence."""

    @abstractmethod
    async def get_by_external_id(self, external_id: str, user_id: str) -> Optional[Invoice]:
        ...

    @abstractmethod
    async def add(self, invoice: Invoice) -> None:
        ...

    @abstractmethod
    async def update(self, invoice: Invoice) -> None:
        ...

    @abstractmethod
    async def was_tombstoned(self, external_id: str, user_id: str) -> bool:
        """True if an invoice with this provider id was soft-deleted locally."""
        ...

    @abstractmethod
    async def get_payment(self, external_id: str, user_id: str) -> Optional[InvoicePayment]:
        ...

    @abstractmethod
    async def add_payment(self, payment: InvoicePayment) -> None:
        ...

    @abstractmethod
    async def update_payment(self, payment: InvoicePayment) -> None:
        ...


class IInventoryLookup(ABC):
    """Port for the inventory items orders are linked to."""

    @abstractmethod
    async def find_by_provider_sku(self, sku: str) -> Optional[InventoryItem]:
        """Match against the marketplace-specific SKU field."""
        ...

    @abstractmethod
    async def find_by_internal_sku(self, sku: str) -> Optional[InventoryItem]:
        """Match against the generic internal SKU field."""
        ...

    @abstractmethod
    async def get_by_id(self, item_id: UUID) -> Optional[InventoryItem]:
        ...

    @abstractmethod
    async def update(self, item: InventoryItem) -> None:
        ...


# ============================================
# Security Port
# ============================================


class ITokenCipher(ABC):
    """Port for encrypting secrets at rest."""

    @abstractmethod
    async def encrypt(self, plaintext: str) -> str:
        ...

    @abstractmethod
    async def decrypt(self, ciphertext: str) -> str:
        ...


# ============================================
# Provider Ports
# ============================================


class IExternalRecordFetcher(ABC):
    """Port for one provider's API.

    Implementations map provider payloads to ExternalOrder/ExternalInvoice.
    """

    provider: ProviderKind

    @abstractmethod
    async def fetch_records(
        self,
        access_token: str,
        account_id: Optional[str],
        start_date: datetime,
        end_date: datetime,
    ) -> list[Any]:
        """Fetch the provider records created within the window.

        Returns:
            Records in provider order (ExternalOrder or ExternalInvoice).
            A payload that could not be mapped is returned as an
            UnmappedRecord so it fails on its own during reconciliation.
        """
        ...

    @abstractmethod
    async def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        ...

    @abstractmethod
    async def validate_token(self, access_token: str) -> bool:
        ...

    @abstractmethod
    async def get_account_identity(self, access_token: str) -> AccountIdentity:
        ...


class IMarketplaceFetcher(IExternalRecordFetcher):
    """Marketplace provider with an authorization-code exchange."""

    @abstractmethod
    async def fetch_records(
        self,
        access_token: str,
        account_id: Optional[str],
        start_date: datetime,
        end_date: datetime,
    ) -> list[ExternalOrder | UnmappedRecord]:
        ...

    @abstractmethod
    async def exchange_authorization_code(self, authorization_code: str) -> TokenGrant:
        ...


class IInvoicingFetcher(IExternalRecordFetcher):
    """Invoicing provider; records are invoices of one business."""

    @abstractmethod
    async def fetch_records(
        self,
        access_token: str,
        account_id: Optional[str],
        start_date: datetime,
        end_date: datetime,
    ) -> list[ExternalInvoice | UnmappedRecord]:
        ...

    @abstractmethod
    async def list_accounts(self, access_token: str) -> list[AccountIdentity]:
        """Businesses the token can access."""
        ...


# ============================================
# Reconciliation Port
# ============================================


class IRecordReconciler(ABC):
    """Create-or-update-or-skip decision for one fetched record."""

    @abstractmethod
    async def reconcile(self, record: Any, user_id: str) -> ReconcileOutcome:
        """Reconcile one record against local storage.

        Writes are registered with the unit of work, not committed.

        Raises:
            RecordReconciliationError: If the record is malformed
        """
        ...
