"""Domain entities for marketplace and invoicing sync.

These are pure data structures with no infrastructure dependencies.
They represent the credentials, the locally stored copies of provider
records, the records as fetched from a provider, and the outcome of a sync.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from .money import Money

# Expiry stored for providers whose access tokens never expire
NON_EXPIRING = datetime(9999, 12, 31, tzinfo=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProviderKind(str, Enum):
    """External providers a user can connect."""

    EBAY = "ebay"
    WAVE = "wave"

    @property
    def display_name(self) -> str:
        return {"ebay": "eBay", "wave": "Wave"}[self.value]

    @property
    def record_noun(self) -> str:
        """What one fetched record is called, for error messages."""
        return {"ebay": "order", "wave": "invoice"}[self.value]


# ============================================
# Status Enumerations
# ============================================


class OrderStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    INACTIVE = "inactive"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    FAILED = "failed"
    PAID = "paid"
    PARTIALLY_REFUNDED = "partially_refunded"
    FULLY_REFUNDED = "fully_refunded"


class FulfillmentStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    FULFILLED = "fulfilled"


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    VIEWED = "viewed"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"
    VOIDED = "voided"


class InventoryStatus(str, Enum):
    UNLISTED = "unlisted"
    LISTED = "listed"
    SOLD = "sold"


# ============================================
# Credential
# ============================================


@dataclass
class Credential:
    """Stored OAuth-style connection state for one user/provider pair.

    Tokens are held encrypted; only the lifecycle manager decrypts them.
    The version field is the optimistic concurrency token for updates.
    """

    user_id: str
    provider: ProviderKind
    id: UUID = field(default_factory=uuid4)

    # Encrypted tokens and expiries
    encrypted_access_token: str | None = None
    encrypted_refresh_token: str | None = None
    access_token_expires_at: datetime | None = None
    refresh_token_expires_at: datetime | None = None

    # Connection
    is_connected: bool = False
    account_id: str | None = None  # eBay user id / Wave business id
    account_name: str | None = None
    scopes: str | None = None
    connected_at: datetime | None = None

    # Sync telemetry
    last_synced_at: datetime | None = None
    last_sync_error: str | None = None

    # Timestamps
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    version: int = 0

    def requires_reauthorization(self, now: datetime | None = None) -> bool:
        """Refresh token expired (or revoked): the user has to reconnect."""
        if self.refresh_token_expires_at is None:
            return False
        return (now or utc_now()) >= self.refresh_token_expires_at

    def connect(
        self,
        encrypted_access_token: str,
        access_token_expires_at: datetime,
        encrypted_refresh_token: str | None = None,
        refresh_token_expires_at: datetime | None = None,
        account_id: str | None = None,
        account_name: str | None = None,
        scopes: str | None = None,
        now: datetime | None = None,
    ) -> None:
        """Store a fresh authorization and mark the credential connected."""
        if not encrypted_access_token or access_token_expires_at is None:
            raise ValueError("A connected credential needs an access token and its expiry")
        now = now or utc_now()
        self.encrypted_access_token = encrypted_access_token
        self.access_token_expires_at = access_token_expires_at
        self.encrypted_refresh_token = encrypted_refresh_token
        self.refresh_token_expires_at = refresh_token_expires_at
        self.account_id = account_id
        self.account_name = account_name
        self.scopes = scopes
        self.is_connected = True
        self.connected_at = now
        self.last_sync_error = None
        self.updated_at = now

    def update_tokens(
        self,
        encrypted_access_token: str,
        access_token_expires_at: datetime,
        encrypted_refresh_token: str | None = None,
        refresh_token_expires_at: datetime | None = None,
        now: datetime | None = None,
    ) -> None:
        """Apply a refreshed grant.

        A rotated refresh token and its expiry are only applied when the
        provider actually returned them.
        """
        if not encrypted_access_token or access_token_expires_at is None:
            raise ValueError("A refreshed credential needs an access token and its expiry")
        self.encrypted_access_token = encrypted_access_token
        self.access_token_expires_at = access_token_expires_at
        if encrypted_refresh_token:
            self.encrypted_refresh_token = encrypted_refresh_token
        if refresh_token_expires_at is not None:
            self.refresh_token_expires_at = refresh_token_expires_at
        self.last_sync_error = None
        self.updated_at = now or utc_now()

    def record_successful_sync(self, now: datetime | None = None) -> None:
        now = now or utc_now()
        self.last_synced_at = now
        self.last_sync_error = None
        self.updated_at = now

    def record_sync_error(self, message: str, now: datetime | None = None) -> None:
        self.last_sync_error = message
        self.updated_at = now or utc_now()

    def mark_reauthorization_required(self, message: str, now: datetime | None = None) -> None:
        """Disconnect because the refresh token can no longer be used.

        The refresh expiry is kept (and pinned to now if the provider
        revoked the grant early) so requires_reauthorization() stays true.
        """
        now = now or utc_now()
        if self.refresh_token_expires_at is None or self.refresh_token_expires_at > now:
            self.refresh_token_expires_at = now
        self.is_connected = False
        self.last_sync_error = message
        self.updated_at = now

    def disconnect(self, now: datetime | None = None) -> None:
        """User-initiated disconnect: drop tokens, keep history."""
        self.encrypted_access_token = None
        self.encrypted_refresh_token = None
        self.access_token_expires_at = None
        self.refresh_token_expires_at = None
        self.is_connected = False
        self.updated_at = now or utc_now()


# ============================================
# Inventory
# ============================================


@dataclass
class InventoryItem:
    """A local inventory item that marketplace orders can be linked to."""

    title: str
    id: UUID = field(default_factory=uuid4)
    internal_sku: str | None = None
    ebay_sku: str | None = None
    cogs: Money = field(default_factory=Money.zero)
    status: InventoryStatus = InventoryStatus.UNLISTED
    sold_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_sold(self) -> bool:
        return self.status == InventoryStatus.SOLD

    @property
    def effective_sku(self) -> str | None:
        return self.ebay_sku or self.internal_sku

    def mark_as_sold(self, now: datetime | None = None) -> None:
        now = now or utc_now()
        self.status = InventoryStatus.SOLD
        self.sold_at = now
        self.updated_at = now


# ============================================
# Local Records
# ============================================


@dataclass
class MarketplaceOrder:
    """Local copy of an eBay order.

    Only the first line item of the provider payload is kept.
    """

    user_id: str
    external_id: str
    order_date: datetime
    gross_sale: Money
    id: UUID = field(default_factory=uuid4)
    legacy_order_id: str | None = None
    buyer_username: str = "Unknown"

    # First line item
    item_title: str = "Unknown Item"
    item_id: str | None = None
    sku: str | None = None
    quantity: int = 1

    # Amounts
    shipping_paid: Money | None = None
    shipping_actual: Money | None = None
    final_value_fee: Money | None = None
    payment_processing_fee: Money | None = None
    additional_fees: Money | None = None

    # Statuses
    status: OrderStatus = OrderStatus.ACTIVE
    payment_status: PaymentStatus = PaymentStatus.PENDING
    fulfillment_status: FulfillmentStatus = FulfillmentStatus.NOT_STARTED

    inventory_item_id: UUID | None = None
    notes: str | None = None

    last_synced_at: datetime | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def currency(self) -> str:
        return self.gross_sale.currency

    def _or_zero(self, value: Money | None) -> Money:
        return value if value is not None else Money.zero(self.currency)

    @property
    def total_fees(self) -> Money:
        return (
            self._or_zero(self.final_value_fee)
            + self._or_zero(self.payment_processing_fee)
            + self._or_zero(self.additional_fees)
        )

    @property
    def net_payout(self) -> Money:
        """What the seller receives: gross + shipping paid by buyer - fees."""
        return self.gross_sale + self._or_zero(self.shipping_paid) - self.total_fees

    @property
    def is_linked(self) -> bool:
        return self.inventory_item_id is not None

    def profit(self, cogs: Money | None) -> Money | None:
        """Net payout minus COGS and actual shipping; None when unlinked."""
        if not self.is_linked or cogs is None:
            return None
        return self.net_payout - cogs - self._or_zero(self.shipping_actual)

    def profit_margin(self, cogs: Money | None) -> Decimal | None:
        """Profit as a percentage of the gross sale."""
        profit = self.profit(cogs)
        if profit is None or self.gross_sale.is_zero:
            return None
        return profit.amount / self.gross_sale.amount * 100

    def link_to_inventory(self, inventory_item_id: UUID, now: datetime | None = None) -> None:
        self.inventory_item_id = inventory_item_id
        self.updated_at = now or utc_now()

    def update_shipping_cost(self, shipping_actual: Money, now: datetime | None = None) -> None:
        self.shipping_actual = shipping_actual
        self.updated_at = now or utc_now()


@dataclass
class Invoice:
    """Local copy of a Wave invoice."""

    user_id: str
    external_id: str
    invoice_date: datetime
    total: Money
    id: UUID = field(default_factory=uuid4)
    invoice_number: str = ""
    customer_id: str | None = None
    customer_name: str = "Unknown"
    due_date: datetime | None = None
    status: InvoiceStatus = InvoiceStatus.DRAFT
    amount_due: Money | None = None
    amount_paid: Money | None = None
    memo: str | None = None
    view_url: str | None = None
    line_description: str | None = None  # first line item only

    last_synced_at: datetime | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def is_paid(self) -> bool:
        return self.status == InvoiceStatus.PAID


@dataclass
class InvoicePayment:
    """A payment received against a Wave invoice."""

    user_id: str
    invoice_id: UUID
    external_id: str
    payment_date: datetime
    amount: Money
    id: UUID = field(default_factory=uuid4)
    payment_method: str | None = None
    notes: str | None = None
    last_synced_at: datetime | None = None


# ============================================
# Fetched Records (provider payloads, already mapped)
# ============================================


@dataclass
class TokenGrant:
    """Tokens returned by an authorization exchange or refresh."""

    access_token: str
    expires_in: int
    refresh_token: str | None = None
    refresh_token_expires_in: int | None = None
    scope: str | None = None


@dataclass
class AccountIdentity:
    """Identifier and display name of the provider account behind a token."""

    account_id: str
    display_name: str


@dataclass
class ExternalLineItem:
    line_item_id: str | None = None
    item_id: str | None = None
    title: str | None = None
    sku: str | None = None
    quantity: int = 1


@dataclass
class ExternalOrder:
    """An eBay order as returned by the fetcher."""

    external_id: str
    order_date: datetime | None
    total: Money
    legacy_order_id: str | None = None
    buyer_username: str | None = None
    line_items: list[ExternalLineItem] = field(default_factory=list)
    order_status: str | None = None
    payment_status: str | None = None
    fulfillment_status: str | None = None
    delivery_cost: Money | None = None
    final_value_fee: Money | None = None
    payment_processing_fee: Money | None = None
    additional_fees: Money | None = None
    raw_data: dict[str, Any] = field(default_factory=dict)


@dataclass
class ExternalPayment:
    external_id: str
    payment_date: datetime
    amount: Money
    payment_method: str | None = None
    notes: str | None = None


@dataclass
class ExternalInvoiceItem:
    description: str | None = None
    quantity: int = 1
    unit_price: Money | None = None
    total: Money | None = None


@dataclass
class ExternalInvoice:
    """A Wave invoice as returned by the fetcher."""

    external_id: str
    invoice_date: datetime | None
    total: Money
    invoice_number: str = ""
    status: str | None = None
    due_date: datetime | None = None
    customer_id: str | None = None
    customer_name: str | None = None
    amount_due: Money | None = None
    amount_paid: Money | None = None
    memo: str | None = None
    view_url: str | None = None
    items: list[ExternalInvoiceItem] = field(default_factory=list)
    payments: list[ExternalPayment] = field(default_factory=list)
    raw_data: dict[str, Any] = field(default_factory=dict)


@dataclass
class UnmappedRecord:
    """A fetched payload that could not be mapped to an ExternalOrder or ExternalInvoice.

    Returned in place of the record so the orchestrator can fail it on its own.
    """

    external_id: str
    error: str
    raw_data: dict[str, Any] = field(default_factory=dict)


# ============================================
# Results
# ============================================


class ReconcileAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"


@dataclass
class ReconcileOutcome:
    """What reconciling a single fetched record did."""

    action: ReconcileAction
    linked: bool = False
    payments_synced: int = 0


@dataclass
class SyncResult:
    """Result of one sync run for one user and provider.

    success is derived: a run succeeded only if no error was recorded.
    """

    provider: ProviderKind
    user_id: str
    started_at: datetime = field(default_factory=utc_now)
    fetched: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    linked: int = 0
    payments_synced: int = 0
    errors: list[str] = field(default_factory=list)
    requires_reauthorization: bool = False
    completed_at: datetime | None = None

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def duration_seconds(self) -> float | None:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def record(self, outcome: ReconcileOutcome) -> None:
        """Merge one reconciliation outcome into the counters."""
        if outcome.action == ReconcileAction.CREATED:
            self.created += 1
        elif outcome.action == ReconcileAction.UPDATED:
            self.updated += 1
        else:
            self.skipped += 1
        if outcome.linked:
            self.linked += 1
        self.payments_synced += outcome.payments_synced

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses and job logs."""
        return {
            "provider": self.provider.value,
            "user_id": self.user_id,
            "success": self.success,
            "fetched": self.fetched,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "linked": self.linked,
            "payments_synced": self.payments_synced,
            "errors": list(self.errors),
            "requires_reauthorization": self.requires_reauthorization,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


@dataclass
class ConnectionStatus:
    """Read-only projection of a credential for callers."""

    provider: ProviderKind
    is_connected: bool = False
    account_id: str | None = None
    account_name: str | None = None
    connected_at: datetime | None = None
    last_synced_at: datetime | None = None
    last_sync_error: str | None = None
    requires_reauthorization: bool = False
    scopes: list[str] = field(default_factory=list)

    @classmethod
    def from_credential(
        cls,
        credential: Optional[Credential],
        provider: ProviderKind,
        now: datetime | None = None,
    ) -> "ConnectionStatus":
        if credential is None:
            return cls(provider=provider)
        return cls(
            provider=credential.provider,
            is_connected=credential.is_connected,
            account_id=credential.account_id,
            account_name=credential.account_name,
            connected_at=credential.connected_at,
            last_synced_at=credential.last_synced_at,
            last_sync_error=credential.last_sync_error,
            requires_reauthorization=credential.requires_reauthorization(now),
            scopes=(credential.scopes or "").split(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider.value,
            "is_connected": self.is_connected,
            "account_id": self.account_id,
            "account_name": self.account_name,
            "connected_at": self.connected_at.isoformat() if self.connected_at else None,
            "last_synced_at": self.last_synced_at.isoformat() if self.last_synced_at else None,
            "last_sync_error": self.last_sync_error,
            "requires_reauthorization": self.requires_reauthorization,
            "scopes": list(self.scopes),
        }
